"""
Errors raised by the gamification engine

Every error carries the user and operation it happened in, a correlation id
and a short message that a client app can show the citizen as-is. Errors log
themselves when created, so call sites only need to raise.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class PledgePointError(Exception):
    """
    Root of the engine's errors

    Attributes beyond the message:
    - ``user_id`` / ``operation``: where it failed (e.g. "record_action")
    - ``request_id``: correlation id, generated if the caller has none
    - ``context``: extra fields for logs and Sentry
    - ``user_message``: what the citizen sees

    Example:
        raise PledgePointError(
            message="Ledger row missing after increment",
            user_id="64f0c2",
            operation="increment_points",
            context={"source": "rate_official", "amount": 10}
        )
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "Your activity couldn't be recorded right now."
        self.timestamp = datetime.now(timezone.utc)

        self._log_error()

    def _log_error(self) -> None:
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # 'message' is reserved by LogRecord
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Payload for the calling service to relay to its client"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Caller input
# ==========================================

class ValidationError(PledgePointError):
    """
    A caller passed something the engine can't act on

    Raised for a related type outside the known entities, a streak or
    leaderboard category that doesn't exist, or a non-positive limit.
    Nothing has been written when this is raised.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


# ==========================================
# Ledger storage
# ==========================================

class DatabaseError(PledgePointError):
    """
    The points ledger or activity store failed

    ``retryable`` says whether the whole action may be sent again. Points are
    applied in one transaction, so a retryable failure never leaves a
    half-credited action behind.
    """

    retryable = False


class DatabaseConnectionError(DatabaseError):
    """Ledger database unreachable or pool exhausted"""

    retryable = True

    def __init__(self, message: str = "Ledger database unavailable", **kwargs):
        super().__init__(
            message=message,
            user_message="Impact points are temporarily unavailable. Your action wasn't counted yet, please try again.",
            **kwargs
        )


class QueryError(DatabaseError):
    """A ledger statement failed and its transaction was rolled back"""

    retryable = True

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        super().__init__(
            message=message,
            user_message="We couldn't save your impact points. Nothing was changed, please try again.",
            context={"query": query},
            **kwargs
        )


class RecordNotFoundError(DatabaseError):
    """A user, badge or module the action refers to isn't in the store"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        label = (record_type or "record").lower()
        super().__init__(
            message=message,
            user_message=f"That {label} doesn't exist on PledgePoint.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class UserNotFoundError(RecordNotFoundError):
    """The user an action was recorded for does not exist"""

    def __init__(self, user_id: str, **kwargs):
        super().__init__(
            message=f"User not found for ID: {user_id}",
            record_type="User",
            record_id=user_id,
            user_id=user_id,
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(PledgePointError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> PledgePointError:
    """
    Wrap external exceptions (psycopg, pool timeouts, etc.) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate PledgePointError subclass

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(
                e,
                operation="increment_points",
                user_id="64f0c2",
            )
    """
    # Import here to avoid circular dependencies
    import psycopg
    from psycopg_pool import PoolTimeout

    if isinstance(error, PledgePointError):
        return error

    # Connection-level failures
    if isinstance(error, (psycopg.OperationalError, PoolTimeout)):
        return DatabaseConnectionError(
            message=f"Database connection failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            cause=error
        )

    # Generic fallback
    return DatabaseError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
