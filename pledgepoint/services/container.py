"""
Service Container - Dependency Injection Container

Simple DI container for the gamification service and its repositories.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    Infrastructure dependencies (db, notifier) are injected.
    """

    # Infrastructure dependencies (injected)
    db: object  # Database instance
    notifier: Optional[object] = None  # Notification sink (optional, defaults to logging)
    timezone_name: Optional[str] = None

    # Services (lazy-loaded via properties)
    _gamification_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def gamification_service(self):
        """Get GamificationService instance (lazy-loaded)"""
        if self._gamification_service is None:
            from pledgepoint.db.queries import (
                PostgresActivityRepository,
                PostgresBadgeCatalog,
                PostgresContributionRepository,
                PostgresUserRepository,
            )
            from pledgepoint.services.gamification_service import GamificationService

            self._gamification_service = GamificationService(
                user_repository=PostgresUserRepository(self.db),
                activity_repository=PostgresActivityRepository(self.db),
                badge_catalog=PostgresBadgeCatalog(self.db),
                contributions=PostgresContributionRepository(self.db),
                notifier=self.notifier,
                timezone_name=self.timezone_name,
            )
            logger.debug("GamificationService instantiated")
        return self._gamification_service


# Global container instance (initialized in main.py)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() in main.py before using services."
        )
    return _container


def init_container(
    db: object,
    notifier: Optional[object] = None,
    timezone_name: Optional[str] = None
) -> ServiceContainer:
    """
    Initialize the global service container.

    Should be called once in main.py after the database pool is open.

    Args:
        db: Database instance
        notifier: Optional notification sink
        timezone_name: IANA zone for streak periods (defaults to STREAK_TIMEZONE)

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(db=db, notifier=notifier, timezone_name=timezone_name)

    logger.info("Service container initialized")
    return _container
