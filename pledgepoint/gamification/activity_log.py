"""
Activity Log

Append-only record of user actions. Streaks and some badge criteria are
computed by replaying it, so a failed append must fail the whole action:
errors from the repository are propagated, never swallowed.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pledgepoint.models.activity import ActionKind, ActivityEvent, RelatedType

logger = logging.getLogger(__name__)


class ActivityLog:
    """Thin service over an activity repository"""

    def __init__(self, repository):
        """
        Args:
            repository: Object with async ``append``, ``query`` and ``count``
        """
        self.repository = repository

    async def append(self, event: ActivityEvent) -> ActivityEvent:
        """Durably store an event"""
        stored = await self.repository.append(event)
        logger.debug(f"Logged {event.kind.value} for user {event.user_id} (event {event.id})")
        return stored

    async def record(
        self,
        user_id: str,
        kind: ActionKind,
        related_id: Optional[str] = None,
        related_type: Optional[RelatedType] = None,
        details: Optional[Dict[str, Any]] = None,
        occurred_at: Optional[datetime] = None
    ) -> ActivityEvent:
        """Build an event for an action and append it"""
        fields: Dict[str, Any] = {
            "user_id": user_id,
            "kind": kind,
            "related_id": related_id,
            "related_type": related_type,
            "details": details or {},
        }
        if occurred_at is not None:
            fields["created_at"] = occurred_at
        return await self.append(ActivityEvent(**fields))

    async def query(
        self,
        user_id: str,
        kinds: Optional[Iterable[ActionKind]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> List[ActivityEvent]:
        """Events for a user, oldest first"""
        return await self.repository.query(user_id, kinds=kinds, since=since, until=until)

    async def count(self, user_id: str, kinds: Optional[Iterable[ActionKind]] = None) -> int:
        return await self.repository.count(user_id, kinds=kinds)
