"""
In-memory repositories

Same contract as the PostgreSQL repositories in ``pledgepoint.db.queries``,
kept in process memory. Used by the test-suite and for local experiments;
nothing here is persisted.

Point increments and badge awards run under one asyncio.Lock so concurrent
callers see the same atomicity the database gives them.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from pledgepoint.exceptions import UserNotFoundError
from pledgepoint.gamification.levels import resolve_level
from pledgepoint.models.activity import ActionKind, ActivityEvent, StreakCategory
from pledgepoint.models.badge import BadgeDefinition, QuizResult
from pledgepoint.models.gamification import PointsApplication, PointsTransaction
from pledgepoint.models.user import StreakSnapshot, UserAggregate

logger = logging.getLogger(__name__)


class InMemoryUserRepository:
    """User aggregates keyed by id"""

    def __init__(self):
        self._users: Dict[str, UserAggregate] = {}
        self._transactions: List[PointsTransaction] = []
        self._lock = asyncio.Lock()

    def add_user(self, user: UserAggregate) -> None:
        """Seed a user (test helper)"""
        self._users[user.id] = user.model_copy(deep=True)

    async def get_user(self, user_id: str) -> Optional[UserAggregate]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def increment_points(
        self,
        user_id: str,
        amount: int,
        source: str,
        reason: str
    ) -> PointsApplication:
        """Add points, re-resolve level and log the transaction atomically"""
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id, operation="increment_points")
            return self._apply(user, amount, source, reason)

    async def award_badge(
        self,
        user_id: str,
        badge_code: str,
        points_reward: int,
        reason: str
    ) -> Optional[PointsApplication]:
        """
        Add a badge if absent and grant its reward in the same step

        Returns:
            PointsApplication if the badge was newly added, None if already owned
        """
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id, operation="award_badge")
            if badge_code in user.badges:
                return None
            user.badges.append(badge_code)
            return self._apply(user, points_reward, f"badge:{badge_code}", reason)

    def _apply(self, user: UserAggregate, amount: int, source: str, reason: str) -> PointsApplication:
        previous_level = user.level
        user.impact_points += amount
        user.level = resolve_level(user.impact_points)
        self._transactions.append(
            PointsTransaction(
                user_id=user.id,
                amount=amount,
                source=source,
                reason=reason,
                awarded_at=datetime.now(timezone.utc),
            )
        )
        return PointsApplication(
            amount=amount,
            total_points=user.impact_points,
            previous_level=previous_level,
            level=user.level,
        )

    async def update_streak(
        self,
        user_id: str,
        category: StreakCategory,
        current_streak: int,
        last_activity_at: Optional[datetime],
        longest_candidate: int
    ) -> StreakSnapshot:
        """Store the current streak and raise the longest streak if exceeded"""
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id, operation="update_streak")
            previous = user.streak(category)
            snapshot = StreakSnapshot(
                current_streak=current_streak,
                longest_streak=max(previous.longest_streak, longest_candidate),
                last_activity_at=last_activity_at,
            )
            user.streaks[category] = snapshot
            return snapshot.model_copy()

    async def top_users(
        self,
        order_by: str = "points",
        district: Optional[str] = None,
        limit: int = 10
    ) -> List[UserAggregate]:
        users = [
            u for u in self._users.values()
            if u.active and (district is None or u.district == district)
        ]
        if order_by == "badges":
            users.sort(key=lambda u: (len(u.badges), u.impact_points), reverse=True)
        else:
            users.sort(key=lambda u: u.impact_points, reverse=True)
        return [u.model_copy(deep=True) for u in users[:limit]]

    async def get_points_history(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: int = 50
    ) -> List[PointsTransaction]:
        rows = [
            t for t in self._transactions
            if t.user_id == user_id and (since is None or t.awarded_at >= since)
        ]
        rows.sort(key=lambda t: t.awarded_at, reverse=True)
        return rows[:limit]


class InMemoryActivityRepository:
    """Append-only activity events"""

    def __init__(self):
        self._events: List[ActivityEvent] = []

    async def append(self, event: ActivityEvent) -> ActivityEvent:
        self._events.append(event)
        return event

    async def query(
        self,
        user_id: str,
        kinds: Optional[Iterable[ActionKind]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> List[ActivityEvent]:
        wanted = set(kinds) if kinds is not None else None
        rows = [
            e for e in self._events
            if e.user_id == user_id
            and (wanted is None or e.kind in wanted)
            and (since is None or e.created_at >= since)
            and (until is None or e.created_at < until)
        ]
        rows.sort(key=lambda e: e.created_at)
        return rows

    async def count(self, user_id: str, kinds: Optional[Iterable[ActionKind]] = None) -> int:
        return len(await self.query(user_id, kinds))


class InMemoryBadgeCatalog:
    """Badge definitions keyed by code"""

    def __init__(self, badges: Optional[Iterable[BadgeDefinition]] = None):
        self._badges: Dict[str, BadgeDefinition] = {}
        for badge in badges or []:
            self._badges[badge.code] = badge

    async def list_badges(self) -> List[BadgeDefinition]:
        return list(self._badges.values())

    async def get_badge(self, code: str) -> Optional[BadgeDefinition]:
        return self._badges.get(code)

    async def count(self) -> int:
        return len(self._badges)

    async def insert_badges(self, badges: Iterable[BadgeDefinition]) -> int:
        """Insert badges whose code is not present yet; returns how many were added"""
        added = 0
        for badge in badges:
            if badge.code not in self._badges:
                self._badges[badge.code] = badge
                added += 1
        return added


class InMemoryContributionRepository:
    """
    Collaborator counts (ratings, evidence, campaigns, learning progress, forums)

    Counts are set directly by tests through the ``set_*`` helpers.
    """

    def __init__(self):
        self._counts: Dict[str, Dict[str, int]] = defaultdict(dict)
        self._completed_modules: Dict[str, set] = defaultdict(set)
        self._category_modules: Dict[str, List[str]] = {}
        self._quiz_results: Dict[str, List[QuizResult]] = defaultdict(list)

    def set_count(self, user_id: str, name: str, value: int) -> None:
        self._counts[user_id][name] = value

    def complete_module(self, user_id: str, module_id: str) -> None:
        self._completed_modules[user_id].add(module_id)

    def set_category_modules(self, category: str, module_ids: List[str]) -> None:
        self._category_modules[category] = list(module_ids)

    def add_quiz_result(self, user_id: str, result: QuizResult) -> None:
        self._quiz_results[user_id].append(result)

    def _get(self, user_id: str, name: str) -> int:
        return self._counts[user_id].get(name, 0)

    async def count_ratings(self, user_id: str) -> int:
        return self._get(user_id, "ratings")

    async def count_long_reviews(self, user_id: str) -> int:
        return self._get(user_id, "long_reviews")

    async def count_evidence(self, user_id: str) -> int:
        return self._get(user_id, "evidence")

    async def count_campaigns(self, user_id: str) -> int:
        return self._get(user_id, "campaigns")

    async def count_campaign_supports(self, user_id: str) -> int:
        return self._get(user_id, "campaign_supports")

    async def count_discussions(self, user_id: str) -> int:
        return self._get(user_id, "discussions")

    async def count_upvotes(self, user_id: str) -> int:
        return self._get(user_id, "upvotes")

    async def count_completed_modules(self, user_id: str) -> int:
        return len(self._completed_modules[user_id])

    async def is_module_completed(self, user_id: str, module_id: str) -> bool:
        return module_id in self._completed_modules[user_id]

    async def list_completed_module_ids(self, user_id: str) -> List[str]:
        return sorted(self._completed_modules[user_id])

    async def list_category_module_ids(self, category: str) -> List[str]:
        return list(self._category_modules.get(category, []))

    async def list_quiz_results(self, user_id: str) -> List[QuizResult]:
        return list(self._quiz_results[user_id])
