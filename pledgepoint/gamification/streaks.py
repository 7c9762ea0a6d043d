"""
Streak Calculator

Derives activity streaks from the Activity Log for two categories:
- civic: weekly cadence (ISO weeks, starting Monday)
- learning: daily cadence

A streak is the number of consecutive periods with at least one qualifying
action, counted backward from the most recent active period. The longest
streak is persisted and only ever raised, so it survives streak resets.

Multiplier tiers:
- civic:    4+ weeks -> x1.5, 2+ weeks -> x1.2
- learning: 7+ days  -> x1.5, 3+ days  -> x1.2
"""

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Set, Tuple
from zoneinfo import ZoneInfo
import logging

from pledgepoint import config
from pledgepoint.exceptions import UserNotFoundError
from pledgepoint.gamification.actions import kinds_for_category
from pledgepoint.models.activity import StreakCategory
from pledgepoint.models.gamification import StreakInfo

logger = logging.getLogger(__name__)

# (minimum streak, multiplier), highest tier first
MULTIPLIER_TIERS = {
    StreakCategory.CIVIC: [(4, 1.5), (2, 1.2)],
    StreakCategory.LEARNING: [(7, 1.5), (3, 1.2)],
}


def period_start(moment: datetime, category: StreakCategory, tz: ZoneInfo) -> date:
    """Reduce a timestamp to the first day of its period in ``tz``"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    day = moment.astimezone(tz).date()
    if category == StreakCategory.CIVIC:
        return day - timedelta(days=day.weekday())
    return day


def period_key(moment: datetime, category: StreakCategory, tz: ZoneInfo) -> str:
    """Day string (learning) or ISO-week-start string (civic)"""
    return period_start(moment, category, tz).isoformat()


def _period_length(category: StreakCategory) -> timedelta:
    return timedelta(weeks=1) if category == StreakCategory.CIVIC else timedelta(days=1)


def count_current_streak(periods: Set[date], category: StreakCategory) -> int:
    """Consecutive periods ending at the most recent active one"""
    if not periods:
        return 0
    step = _period_length(category)
    cursor = max(periods)
    streak = 0
    while cursor in periods:
        streak += 1
        cursor -= step
    return streak


def count_longest_streak(periods: Set[date], category: StreakCategory) -> int:
    """Longest run of consecutive periods anywhere in the history"""
    step = _period_length(category)
    longest = 0
    run = 0
    previous: Optional[date] = None
    for period in sorted(periods):
        run = run + 1 if previous is not None and period - previous == step else 1
        longest = max(longest, run)
        previous = period
    return longest


def streak_multiplier(category: StreakCategory, current_streak: int) -> float:
    """Point multiplier implied by a streak length"""
    for minimum, multiplier in MULTIPLIER_TIERS[category]:
        if current_streak >= minimum:
            return multiplier
    return 1.0


class StreakCalculator:
    """Computes streaks from the activity log and persists the snapshot"""

    def __init__(self, activity_log, user_repository, timezone_name: Optional[str] = None):
        """
        Args:
            activity_log: ActivityLog instance
            user_repository: Repository with async ``get_user`` and ``update_streak``
            timezone_name: IANA zone for period boundaries (defaults to STREAK_TIMEZONE)
        """
        self.activity_log = activity_log
        self.users = user_repository
        self.tz = ZoneInfo(timezone_name or config.STREAK_TIMEZONE)

    async def _scan(self, user_id: str, category: StreakCategory) -> Tuple[int, int, Optional[datetime]]:
        events = await self.activity_log.query(user_id, kinds=kinds_for_category(category))
        periods = {period_start(e.created_at, category, self.tz) for e in events}
        last_activity_at = events[-1].created_at if events else None
        return (
            count_current_streak(periods, category),
            count_longest_streak(periods, category),
            last_activity_at,
        )

    async def get_streak(self, user_id: str, category: StreakCategory) -> StreakInfo:
        """
        Read-only streak computation

        Returns:
            StreakInfo with the persisted longest streak folded in
        """
        user = await self.users.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id, operation="get_streak")

        current, longest_in_log, last_activity_at = await self._scan(user_id, category)
        longest = max(user.streak(category).longest_streak, longest_in_log, current)

        return StreakInfo(
            category=category,
            current_streak=current,
            longest_streak=longest,
            last_activity_at=last_activity_at,
            multiplier=streak_multiplier(category, current),
        )

    async def refresh_streak(self, user_id: str, category: StreakCategory) -> StreakInfo:
        """
        Recompute a streak after a new event and persist the snapshot

        The longest streak is written as "set if greater", so concurrent
        refreshes can only raise it.
        """
        user = await self.users.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id, operation="refresh_streak")
        previous_longest = user.streak(category).longest_streak

        current, longest_in_log, last_activity_at = await self._scan(user_id, category)
        snapshot = await self.users.update_streak(
            user_id,
            category,
            current_streak=current,
            last_activity_at=last_activity_at,
            longest_candidate=max(longest_in_log, current),
        )

        is_new_record = snapshot.longest_streak > previous_longest
        if is_new_record:
            logger.info(
                f"User {user_id} set a new {category.value} streak record: "
                f"{previous_longest} -> {snapshot.longest_streak}"
            )

        return StreakInfo(
            category=category,
            current_streak=current,
            longest_streak=snapshot.longest_streak,
            last_activity_at=last_activity_at,
            multiplier=streak_multiplier(category, current),
            is_new_record=is_new_record,
        )

    async def get_all_streaks(self, user_id: str) -> List[StreakInfo]:
        return [await self.get_streak(user_id, category) for category in StreakCategory]
