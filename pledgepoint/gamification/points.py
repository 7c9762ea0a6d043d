"""
Points Ledger

Computes and applies impact-point awards.

Award = round_half_up(base x streak multiplier x level bonus)
- Streak multiplier comes from the action's streak category (civic/learning)
- Advocates get x1.1 on rating officials and submitting evidence
- Leaders get x1.2 on every action
Multipliers compose multiplicatively.

The increment, the level re-resolution and the ledger row are one atomic
storage operation (see the user repositories). Nothing here retries: a
storage error reaches the caller, who owns the retry policy.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
import logging

from pledgepoint.exceptions import UserNotFoundError
from pledgepoint.gamification.actions import ActionRule, base_points_for, rule_for
from pledgepoint.models.activity import ActionKind
from pledgepoint.models.badge import BadgeDefinition
from pledgepoint.models.gamification import PointsApplication, PointsAward, PointsTransaction
from pledgepoint.models.user import Level
from pledgepoint.observability import metrics

logger = logging.getLogger(__name__)

ADVOCATE_BONUS = 1.1
LEADER_BONUS = 1.2


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def level_bonus(level: Level, rule: ActionRule) -> float:
    """Level-based multiplier for an action"""
    if level == Level.LEADER:
        return LEADER_BONUS
    if level == Level.ADVOCATE and rule.advocate_bonus:
        return ADVOCATE_BONUS
    return 1.0


class PointsLedger:
    """Awards impact points through the user repository's atomic increment"""

    def __init__(self, user_repository, streak_calculator):
        """
        Args:
            user_repository: Repository with async ``get_user``, ``increment_points``,
                ``award_badge`` and ``get_points_history``
            streak_calculator: StreakCalculator instance
        """
        self.users = user_repository
        self.streaks = streak_calculator

    async def award_points(
        self,
        user_id: str,
        action_kind: ActionKind,
        context: Optional[Dict[str, Any]] = None
    ) -> PointsAward:
        """
        Award points for an action

        Args:
            user_id: User ID
            action_kind: Action performed (unknown strings count as OTHER)
            context: Action details; ``points_reward`` for completed modules

        Returns:
            PointsAward with the amount, multiplier, new total and level change

        Raises:
            UserNotFoundError: user does not exist (nothing is applied)
            DatabaseError: storage failure (nothing is applied)
        """
        kind = ActionKind.parse(action_kind)
        user = await self.users.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id, operation="award_points")

        rule = rule_for(kind)
        base = base_points_for(kind, context)

        streak = None
        streak_multiplier = 1.0
        if rule.streak_category is not None:
            streak = await self.streaks.refresh_streak(user_id, rule.streak_category)
            streak_multiplier = streak.multiplier

        multiplier = streak_multiplier * level_bonus(user.level, rule)
        amount = round_half_up(base * multiplier)

        application = await self.users.increment_points(
            user_id,
            amount,
            source=kind.value,
            reason=f"{kind.value} (base {base} x {multiplier:.2f})",
        )

        metrics.points_awarded_total.labels(source=kind.value).inc(amount)
        self._record_level_change(user_id, application)

        logger.info(
            f"Awarded {amount} points to user {user_id} for {kind.value}. "
            f"Total: {application.total_points}, Level: {application.level.value}"
        )

        return PointsAward(
            points_awarded=amount,
            base_points=base,
            multiplier=multiplier,
            total_points=application.total_points,
            previous_level=application.previous_level,
            level=application.level,
            streak=streak,
        )

    async def apply_badge_reward(
        self,
        user_id: str,
        badge: BadgeDefinition
    ) -> Optional[PointsApplication]:
        """
        Add a badge to the user and grant its reward, at most once

        Returns:
            PointsApplication if the badge was newly awarded, None if the user
            already owned it
        """
        application = await self.users.award_badge(
            user_id,
            badge.code,
            badge.points_reward,
            reason=f"Badge earned: {badge.name}",
        )
        if application is None:
            logger.debug(f"User {user_id} already owns badge {badge.code}")
            return None

        metrics.points_awarded_total.labels(source="badge").inc(application.amount)
        self._record_level_change(user_id, application)

        logger.info(
            f"User {user_id} earned badge {badge.code} +{application.amount} points. "
            f"Total: {application.total_points}"
        )
        return application

    async def get_points_history(
        self,
        user_id: str,
        days: int = 30,
        limit: int = 50
    ) -> List[PointsTransaction]:
        """
        Recent point transactions

        Args:
            user_id: User ID
            days: Number of days of history to retrieve
            limit: Maximum rows

        Returns:
            Transactions sorted by date (newest first)
        """
        since = datetime.now(timezone.utc) - timedelta(days=days)
        return await self.users.get_points_history(user_id, since=since, limit=limit)

    @staticmethod
    def _record_level_change(user_id: str, application: PointsApplication) -> None:
        if application.level_changed:
            metrics.level_changes_total.labels(level=application.level.value).inc()
            logger.info(
                f"User {user_id} moved from {application.previous_level.value} "
                f"to {application.level.value}"
            )
