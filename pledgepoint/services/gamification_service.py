"""
GamificationService - Gamification Business Logic

Single entry point for user actions: records the activity, awards points,
evaluates badges and dispatches notifications. All storage is injected so
the same service runs against PostgreSQL or the in-memory repositories.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pledgepoint.exceptions import UserNotFoundError, ValidationError
from pledgepoint.gamification.activity_log import ActivityLog
from pledgepoint.gamification.badges import BadgeAward, BadgeEvaluator
from pledgepoint.gamification.catalog import seed_badge_catalog
from pledgepoint.gamification.levels import next_level_progress, unlocked_features
from pledgepoint.gamification.points import PointsLedger
from pledgepoint.gamification.streaks import StreakCalculator
from pledgepoint.models.activity import ActionKind, RelatedType, StreakCategory
from pledgepoint.models.gamification import (
    ActionResult,
    BadgeProgress,
    LeaderboardEntry,
    LevelProgress,
    PointsTransaction,
    StreakInfo,
)
from pledgepoint.models.user import Level, UserAggregate
from pledgepoint.observability import metrics
from pledgepoint.services.notifications import LoggingNotificationSink

logger = logging.getLogger(__name__)

LEADERBOARD_CATEGORIES = ("points", "badges")


class GamificationService:
    """
    Service for gamification features.

    Responsibilities:
    - Recording actions in the activity log
    - Point awards with streak and level multipliers
    - Badge evaluation and awarding
    - Level-up and badge notifications (best-effort)
    - Read models: streaks, level progress, badge progress, leaderboard, history
    """

    def __init__(
        self,
        user_repository,
        activity_repository,
        badge_catalog,
        contributions,
        notifier=None,
        timezone_name: Optional[str] = None
    ):
        """
        Initialize GamificationService.

        Args:
            user_repository: User aggregate store
            activity_repository: Activity event store
            badge_catalog: Badge definition store
            contributions: Collaborator counts (ratings, evidence, campaigns, learning)
            notifier: Notification sink (defaults to logging only)
            timezone_name: IANA zone for streak periods
        """
        self.users = user_repository
        self.catalog = badge_catalog
        self.notifier = notifier or LoggingNotificationSink()

        self.activity_log = ActivityLog(activity_repository)
        self.streaks = StreakCalculator(self.activity_log, user_repository, timezone_name)
        self.ledger = PointsLedger(user_repository, self.streaks)
        self.badges = BadgeEvaluator(badge_catalog, contributions, self.ledger, self.streaks)
        logger.debug("GamificationService initialized")

    async def record_action(
        self,
        user_id: str,
        action_kind: Union[ActionKind, str],
        context: Optional[Dict[str, Any]] = None,
        related_id: Optional[str] = None,
        related_type: Optional[Union[RelatedType, str]] = None,
        occurred_at: Optional[datetime] = None
    ) -> ActionResult:
        """
        Process gamification for one user action.

        Args:
            user_id: User ID
            action_kind: Action performed; unknown values are recorded as 'other'
            context: Action details (e.g. {'points_reward': 30} for modules)
            related_id: ID of the entity acted upon
            related_type: Kind of that entity
            occurred_at: Event time (defaults to now)

        Returns:
            ActionResult with points, level change and newly awarded badges

        Raises:
            UserNotFoundError: user does not exist; nothing is recorded
            ValidationError: related_type is not a known entity kind
            DatabaseError: storage failure in the append or the increment
        """
        kind = ActionKind.parse(action_kind)
        started = time.perf_counter()

        try:
            related = self._parse_related_type(related_type, user_id)

            user = await self.users.get_user(user_id)
            if user is None:
                raise UserNotFoundError(user_id, operation="record_action")

            details = dict(context or {})
            if kind == ActionKind.OTHER:
                details.setdefault("action", str(getattr(action_kind, "value", action_kind)))

            await self.activity_log.record(
                user_id,
                kind,
                related_id=related_id,
                related_type=related,
                details=details,
                occurred_at=occurred_at,
            )

            award = await self.ledger.award_points(user_id, kind, context)

            updated = await self.users.get_user(user_id)
            badge_awards = await self.badges.check_and_award_badges(updated or user, kind)

        except Exception:
            metrics.actions_recorded_total.labels(action_kind=kind.value, status="error").inc()
            raise

        final_level = badge_awards[-1].application.level if badge_awards else award.level
        total_points = badge_awards[-1].application.total_points if badge_awards else award.total_points
        level_changed_to = final_level if final_level != user.level else None

        await self._dispatch_notifications(user_id, level_changed_to, badge_awards)

        metrics.actions_recorded_total.labels(action_kind=kind.value, status="success").inc()
        metrics.action_processing_duration_seconds.labels(action_kind=kind.value).observe(
            time.perf_counter() - started
        )

        logger.info(
            f"Gamification processed for {kind.value}: user={user_id}, "
            f"points={award.points_awarded}, badges={len(badge_awards)}, level={final_level.value}"
        )

        return ActionResult(
            points_awarded=award.points_awarded,
            badge_points_awarded=sum(a.application.amount for a in badge_awards),
            total_points=total_points,
            level=final_level,
            level_changed_to=level_changed_to,
            badges_awarded=[a.badge.code for a in badge_awards],
            streak=award.streak,
        )

    async def _dispatch_notifications(
        self,
        user_id: str,
        level_changed_to: Optional[Level],
        badge_awards: List[BadgeAward]
    ) -> None:
        """Send notifications after commit; failures are logged and dropped"""
        if level_changed_to is not None:
            try:
                await self.notifier.send_level_up(
                    user_id, level_changed_to, unlocked_features(level_changed_to)
                )
            except Exception as e:
                metrics.notification_failures_total.labels(notification_type="level_up").inc()
                logger.error(f"Level-up notification failed for user {user_id}: {e}", exc_info=True)

        for award in badge_awards:
            try:
                await self.notifier.send_badge_earned(
                    user_id, award.badge.code, award.badge.unlock_message or award.badge.description
                )
            except Exception as e:
                metrics.notification_failures_total.labels(notification_type="badge_earned").inc()
                logger.error(
                    f"Badge notification failed for user {user_id}, badge {award.badge.code}: {e}",
                    exc_info=True,
                )

    @staticmethod
    def _parse_related_type(
        related_type: Optional[Union[RelatedType, str]],
        user_id: str
    ) -> Optional[RelatedType]:
        if related_type is None or isinstance(related_type, RelatedType):
            return related_type
        try:
            return RelatedType(related_type)
        except ValueError:
            raise ValidationError(
                f"Unknown related type: {related_type}",
                field="related_type",
                value=related_type,
                user_id=user_id,
            )

    async def _require_user(self, user_id: str, operation: str) -> UserAggregate:
        user = await self.users.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id, operation=operation)
        return user

    # ============================================
    # Read operations
    # ============================================

    async def get_user_streak(
        self,
        user_id: str,
        category: Union[StreakCategory, str] = StreakCategory.CIVIC
    ) -> StreakInfo:
        """Current and longest streak for a category"""
        try:
            category = StreakCategory(category)
        except ValueError:
            raise ValidationError(
                f"Unknown streak category: {category}",
                field="category",
                value=category,
                user_id=user_id,
            )
        return await self.streaks.get_streak(user_id, category)

    async def get_level_progress(self, user_id: str) -> LevelProgress:
        """Progress toward the next level"""
        user = await self._require_user(user_id, "get_level_progress")
        return next_level_progress(user.impact_points)

    async def get_badge_progress(self, user_id: str, badge_code: str) -> BadgeProgress:
        """Progress toward one badge"""
        user = await self._require_user(user_id, "get_badge_progress")
        return await self.badges.get_badge_progress(user, badge_code)

    async def get_points_history(self, user_id: str, days: int = 30, limit: int = 50) -> List[PointsTransaction]:
        """Recent point transactions, newest first"""
        await self._require_user(user_id, "get_points_history")
        return await self.ledger.get_points_history(user_id, days=days, limit=limit)

    async def get_leaderboard(
        self,
        category: str = "points",
        district: Optional[str] = None,
        limit: int = 10
    ) -> List[LeaderboardEntry]:
        """
        Leaderboard of active users

        Args:
            category: 'points' or 'badges'
            district: Only users from this district
            limit: Number of entries

        Returns:
            Entries ranked from 1; names are first name plus last initial
        """
        if category not in LEADERBOARD_CATEGORIES:
            raise ValidationError(
                f"Unknown leaderboard category: {category}",
                field="category",
                value=category,
            )
        if limit < 1:
            raise ValidationError("Limit must be positive", field="limit", value=limit)

        users = await self.users.top_users(order_by=category, district=district, limit=limit)
        return [
            LeaderboardEntry(
                rank=index + 1,
                user_id=user.id,
                name=user.display_name,
                points=user.impact_points,
                level=user.level,
                badge_count=len(user.badges),
                district=user.district or "Unknown",
            )
            for index, user in enumerate(users)
        ]

    async def seed_badge_catalog(self) -> int:
        """Install the default badges if the catalog is empty"""
        return await seed_badge_catalog(self.catalog)
