"""
Badge Evaluator

Checks every badge the user doesn't own yet against live counts from the
collaborator domains and awards qualifying badges exactly once.

Criteria kinds:
- specific_action: the triggering action equals the badge's specific value
- rating/review/evidence/campaign/campaign_support/discussion/upvote counts
- module_completion: a named module is complete, or N modules are
- category_completion: every module of a category is complete
- quiz_score: a completed quiz scored at least the threshold
- level_reached: the user's level is at or above the named level
- streak_days: a streak reached the threshold

Every criteria kind reduces to a (current, required) measure; a badge is
eligible when ``required > 0 and current >= required``. The same measure
drives the progress display.

A failure while evaluating one badge is logged and skipped; it never stops
the remaining badges or undoes the points already awarded for the action.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
import logging

from pledgepoint.exceptions import RecordNotFoundError
from pledgepoint.gamification.levels import level_at_least
from pledgepoint.models.activity import ActionKind, StreakCategory
from pledgepoint.models.badge import BadgeCriteria, BadgeDefinition, CriteriaKind
from pledgepoint.models.gamification import BadgeProgress, PointsApplication
from pledgepoint.models.user import Level, UserAggregate
from pledgepoint.observability import metrics

logger = logging.getLogger(__name__)

# Criteria kinds answered by a single collaborator count
COUNT_QUERIES = {
    CriteriaKind.RATING_COUNT: "count_ratings",
    CriteriaKind.REVIEW_COUNT: "count_long_reviews",
    CriteriaKind.EVIDENCE_COUNT: "count_evidence",
    CriteriaKind.CAMPAIGN_COUNT: "count_campaigns",
    CriteriaKind.CAMPAIGN_SUPPORT_COUNT: "count_campaign_supports",
    CriteriaKind.DISCUSSION_COUNT: "count_discussions",
    CriteriaKind.UPVOTE_COUNT: "count_upvotes",
}

_LEVELS_BY_RANK = {level.rank + 1: level for level in Level}


@dataclass
class BadgeAward:
    """A badge newly granted during an evaluation"""
    badge: BadgeDefinition
    application: PointsApplication


class CriteriaContext:
    """
    Per-evaluation view of the user's state

    Collaborator reads are cached so badges sharing a criteria kind (e.g.
    first_voice and active_rater) hit the collaborator once.
    """

    def __init__(
        self,
        user: UserAggregate,
        action_kind: Optional[ActionKind],
        contributions,
        streak_calculator
    ):
        self.user_id = user.id
        self.level = user.level
        self.action_kind = action_kind
        self.contributions = contributions
        self.streaks = streak_calculator
        self._cache: Dict[Tuple, object] = {}

    async def _cached(self, key: Tuple, loader: Callable[[], Awaitable]):
        if key not in self._cache:
            self._cache[key] = await loader()
        return self._cache[key]

    async def contribution_count(self, kind: CriteriaKind) -> int:
        method = getattr(self.contributions, COUNT_QUERIES[kind])
        return await self._cached(("count", kind), lambda: method(self.user_id))

    async def completed_module_count(self) -> int:
        return await self._cached(
            ("modules",), lambda: self.contributions.count_completed_modules(self.user_id)
        )

    async def module_completed(self, module_id: str) -> bool:
        return await self._cached(
            ("module", module_id),
            lambda: self.contributions.is_module_completed(self.user_id, module_id),
        )

    async def completed_module_ids(self) -> List[str]:
        return await self._cached(
            ("module_ids",), lambda: self.contributions.list_completed_module_ids(self.user_id)
        )

    async def category_module_ids(self, category: str) -> List[str]:
        return await self._cached(
            ("category", category), lambda: self.contributions.list_category_module_ids(category)
        )

    async def quiz_results(self):
        return await self._cached(
            ("quizzes",), lambda: self.contributions.list_quiz_results(self.user_id)
        )

    async def current_streak(self, category: StreakCategory) -> int:
        async def load():
            info = await self.streaks.get_streak(self.user_id, category)
            return info.current_streak
        return await self._cached(("streak", category), load)


# ============================================
# Criteria measures: (current, required)
# ============================================

async def _measure_count(criteria: BadgeCriteria, ctx: CriteriaContext) -> Tuple[int, int]:
    return await ctx.contribution_count(criteria.kind), criteria.threshold


async def _measure_specific_action(criteria: BadgeCriteria, ctx: CriteriaContext) -> Tuple[int, int]:
    matched = (
        ctx.action_kind is not None
        and criteria.specific_value is not None
        and ctx.action_kind.value == criteria.specific_value
    )
    return (1 if matched else 0), 1


async def _measure_module_completion(criteria: BadgeCriteria, ctx: CriteriaContext) -> Tuple[int, int]:
    if criteria.specific_value:
        completed = await ctx.module_completed(criteria.specific_value)
        return (1 if completed else 0), 1
    return await ctx.completed_module_count(), criteria.threshold


async def _measure_category_completion(criteria: BadgeCriteria, ctx: CriteriaContext) -> Tuple[int, int]:
    if not criteria.specific_value:
        logger.warning("category_completion badge without a category can never be earned")
        return 0, 0
    module_ids = set(await ctx.category_module_ids(criteria.specific_value))
    completed = module_ids & set(await ctx.completed_module_ids())
    # An empty category has required == 0 and is never complete
    return len(completed), len(module_ids)


async def _measure_quiz_score(criteria: BadgeCriteria, ctx: CriteriaContext) -> Tuple[int, int]:
    results = [
        r for r in await ctx.quiz_results()
        if r.completed and (not criteria.specific_value or r.module_id == criteria.specific_value)
    ]
    best = max((r.score for r in results), default=0)
    return best, criteria.threshold


async def _measure_level_reached(criteria: BadgeCriteria, ctx: CriteriaContext) -> Tuple[int, int]:
    if criteria.specific_value:
        required = Level(criteria.specific_value)
    else:
        required = _LEVELS_BY_RANK.get(criteria.threshold, Level.LEADER)
    reached = level_at_least(ctx.level, required)
    return (required.rank + 1 if reached else ctx.level.rank + 1), required.rank + 1


async def _measure_streak_days(criteria: BadgeCriteria, ctx: CriteriaContext) -> Tuple[int, int]:
    if criteria.specific_value:
        categories = [StreakCategory(criteria.specific_value)]
    else:
        categories = list(StreakCategory)
    best = 0
    for category in categories:
        best = max(best, await ctx.current_streak(category))
    return best, criteria.threshold


CRITERIA_MEASURES: Dict[CriteriaKind, Callable[[BadgeCriteria, CriteriaContext], Awaitable[Tuple[int, int]]]] = {
    **{kind: _measure_count for kind in COUNT_QUERIES},
    CriteriaKind.SPECIFIC_ACTION: _measure_specific_action,
    CriteriaKind.MODULE_COMPLETION: _measure_module_completion,
    CriteriaKind.CATEGORY_COMPLETION: _measure_category_completion,
    CriteriaKind.QUIZ_SCORE: _measure_quiz_score,
    CriteriaKind.LEVEL_REACHED: _measure_level_reached,
    CriteriaKind.STREAK_DAYS: _measure_streak_days,
}

_missing = [kind.value for kind in CriteriaKind if kind not in CRITERIA_MEASURES]
if _missing:
    raise RuntimeError(f"CRITERIA_MEASURES has no entry for: {', '.join(_missing)}")


async def measure(badge: BadgeDefinition, ctx: CriteriaContext) -> Tuple[int, int]:
    return await CRITERIA_MEASURES[badge.criteria.kind](badge.criteria, ctx)


def is_met(current: int, required: int) -> bool:
    return required > 0 and current >= required


class BadgeEvaluator:
    """Rule engine over the badge catalog"""

    def __init__(self, catalog, contributions, points_ledger, streak_calculator):
        """
        Args:
            catalog: Badge catalog with async ``list_badges`` and ``get_badge``
            contributions: Collaborator repository (counts, modules, quizzes)
            points_ledger: PointsLedger used to grant badges and their rewards
            streak_calculator: StreakCalculator for streak_days badges
        """
        self.catalog = catalog
        self.contributions = contributions
        self.ledger = points_ledger
        self.streaks = streak_calculator

    async def check_and_award_badges(
        self,
        user: UserAggregate,
        action_kind: Optional[ActionKind] = None
    ) -> List[BadgeAward]:
        """
        Award every badge the user newly qualifies for

        Args:
            user: User state after the action's points were applied
            action_kind: Triggering action

        Returns:
            Newly awarded badges in evaluation order (empty if none)
        """
        try:
            badges = await self.catalog.list_badges()
        except Exception as e:
            logger.error(f"Could not load badge catalog for user {user.id}: {e}", exc_info=True)
            return []

        owned = set(user.badges)
        ctx = CriteriaContext(user, action_kind, self.contributions, self.streaks)
        awarded: List[BadgeAward] = []

        # Level badges go last so they see levels reached through other badge rewards
        pending = sorted(
            (b for b in badges if b.code not in owned),
            key=lambda b: b.criteria.kind == CriteriaKind.LEVEL_REACHED,
        )

        for badge in pending:
            try:
                current, required = await measure(badge, ctx)
                if not is_met(current, required):
                    continue

                application = await self.ledger.apply_badge_reward(user.id, badge)
                if application is None:
                    # Another request got there first
                    continue

                ctx.level = application.level
                awarded.append(BadgeAward(badge=badge, application=application))
                metrics.badges_awarded_total.labels(badge_code=badge.code).inc()

            except Exception as e:
                metrics.badge_evaluation_errors_total.labels(criteria_kind=badge.criteria.kind.value).inc()
                logger.error(
                    f"Badge {badge.code} evaluation failed for user {user.id}: {e}",
                    exc_info=True,
                )

        if awarded:
            logger.info(
                f"User {user.id} earned {len(awarded)} badge(s): "
                f"{', '.join(a.badge.code for a in awarded)}"
            )

        return awarded

    async def get_badge_progress(self, user: UserAggregate, badge_code: str) -> BadgeProgress:
        """
        Progress toward one badge

        Raises:
            RecordNotFoundError: unknown badge code
        """
        badge = await self.catalog.get_badge(badge_code)
        if badge is None:
            raise RecordNotFoundError(
                f"Badge not found: {badge_code}",
                record_type="Badge",
                record_id=badge_code,
                user_id=user.id,
            )

        is_awarded = badge.code in user.badges
        ctx = CriteriaContext(user, None, self.contributions, self.streaks)
        current, required = await measure(badge, ctx)

        if is_awarded:
            percent = 100
        elif required > 0:
            percent = min(100, current * 100 // required)
        else:
            percent = 0

        return BadgeProgress(
            badge=badge,
            current=current,
            threshold=required,
            progress_percent=percent,
            is_awarded=is_awarded,
        )
