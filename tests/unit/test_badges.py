"""Unit tests for the Badge Evaluator (pledgepoint/gamification/badges.py)"""
import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from prometheus_client import REGISTRY

from pledgepoint.exceptions import RecordNotFoundError
from pledgepoint.gamification.activity_log import ActivityLog
from pledgepoint.gamification.badges import BadgeEvaluator, CRITERIA_MEASURES, is_met
from pledgepoint.gamification.memory_store import InMemoryBadgeCatalog
from pledgepoint.gamification.points import PointsLedger
from pledgepoint.gamification.streaks import StreakCalculator
from pledgepoint.models.activity import ActionKind, ActivityEvent
from pledgepoint.models.badge import BadgeCriteria, BadgeDefinition, CriteriaKind, QuizResult
from pledgepoint.models.user import Level, UserAggregate


def badge(code, kind, threshold=1, specific_value=None, reward=10):
    return BadgeDefinition(
        code=code,
        name=code.replace("_", " ").title(),
        description=f"{code} badge",
        category="test",
        criteria=BadgeCriteria(kind=kind, threshold=threshold, specific_value=specific_value),
        points_reward=reward,
    )


def build_evaluator(catalog, user_repository, activity_repository, contributions):
    streaks = StreakCalculator(ActivityLog(activity_repository), user_repository, "UTC")
    ledger = PointsLedger(user_repository, streaks)
    return BadgeEvaluator(catalog, contributions, ledger, streaks)


@pytest.fixture
def evaluator(badge_catalog, user_repository, activity_repository, contributions):
    """Evaluator over the default catalog"""
    return build_evaluator(badge_catalog, user_repository, activity_repository, contributions)


def test_every_criteria_kind_has_a_measure():
    assert set(CRITERIA_MEASURES) == set(CriteriaKind)


def test_is_met_requires_positive_requirement():
    assert is_met(3, 3)
    assert not is_met(2, 3)
    assert not is_met(0, 0)


# ============================================================================
# Count Criteria Tests
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("ratings,expected", [
    (9, {"first_voice"}),
    (10, {"first_voice", "active_rater"}),
    (11, {"first_voice", "active_rater"}),
])
async def test_rating_count_threshold(evaluator, user_repository, contributions, test_user_id, ratings, expected):
    """Test active_rater is awarded at exactly 10 ratings, not 9"""
    contributions.set_count(test_user_id, "ratings", ratings)
    user = await user_repository.get_user(test_user_id)

    awards = await evaluator.check_and_award_badges(user, ActionKind.RATE_OFFICIAL)

    assert {a.badge.code for a in awards} == expected


@pytest.mark.asyncio
async def test_badges_awarded_once(evaluator, user_repository, contributions, test_user_id):
    contributions.set_count(test_user_id, "evidence", 5)

    user = await user_repository.get_user(test_user_id)
    first = await evaluator.check_and_award_badges(user, ActionKind.SUBMIT_EVIDENCE)
    user = await user_repository.get_user(test_user_id)
    second = await evaluator.check_and_award_badges(user, ActionKind.SUBMIT_EVIDENCE)

    assert {a.badge.code for a in first} == {"promise_seeker", "promise_tracker"}
    assert second == []
    user = await user_repository.get_user(test_user_id)
    assert user.impact_points == 35  # 10 + 25


@pytest.mark.asyncio
async def test_concurrent_evaluations_award_once(evaluator, user_repository, contributions, test_user_id):
    """Test racing evaluations with a stale view of the user still grant one badge and one reward"""
    contributions.set_count(test_user_id, "campaigns", 1)
    stale = await user_repository.get_user(test_user_id)

    results = await asyncio.gather(*[
        evaluator.check_and_award_badges(stale, ActionKind.CREATE_CAMPAIGN) for _ in range(10)
    ])

    codes = [a.badge.code for awards in results for a in awards]
    assert codes == ["campaign_starter"]
    user = await user_repository.get_user(test_user_id)
    assert user.badges == ["campaign_starter"]
    assert user.impact_points == 10


@pytest.mark.asyncio
@pytest.mark.parametrize("kind,count_name", [
    (CriteriaKind.REVIEW_COUNT, "long_reviews"),
    (CriteriaKind.CAMPAIGN_SUPPORT_COUNT, "campaign_supports"),
    (CriteriaKind.DISCUSSION_COUNT, "discussions"),
    (CriteriaKind.UPVOTE_COUNT, "upvotes"),
])
async def test_other_count_criteria(user_repository, activity_repository, contributions, test_user_id, kind, count_name):
    catalog = InMemoryBadgeCatalog([badge("counted", kind, threshold=3)])
    evaluator = build_evaluator(catalog, user_repository, activity_repository, contributions)
    user = await user_repository.get_user(test_user_id)

    contributions.set_count(test_user_id, count_name, 2)
    assert await evaluator.check_and_award_badges(user) == []

    contributions.set_count(test_user_id, count_name, 3)
    awards = await evaluator.check_and_award_badges(user)
    assert [a.badge.code for a in awards] == ["counted"]


# ============================================================================
# Action, Module, Quiz Criteria Tests
# ============================================================================

@pytest.mark.asyncio
async def test_specific_action(evaluator, user_repository, test_user_id):
    user = await user_repository.get_user(test_user_id)

    assert await evaluator.check_and_award_badges(user, ActionKind.RATE_OFFICIAL) == []
    awards = await evaluator.check_and_award_badges(user, ActionKind.JOIN)

    assert [a.badge.code for a in awards] == ["first_step"]


@pytest.mark.asyncio
async def test_named_module_completion(evaluator, user_repository, contributions, test_user_id):
    contributions.complete_module(test_user_id, "budget_basics")
    user = await user_repository.get_user(test_user_id)

    awards = await evaluator.check_and_award_badges(user, ActionKind.COMPLETE_MODULE)
    assert [a.badge.code for a in awards] == ["civic_novice"]

    contributions.complete_module(test_user_id, "citizens_rights")
    user = await user_repository.get_user(test_user_id)
    awards = await evaluator.check_and_award_badges(user, ActionKind.COMPLETE_MODULE)
    assert [a.badge.code for a in awards] == ["rights_defender"]


@pytest.mark.asyncio
async def test_category_completion(user_repository, activity_repository, contributions, test_user_id):
    catalog = InMemoryBadgeCatalog([
        badge("governance_grad", CriteriaKind.CATEGORY_COMPLETION, specific_value="governance"),
        badge("empty_grad", CriteriaKind.CATEGORY_COMPLETION, specific_value="nothing_here"),
    ])
    evaluator = build_evaluator(catalog, user_repository, activity_repository, contributions)
    contributions.set_category_modules("governance", ["g1", "g2"])
    contributions.complete_module(test_user_id, "g1")
    user = await user_repository.get_user(test_user_id)

    assert await evaluator.check_and_award_badges(user) == []

    contributions.complete_module(test_user_id, "g2")
    awards = await evaluator.check_and_award_badges(user)

    # The empty category is never complete
    assert [a.badge.code for a in awards] == ["governance_grad"]


@pytest.mark.asyncio
async def test_quiz_score(user_repository, activity_repository, contributions, test_user_id):
    catalog = InMemoryBadgeCatalog([
        badge("quiz_ace", CriteriaKind.QUIZ_SCORE, threshold=90),
        badge("rights_ace", CriteriaKind.QUIZ_SCORE, threshold=80, specific_value="citizens_rights"),
    ])
    evaluator = build_evaluator(catalog, user_repository, activity_repository, contributions)
    contributions.add_quiz_result(test_user_id, QuizResult(module_id="budget_basics", score=95, completed=False))
    contributions.add_quiz_result(test_user_id, QuizResult(module_id="budget_basics", score=85))
    user = await user_repository.get_user(test_user_id)

    # Incomplete attempts don't count, 85 on the wrong module doesn't either
    assert await evaluator.check_and_award_badges(user) == []

    contributions.add_quiz_result(test_user_id, QuizResult(module_id="citizens_rights", score=92))
    awards = await evaluator.check_and_award_badges(user)

    assert {a.badge.code for a in awards} == {"quiz_ace", "rights_ace"}


# ============================================================================
# Level and Streak Criteria Tests
# ============================================================================

@pytest.mark.asyncio
async def test_level_badge_sees_level_from_earlier_rewards(user_repository, activity_repository, contributions):
    """Test a badge reward that crosses 100 points unlocks the advocate badge in the same pass"""
    user_repository.add_user(UserAggregate(id="near", impact_points=95))
    catalog = InMemoryBadgeCatalog([
        badge("advocate", CriteriaKind.LEVEL_REACHED, threshold=2, specific_value="advocate", reward=0),
        badge("first_voice", CriteriaKind.RATING_COUNT, threshold=1, reward=10),
    ])
    evaluator = build_evaluator(catalog, user_repository, activity_repository, contributions)
    contributions.set_count("near", "ratings", 1)
    user = await user_repository.get_user("near")

    awards = await evaluator.check_and_award_badges(user, ActionKind.RATE_OFFICIAL)

    assert [a.badge.code for a in awards] == ["first_voice", "advocate"]
    assert awards[-1].application.level == Level.ADVOCATE


@pytest.mark.asyncio
async def test_level_reached_by_threshold_rank(user_repository, activity_repository, contributions):
    user_repository.add_user(UserAggregate(id="lead", impact_points=800, level=Level.LEADER))
    catalog = InMemoryBadgeCatalog([badge("top_tier", CriteriaKind.LEVEL_REACHED, threshold=3)])
    evaluator = build_evaluator(catalog, user_repository, activity_repository, contributions)
    user = await user_repository.get_user("lead")

    awards = await evaluator.check_and_award_badges(user)

    assert [a.badge.code for a in awards] == ["top_tier"]


@pytest.mark.asyncio
async def test_streak_days(user_repository, activity_repository, contributions, test_user_id):
    catalog = InMemoryBadgeCatalog([badge("daily_learner", CriteriaKind.STREAK_DAYS, threshold=3, specific_value="learning")])
    evaluator = build_evaluator(catalog, user_repository, activity_repository, contributions)
    now = datetime.now(timezone.utc)
    for days in range(3):
        await activity_repository.append(
            ActivityEvent(user_id=test_user_id, kind=ActionKind.START_MODULE, created_at=now - timedelta(days=days))
        )
    user = await user_repository.get_user(test_user_id)

    awards = await evaluator.check_and_award_badges(user, ActionKind.START_MODULE)

    assert [a.badge.code for a in awards] == ["daily_learner"]


# ============================================================================
# Failure Isolation Tests
# ============================================================================

@pytest.mark.asyncio
async def test_one_failing_badge_does_not_block_others(evaluator, user_repository, contributions, test_user_id):
    contributions.set_count(test_user_id, "ratings", 1)
    contributions.set_count(test_user_id, "evidence", 1)
    contributions.count_ratings = AsyncMock(side_effect=RuntimeError("ratings service down"))
    before = REGISTRY.get_sample_value(
        "gamification_badge_evaluation_errors_total", {"criteria_kind": "rating_count"}
    ) or 0.0
    user = await user_repository.get_user(test_user_id)

    awards = await evaluator.check_and_award_badges(user, ActionKind.SUBMIT_EVIDENCE)

    assert [a.badge.code for a in awards] == ["promise_seeker"]
    after = REGISTRY.get_sample_value(
        "gamification_badge_evaluation_errors_total", {"criteria_kind": "rating_count"}
    )
    # first_voice and active_rater both failed
    assert after - before == 2


@pytest.mark.asyncio
async def test_catalog_failure_returns_no_badges(user_repository, activity_repository, contributions, test_user_id):
    catalog = InMemoryBadgeCatalog()
    catalog.list_badges = AsyncMock(side_effect=RuntimeError("catalog unavailable"))
    evaluator = build_evaluator(catalog, user_repository, activity_repository, contributions)
    user = await user_repository.get_user(test_user_id)

    assert await evaluator.check_and_award_badges(user) == []


# ============================================================================
# Progress Tests
# ============================================================================

@pytest.mark.asyncio
async def test_badge_progress(evaluator, user_repository, contributions, test_user_id):
    contributions.set_count(test_user_id, "ratings", 4)
    user = await user_repository.get_user(test_user_id)

    progress = await evaluator.get_badge_progress(user, "active_rater")

    assert progress.current == 4
    assert progress.threshold == 10
    assert progress.progress_percent == 40
    assert progress.is_awarded is False


@pytest.mark.asyncio
async def test_badge_progress_awarded_is_complete(evaluator, user_repository, test_user_id):
    user = (await user_repository.get_user(test_user_id)).model_copy(update={"badges": ["active_rater"]})

    progress = await evaluator.get_badge_progress(user, "active_rater")

    assert progress.is_awarded is True
    assert progress.progress_percent == 100


@pytest.mark.asyncio
async def test_badge_progress_unknown_code(evaluator, user_repository, test_user_id):
    user = await user_repository.get_user(test_user_id)

    with pytest.raises(RecordNotFoundError):
        await evaluator.get_badge_progress(user, "no_such_badge")
