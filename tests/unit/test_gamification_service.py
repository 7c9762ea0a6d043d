"""Unit tests for GamificationService"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from prometheus_client import REGISTRY

from pledgepoint.exceptions import QueryError, RecordNotFoundError, UserNotFoundError, ValidationError
from pledgepoint.models.activity import ActionKind, RelatedType, StreakCategory
from pledgepoint.models.user import Level, UserAggregate


# Test record_action
@pytest.mark.asyncio
async def test_record_action_first_rating(gamification_service, contributions, activity_repository, test_user_id, notifier):
    """Test a first rating earns 10 points plus the First Voice badge"""
    contributions.set_count(test_user_id, "ratings", 1)

    result = await gamification_service.record_action(
        test_user_id,
        ActionKind.RATE_OFFICIAL,
        related_id="official-42",
        related_type="Official",
    )

    assert result.points_awarded == 10
    assert result.badge_points_awarded == 10
    assert result.total_points == 20
    assert result.level == Level.CITIZEN
    assert result.level_changed_to is None
    assert result.badges_awarded == ["first_voice"]
    assert result.streak.current_streak == 1

    events = await activity_repository.query(test_user_id)
    assert len(events) == 1
    assert events[0].related_type == RelatedType.OFFICIAL
    assert events[0].related_id == "official-42"

    notifier.send_badge_earned.assert_awaited_once()
    notifier.send_level_up.assert_not_awaited()


@pytest.mark.asyncio
async def test_record_action_level_up_notifies(gamification_service, user_repository, notifier):
    """Test crossing 100 points reports the new level and sends one level-up"""
    user_repository.add_user(UserAggregate(id="u95", first_name="Esi", impact_points=95))

    result = await gamification_service.record_action("u95", ActionKind.RATE_OFFICIAL)

    assert result.total_points == 105
    assert result.level == Level.ADVOCATE
    assert result.level_changed_to == Level.ADVOCATE
    assert "advocate" in result.badges_awarded
    notifier.send_level_up.assert_awaited_once()
    args = notifier.send_level_up.await_args[0]
    assert args[0] == "u95"
    assert args[1] == Level.ADVOCATE
    assert "Campaign creation" in args[2]


@pytest.mark.asyncio
async def test_record_action_join_awards_first_step(gamification_service, test_user_id):
    result = await gamification_service.record_action(test_user_id, "join")

    assert result.points_awarded == 5
    assert result.badges_awarded == ["first_step"]
    assert result.total_points == 15
    assert result.streak is None


@pytest.mark.asyncio
async def test_record_action_unknown_kind_is_logged_as_other(gamification_service, activity_repository, test_user_id):
    result = await gamification_service.record_action(test_user_id, "shared_on_social", {"network": "x"})

    assert result.points_awarded == 5
    events = await activity_repository.query(test_user_id)
    assert events[0].kind == ActionKind.OTHER
    assert events[0].details == {"network": "x", "action": "shared_on_social"}


@pytest.mark.asyncio
async def test_record_action_mixed_naive_and_aware_timestamps(gamification_service, activity_repository, test_user_id):
    """Test a naive occurred_at is stored as UTC and later actions still work"""
    last_week = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(weeks=1)
    await gamification_service.record_action(test_user_id, ActionKind.RATE_OFFICIAL, occurred_at=last_week)

    result = await gamification_service.record_action(test_user_id, ActionKind.RATE_OFFICIAL)

    assert result.streak.current_streak == 2
    events = await activity_repository.query(test_user_id)
    assert len(events) == 2
    assert all(e.created_at.tzinfo is not None for e in events)
    assert events[0].created_at == last_week.replace(tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_record_action_accepts_hyphenated_names(gamification_service, activity_repository, test_user_id):
    result = await gamification_service.record_action(test_user_id, "rate-official")

    assert result.points_awarded == 10
    assert result.streak.category == StreakCategory.CIVIC
    events = await activity_repository.query(test_user_id)
    assert events[0].kind == ActionKind.RATE_OFFICIAL


@pytest.mark.asyncio
async def test_record_action_module_reward(gamification_service, test_user_id):
    result = await gamification_service.record_action(
        test_user_id, ActionKind.COMPLETE_MODULE, {"points_reward": 30}, related_type=RelatedType.LEARNING_MODULE
    )

    assert result.points_awarded == 30
    assert result.streak.category == StreakCategory.LEARNING


@pytest.mark.asyncio
async def test_record_action_fourth_consecutive_week(gamification_service, activity_repository, test_user_id):
    """Test three earlier weeks plus this one give a x1.5 civic multiplier"""
    now = datetime.now(timezone.utc)
    for week in (1, 2, 3):
        await gamification_service.activity_log.record(
            test_user_id, ActionKind.RATE_OFFICIAL, occurred_at=now - timedelta(weeks=week)
        )

    result = await gamification_service.record_action(test_user_id, ActionKind.SUBMIT_EVIDENCE)

    assert result.streak.current_streak == 4
    assert result.streak.multiplier == 1.5
    assert result.points_awarded == 30


@pytest.mark.asyncio
async def test_record_action_unknown_user_records_nothing(gamification_service, activity_repository):
    with pytest.raises(UserNotFoundError):
        await gamification_service.record_action("ghost", ActionKind.RATE_OFFICIAL)

    assert await activity_repository.query("ghost") == []


@pytest.mark.asyncio
async def test_record_action_invalid_related_type(gamification_service, activity_repository, test_user_id):
    with pytest.raises(ValidationError):
        await gamification_service.record_action(test_user_id, ActionKind.RATE_OFFICIAL, related_type="Spaceship")

    assert await activity_repository.query(test_user_id) == []


@pytest.mark.asyncio
async def test_record_action_append_failure_applies_nothing(gamification_service, activity_repository, user_repository, test_user_id):
    """Test a failed log append fails the action before any points are applied"""
    activity_repository.append = AsyncMock(side_effect=QueryError("insert failed"))
    before = REGISTRY.get_sample_value(
        "gamification_actions_recorded_total", {"action_kind": "post_comment", "status": "error"}
    ) or 0.0

    with pytest.raises(QueryError):
        await gamification_service.record_action(test_user_id, ActionKind.POST_COMMENT)

    user = await user_repository.get_user(test_user_id)
    assert user.impact_points == 0
    after = REGISTRY.get_sample_value(
        "gamification_actions_recorded_total", {"action_kind": "post_comment", "status": "error"}
    )
    assert after - before == 1


@pytest.mark.asyncio
async def test_record_action_notification_failure_is_swallowed(gamification_service, contributions, notifier, user_repository, test_user_id):
    """Test a broken notifier never undoes the badge or the points"""
    contributions.set_count(test_user_id, "ratings", 1)
    notifier.send_badge_earned = AsyncMock(side_effect=RuntimeError("push gateway down"))

    result = await gamification_service.record_action(test_user_id, ActionKind.RATE_OFFICIAL)

    assert result.badges_awarded == ["first_voice"]
    user = await user_repository.get_user(test_user_id)
    assert user.badges == ["first_voice"]
    assert user.impact_points == 20


@pytest.mark.asyncio
async def test_concurrent_record_action_awards_badge_once(gamification_service, contributions, user_repository, test_user_id):
    """Test concurrent actions that all qualify still award the badge and its reward once"""
    contributions.set_count(test_user_id, "evidence", 1)

    results = await asyncio.gather(*[
        gamification_service.record_action(test_user_id, ActionKind.SUBMIT_EVIDENCE) for _ in range(5)
    ])

    awarded = [code for r in results for code in r.badges_awarded]
    assert awarded.count("promise_seeker") == 1
    user = await user_repository.get_user(test_user_id)
    assert user.badges.count("promise_seeker") == 1
    assert user.impact_points == sum(r.points_awarded for r in results) + 10


# Test read operations
@pytest.mark.asyncio
async def test_get_user_streak(gamification_service, test_user_id):
    await gamification_service.record_action(test_user_id, ActionKind.START_MODULE)

    streak = await gamification_service.get_user_streak(test_user_id, "learning")

    assert streak.current_streak == 1
    assert streak.category == StreakCategory.LEARNING


@pytest.mark.asyncio
async def test_get_user_streak_invalid_category(gamification_service, test_user_id):
    with pytest.raises(ValidationError):
        await gamification_service.get_user_streak(test_user_id, "monthly")


@pytest.mark.asyncio
async def test_get_level_progress(gamification_service, user_repository):
    user_repository.add_user(UserAggregate(id="mid", impact_points=300, level=Level.ADVOCATE))

    progress = await gamification_service.get_level_progress("mid")

    assert progress.current_level == Level.ADVOCATE
    assert progress.next_level == Level.LEADER
    assert progress.progress_percent == 50


@pytest.mark.asyncio
async def test_get_level_progress_unknown_user(gamification_service):
    with pytest.raises(UserNotFoundError):
        await gamification_service.get_level_progress("ghost")


@pytest.mark.asyncio
async def test_get_badge_progress(gamification_service, contributions, test_user_id):
    contributions.set_count(test_user_id, "evidence", 2)

    progress = await gamification_service.get_badge_progress(test_user_id, "promise_tracker")

    assert progress.current == 2
    assert progress.threshold == 5
    assert progress.progress_percent == 40


@pytest.mark.asyncio
async def test_get_badge_progress_unknown_badge(gamification_service, test_user_id):
    with pytest.raises(RecordNotFoundError):
        await gamification_service.get_badge_progress(test_user_id, "astronaut")


@pytest.mark.asyncio
async def test_get_points_history(gamification_service, contributions, test_user_id):
    contributions.set_count(test_user_id, "ratings", 1)
    await gamification_service.record_action(test_user_id, ActionKind.RATE_OFFICIAL)

    history = await gamification_service.get_points_history(test_user_id)

    assert {t.source for t in history} == {"rate_official", "badge:first_voice"}
    assert sum(t.amount for t in history) == 20


@pytest.mark.asyncio
async def test_get_leaderboard(gamification_service, user_repository):
    user_repository.add_user(UserAggregate(id="a", first_name="Kwame", last_name="Boateng", impact_points=300, district="Kumasi"))
    user_repository.add_user(UserAggregate(id="b", first_name="Efua", last_name="Owusu", impact_points=520, district="Kumasi"))
    user_repository.add_user(UserAggregate(id="c", first_name="Yaw", impact_points=900, active=False))

    board = await gamification_service.get_leaderboard(limit=3)

    assert [e.user_id for e in board] == ["b", "a", "64f0c2a1"]
    assert [e.rank for e in board] == [1, 2, 3]
    assert board[0].name == "Efua O."
    assert board[2].district == "Accra Central"


@pytest.mark.asyncio
async def test_get_leaderboard_by_district_and_badges(gamification_service, user_repository):
    user_repository.add_user(UserAggregate(id="a", first_name="Kwame", impact_points=300, district="Kumasi", badges=["x"]))
    user_repository.add_user(UserAggregate(id="b", first_name="Efua", impact_points=520, district="Kumasi"))

    board = await gamification_service.get_leaderboard(category="badges", district="Kumasi")

    assert [e.user_id for e in board] == ["a", "b"]
    assert board[0].badge_count == 1


@pytest.mark.asyncio
async def test_get_leaderboard_validation(gamification_service):
    with pytest.raises(ValidationError):
        await gamification_service.get_leaderboard(category="streaks")
    with pytest.raises(ValidationError):
        await gamification_service.get_leaderboard(limit=0)


@pytest.mark.asyncio
async def test_seed_badge_catalog_only_when_empty(gamification_service, badge_catalog):
    assert await gamification_service.seed_badge_catalog() == 0
    assert await badge_catalog.count() == 10
