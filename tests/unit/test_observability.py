"""Tests for notification sink and Sentry event filtering"""
import pytest

from pledgepoint.exceptions import QueryError, UserNotFoundError
from pledgepoint.models.user import Level
from pledgepoint.observability.sentry_config import _before_send, init_sentry
from pledgepoint.services.notifications import LoggingNotificationSink


def hint_for(error):
    return {"exc_info": (type(error), error, None)}


def test_before_send_drops_expected_errors():
    event = {"message": "x"}

    assert _before_send(event, hint_for(UserNotFoundError("64f0c2"))) is None


def test_before_send_keeps_database_errors():
    event = {"message": "x"}

    assert _before_send(event, hint_for(QueryError("insert failed"))) is event
    assert _before_send(event, {}) is event


def test_init_sentry_disabled(monkeypatch):
    from pledgepoint import config
    monkeypatch.setattr(config, "ENABLE_SENTRY", False)

    assert init_sentry() is False


@pytest.mark.asyncio
async def test_logging_sink(caplog):
    sink = LoggingNotificationSink()

    with caplog.at_level("INFO", logger="pledgepoint.services.notifications"):
        await sink.send_level_up("64f0c2", Level.ADVOCATE, ["Campaign creation"])
        await sink.send_badge_earned("64f0c2", "first_voice", "Your voice matters!")

    assert "reached advocate" in caplog.text
    assert "first_voice" in caplog.text
