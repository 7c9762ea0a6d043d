"""
Service Layer Package

Business logic services sitting between callers (API handlers, workers) and
the repositories.

- GamificationService: record_action, streaks, levels, badges, leaderboard
- LoggingNotificationSink: default level-up and badge notifications
"""

from pledgepoint.services.container import ServiceContainer, get_container, init_container
from pledgepoint.services.gamification_service import GamificationService
from pledgepoint.services.notifications import LoggingNotificationSink

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "GamificationService",
    "LoggingNotificationSink",
]
