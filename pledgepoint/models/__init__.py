"""Pydantic models for the gamification engine"""
from pledgepoint.models.activity import ActionKind, ActivityEvent, RelatedType, StreakCategory
from pledgepoint.models.badge import BadgeCriteria, BadgeDefinition, CriteriaKind, QuizResult
from pledgepoint.models.user import Level, StreakSnapshot, UserAggregate
from pledgepoint.models.gamification import (
    ActionResult,
    BadgeProgress,
    LeaderboardEntry,
    LevelProgress,
    PointsApplication,
    PointsAward,
    PointsTransaction,
    StreakInfo,
)

__all__ = [
    "ActionKind",
    "ActivityEvent",
    "RelatedType",
    "StreakCategory",
    "BadgeCriteria",
    "BadgeDefinition",
    "CriteriaKind",
    "QuizResult",
    "Level",
    "StreakSnapshot",
    "UserAggregate",
    "ActionResult",
    "BadgeProgress",
    "LeaderboardEntry",
    "LevelProgress",
    "PointsApplication",
    "PointsAward",
    "PointsTransaction",
    "StreakInfo",
]
