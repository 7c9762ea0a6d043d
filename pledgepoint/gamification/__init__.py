"""
Gamification engine for PledgePoint

Rewards civic participation with:
- Impact points with streak and level multipliers
- Weekly civic and daily learning streaks
- Citizen / Advocate / Leader levels
- Criteria-driven badges
"""

from pledgepoint.gamification.activity_log import ActivityLog
from pledgepoint.gamification.badges import BadgeEvaluator, is_met, measure
from pledgepoint.gamification.catalog import DEFAULT_BADGES, seed_badge_catalog
from pledgepoint.gamification.levels import next_level_progress, resolve_level, unlocked_features
from pledgepoint.gamification.points import PointsLedger, round_half_up
from pledgepoint.gamification.streaks import StreakCalculator, streak_multiplier

__all__ = [
    "ActivityLog",
    "BadgeEvaluator",
    "is_met",
    "measure",
    "DEFAULT_BADGES",
    "seed_badge_catalog",
    "next_level_progress",
    "resolve_level",
    "unlocked_features",
    "PointsLedger",
    "round_half_up",
    "StreakCalculator",
    "streak_multiplier",
]
