"""
Level Resolver

Maps cumulative impact points to a level tier.

Leveling Curve:
- Citizen:  0-99 points
- Advocate: 100-499 points
- Leader:   500+ points

Levels are never stored independently of points: every write that changes the
point total re-resolves the level in the same storage operation.
"""

from typing import List

from pledgepoint.models.gamification import LevelProgress
from pledgepoint.models.user import Level

# Lower bound of each tier
LEVEL_THRESHOLDS = {
    Level.CITIZEN: 0,
    Level.ADVOCATE: 100,
    Level.LEADER: 500,
}

UNLOCKED_FEATURES = {
    Level.CITIZEN: [],
    Level.ADVOCATE: ["Campaign creation", "Evidence verification"],
    Level.LEADER: ["Forum moderation", "Featured campaigns", "District leaderboard spotlight"],
}


def resolve_level(points: int) -> Level:
    """Return the level tier for a point total"""
    if points >= LEVEL_THRESHOLDS[Level.LEADER]:
        return Level.LEADER
    elif points >= LEVEL_THRESHOLDS[Level.ADVOCATE]:
        return Level.ADVOCATE
    return Level.CITIZEN


def next_level(level: Level) -> Level:
    """Tier after ``level``; leader is its own successor"""
    if level == Level.CITIZEN:
        return Level.ADVOCATE
    return Level.LEADER


def next_level_progress(points: int) -> LevelProgress:
    """
    Calculate progress toward the next level

    Progress is the floor of the linear interpolation between the current
    tier's lower bound and the next tier's bound. Leaders are pinned at 100.

    Returns:
        LevelProgress(current_level, next_level, progress_percent)
    """
    current = resolve_level(points)
    upcoming = next_level(current)

    if current == Level.LEADER:
        return LevelProgress(current_level=current, next_level=upcoming, progress_percent=100)

    lower = LEVEL_THRESHOLDS[current]
    upper = LEVEL_THRESHOLDS[upcoming]
    progress = ((max(points, 0) - lower) * 100) // (upper - lower)

    return LevelProgress(
        current_level=current,
        next_level=upcoming,
        progress_percent=max(0, min(100, progress)),
    )


def unlocked_features(level: Level) -> List[str]:
    """Features that become available on reaching ``level``"""
    return list(UNLOCKED_FEATURES[level])


def level_at_least(level: Level, required: Level) -> bool:
    """Compare tiers in the order citizen < advocate < leader"""
    return level.rank >= required.rank
