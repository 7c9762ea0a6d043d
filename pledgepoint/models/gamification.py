"""Result models returned by the gamification engine"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from pledgepoint.models.activity import StreakCategory
from pledgepoint.models.badge import BadgeDefinition
from pledgepoint.models.user import Level


class PointsApplication(BaseModel):
    """Outcome of one atomic point increment"""
    amount: int
    total_points: int
    previous_level: Level
    level: Level

    @property
    def level_changed(self) -> bool:
        return self.level != self.previous_level


class StreakInfo(BaseModel):
    """Streak state and the multiplier it implies"""
    category: StreakCategory
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_at: Optional[datetime] = None
    multiplier: float = 1.0
    is_new_record: bool = False


class PointsAward(BaseModel):
    """Points awarded for a single action"""
    points_awarded: int
    base_points: int
    multiplier: float
    total_points: int
    previous_level: Level
    level: Level
    streak: Optional[StreakInfo] = None

    @property
    def level_changed_to(self) -> Optional[Level]:
        return self.level if self.level != self.previous_level else None


class LevelProgress(BaseModel):
    """Progress from the current level toward the next one"""
    current_level: Level
    next_level: Level
    progress_percent: int


class BadgeProgress(BaseModel):
    """How close a user is to a badge"""
    badge: BadgeDefinition
    current: int
    threshold: int
    progress_percent: int
    is_awarded: bool


class LeaderboardEntry(BaseModel):
    """One leaderboard row"""
    rank: int
    user_id: str
    name: str
    points: int
    level: Level
    badge_count: int
    district: str = "Unknown"


class PointsTransaction(BaseModel):
    """Ledger row written alongside every point increment"""
    user_id: str
    amount: int
    source: str
    reason: str
    awarded_at: datetime


class ActionResult(BaseModel):
    """What the caller gets back from record_action"""
    points_awarded: int = 0
    badge_points_awarded: int = 0
    total_points: int = 0
    level: Level = Level.CITIZEN
    level_changed_to: Optional[Level] = None
    badges_awarded: list[str] = Field(default_factory=list)
    streak: Optional[StreakInfo] = None
