"""User aggregate as seen by the gamification engine"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from pledgepoint.models.activity import StreakCategory


class Level(str, Enum):
    """Level tiers, lowest first"""
    CITIZEN = "citizen"
    ADVOCATE = "advocate"
    LEADER = "leader"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = [Level.CITIZEN, Level.ADVOCATE, Level.LEADER]


class StreakSnapshot(BaseModel):
    """Persisted streak state for one category"""
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_at: Optional[datetime] = None


class UserAggregate(BaseModel):
    """User state owned by the engine"""
    id: str
    first_name: str = ""
    last_name: str = ""
    district: Optional[str] = None
    active: bool = True
    impact_points: int = Field(default=0, ge=0)
    level: Level = Level.CITIZEN
    badges: list[str] = Field(default_factory=list)
    streaks: dict[StreakCategory, StreakSnapshot] = Field(default_factory=dict)

    def streak(self, category: StreakCategory) -> StreakSnapshot:
        return self.streaks.get(category) or StreakSnapshot()

    @property
    def display_name(self) -> str:
        """First name plus last initial"""
        if self.last_name:
            return f"{self.first_name} {self.last_name[0]}."
        return self.first_name
