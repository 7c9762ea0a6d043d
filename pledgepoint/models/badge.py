"""Badge models for gamification"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class CriteriaKind(str, Enum):
    """Closed set of badge eligibility predicates"""
    RATING_COUNT = "rating_count"
    REVIEW_COUNT = "review_count"
    EVIDENCE_COUNT = "evidence_count"
    CAMPAIGN_COUNT = "campaign_count"
    CAMPAIGN_SUPPORT_COUNT = "campaign_support_count"
    MODULE_COMPLETION = "module_completion"
    CATEGORY_COMPLETION = "category_completion"
    QUIZ_SCORE = "quiz_score"
    DISCUSSION_COUNT = "discussion_count"
    UPVOTE_COUNT = "upvote_count"
    LEVEL_REACHED = "level_reached"
    STREAK_DAYS = "streak_days"
    SPECIFIC_ACTION = "specific_action"


class BadgeCriteria(BaseModel):
    """Eligibility rule of a badge"""
    kind: CriteriaKind
    threshold: int = Field(default=1, ge=1)
    specific_value: Optional[str] = None  # module slug, category, level or action


class BadgeDefinition(BaseModel):
    """Badge reference data (read-only for the engine)"""
    model_config = {"frozen": True}

    code: str = Field(min_length=1)
    name: str
    description: str
    category: str
    image: str = ""
    criteria: BadgeCriteria
    points_reward: int = Field(default=0, ge=0)
    unlock_message: str = ""


class QuizResult(BaseModel):
    """Quiz outcome reported by the learning collaborator"""
    module_id: str
    score: int
    completed: bool = True
