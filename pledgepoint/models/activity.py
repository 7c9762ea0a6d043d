"""Activity log models"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class ActionKind(str, Enum):
    """User actions the engine records and rewards"""
    RATE_OFFICIAL = "rate_official"
    REVIEW_OFFICIAL = "review_official"
    SUBMIT_EVIDENCE = "submit_evidence"
    VERIFY_EVIDENCE = "verify_evidence"
    CREATE_CAMPAIGN = "create_campaign"
    SUPPORT_CAMPAIGN = "support_campaign"
    COMPLETE_MODULE = "complete_module"
    RECEIVE_UPVOTE = "receive_upvote"
    POST_COMMENT = "post_comment"
    POST_DISCUSSION = "post_discussion"
    START_MODULE = "start_module"
    COMPLETE_QUIZ = "complete_quiz"
    JOIN = "join"
    OTHER = "other"  # Anything the caller sends that isn't listed above

    @classmethod
    def parse(cls, value: "ActionKind | str") -> "ActionKind":
        """Map a caller-supplied action to a kind, falling back to OTHER"""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        normalized = ACTION_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


# Event names older callers emit for the same actions
ACTION_ALIASES = {
    "upvote_received": "receive_upvote",
    "comment_posted": "post_comment",
    "discussion_posted": "post_discussion",
    "forum_post": "post_discussion",
    "forum_reply": "post_discussion",
}


class RelatedType(str, Enum):
    """Entity kinds an activity can point at"""
    OFFICIAL = "Official"
    PROMISE = "Promise"
    CAMPAIGN = "Campaign"
    LEARNING_MODULE = "LearningModule"
    USER = "User"
    DISCUSSION = "Discussion"
    COMMENT = "Comment"
    RATING = "Rating"


class StreakCategory(str, Enum):
    """Streak cadences: civic is weekly, learning is daily"""
    CIVIC = "civic"
    LEARNING = "learning"


class ActivityEvent(BaseModel):
    """Immutable record of one user action"""
    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    kind: ActionKind
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    related_id: Optional[str] = None
    related_type: Optional[RelatedType] = None
    details: dict[str, Any] = Field(default_factory=dict)

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, value: datetime) -> datetime:
        """Naive timestamps are taken to be UTC"""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
