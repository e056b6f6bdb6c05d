"""Session domain models for interview progress tracking.

Core Models:
    - ChatSession: One user's interview run with overall progress
    - ConversationState: Per-session cursor (current category)
    - CategoryProgress: Per-session, per-category question count

Lifecycle:
    1. ChatSession created on first visit (progress 0, stage "foundation")
    2. ConversationState + first CategoryProgress created on first interview access
    3. Every answered turn increments the current CategoryProgress and
       recomputes ChatSession progress
    4. All rows destroyed together by an explicit reset
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ChatSession(BaseModel):
    """Top-level interview session.

    Attributes:
        - progress_percentage: 0-100, derived from questions_answered
        - questions_answered: Cumulative answered questions across categories
        - milestone_stage: Free-form lifecycle label
        - target_questions: Fixed overall denominator (135)
    """

    id: str
    user_id: str
    progress_percentage: int = Field(default=0, ge=0, le=100)
    questions_answered: int = Field(default=0, ge=0)
    milestone_stage: str = "foundation"
    target_questions: int = Field(default=135, ge=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ConversationState(BaseModel):
    """Per-session interview cursor.

    current_category_id is None before bootstrap picks a category and when
    no category could be selected at all.
    """

    session_id: str
    current_category_id: Optional[str] = None
    depth: int = 0
    explored_topics: List[str] = Field(default_factory=list)
    asked_questions: List[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utc_now)


class CategoryProgress(BaseModel):
    """Questions asked within one category for one session."""

    id: str
    session_id: str
    category_id: str
    questions_asked: int = Field(default=0, ge=0)
    is_completed: bool = False
    last_question_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
