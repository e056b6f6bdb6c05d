"""Progression read models.

Phase and state labels published by the progression controller, plus the
snapshot and turn result shapes returned to the API layer.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Phase(str, Enum):
    """Feature phase derived from the overall percentage."""

    INTERVIEW = "interview"
    TEST_UNLOCKED = "test_unlocked"


class ProgressionState(str, Enum):
    """Controller state for one session.

    BOOTSTRAPPING is transient inside bootstrap_if_needed and never
    published.
    """

    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    IN_CATEGORY = "in_category"
    ALL_CATEGORIES_COMPLETE = "all_categories_complete"


class MilestoneStage(str, Enum):
    FOUNDATION = "foundation"
    TEST_UNLOCKED = "test_unlocked"
    COMPLETE = "complete"


class CategoryProgressView(BaseModel):
    """Category progress joined with its category for display."""

    category_id: str
    name: str
    order_index: int
    questions_asked: int
    target_questions: int
    is_completed: bool


class ProgressSnapshot(BaseModel):
    """Everything the shell needs to render progress for a session."""

    session_id: str
    state: ProgressionState
    progress_percentage: int = Field(ge=0, le=100)
    questions_answered: int = Field(ge=0)
    overall_target: int
    phase: Phase
    milestone_stage: str
    current_category_id: Optional[str] = None
    current_category_name: Optional[str] = None
    categories: List[CategoryProgressView] = Field(default_factory=list)


class TurnResult(BaseModel):
    """Outcome of one recorded turn."""

    session_id: str
    assistant_text: str
    fallback_used: bool = False
    category_advanced: bool = False
    snapshot: ProgressSnapshot
