"""
API request/response schemas.

Pydantic models for API validation and serialization. Domain models are
returned directly where their shape is already the response shape.
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime

from src.domain.models.account import AuditLogEntry, User, UserAccount, UserStats
from src.domain.models.insight import Insight
from src.domain.models.message import Message
from src.domain.models.progression import ProgressSnapshot


# ============ AUTH SCHEMAS ============


class CredentialsRequest(BaseModel):
    """Email/password pair for sign-in and sign-up."""

    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=6, max_length=256)


class AuthResponse(BaseModel):
    """Result of sign-in or sign-up.

    access_token is None when sign-up is waiting on email confirmation.
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    user: Optional[User] = None
    confirmation_required: bool = False


class MeResponse(BaseModel):
    user: User
    is_admin: bool = False


# ============ SESSION SCHEMAS ============


class SessionResponse(BaseModel):
    """Session details response."""

    id: str
    user_id: str
    progress_percentage: int
    questions_answered: int
    milestone_stage: str
    target_questions: int
    created_at: datetime
    updated_at: datetime


class MessageListResponse(BaseModel):
    session_id: str
    messages: List[Message]
    total: int


# ============ TURN SCHEMAS ============


class TurnRequest(BaseModel):
    """Request to process a turn."""

    text: str = Field(..., min_length=1, max_length=5000, description="User's answer text")


class TurnResponse(BaseModel):
    """Interviewer reply plus updated progress."""

    session_id: str
    assistant_text: str
    fallback_used: bool
    category_advanced: bool
    progress: ProgressSnapshot


# ============ INSIGHT SCHEMAS ============


class InsightSchema(BaseModel):
    insight: Insight
    confidence_band: str


class InsightListResponse(BaseModel):
    session_id: str
    total: int
    groups: Dict[str, List[InsightSchema]]


# ============ ADMIN SCHEMAS ============


class UserListResponse(BaseModel):
    users: List[UserAccount]
    stats: UserStats


class SuspendRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class PasswordResetRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)


class AuditLogResponse(BaseModel):
    entries: List[AuditLogEntry]
    total: int
