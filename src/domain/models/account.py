"""Account domain models.

Users come from the identity service; admin roles, suspensions and the
audit log live in the structured store.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """Authenticated user as reported by the identity service."""

    id: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None


class AuthSession(BaseModel):
    """Credential pair issued by the identity service on sign-in."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    user: User


class AdminRole(str, Enum):
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class AdminUser(BaseModel):
    id: str
    email: str
    role: AdminRole = AdminRole.ADMIN
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AdminAction(str, Enum):
    """Audit log action labels."""

    SUSPEND_USER = "SUSPEND_USER"
    UNSUSPEND_USER = "UNSUSPEND_USER"
    DELETE_USER = "DELETE_USER"
    RESET_PASSWORD = "RESET_PASSWORD"


class Suspension(BaseModel):
    id: str
    user_id: str
    suspended_by: str
    reason: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    unsuspended_at: Optional[datetime] = None
    unsuspended_by: Optional[str] = None


class AuditLogEntry(BaseModel):
    """Append-only admin audit record."""

    id: str
    action: str
    admin_id: str
    target_user_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    admin_email: str = "Unknown"
    target_email: str = "Unknown"


class UserAccount(BaseModel):
    """Directory user joined with suspension status for the admin portal."""

    id: str
    email: str
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None
    is_suspended: bool = False


class UserStats(BaseModel):
    total_users: int = 0
    active_users: int = 0
    suspended_users: int = 0
