"""Domain models package."""

from .account import (
    AdminAction,
    AdminRole,
    AdminUser,
    AuditLogEntry,
    AuthSession,
    Suspension,
    User,
    UserAccount,
    UserStats,
)
from .category import Category
from .insight import Insight
from .message import Message, Role
from .progression import (
    CategoryProgressView,
    MilestoneStage,
    Phase,
    ProgressionState,
    ProgressSnapshot,
    TurnResult,
)
from .session import CategoryProgress, ChatSession, ConversationState

__all__ = [
    "AdminAction",
    "AdminRole",
    "AdminUser",
    "AuditLogEntry",
    "AuthSession",
    "Suspension",
    "User",
    "UserAccount",
    "UserStats",
    "Category",
    "Insight",
    "Message",
    "Role",
    "CategoryProgressView",
    "MilestoneStage",
    "Phase",
    "ProgressionState",
    "ProgressSnapshot",
    "TurnResult",
    "CategoryProgress",
    "ChatSession",
    "ConversationState",
]
