"""Repository implementations."""

from src.persistence.repositories.admin_repo import AdminRepository
from src.persistence.repositories.category_repo import CategoryRepository
from src.persistence.repositories.insight_repo import InsightRepository
from src.persistence.repositories.message_repo import MessageRepository
from src.persistence.repositories.progress_repo import ProgressRepository
from src.persistence.repositories.session_repo import SessionRepository

__all__ = [
    "AdminRepository",
    "CategoryRepository",
    "InsightRepository",
    "MessageRepository",
    "ProgressRepository",
    "SessionRepository",
]
