"""Services for the Carry On interview backend."""

from src.services.admin_service import AdminService
from src.services.context import SessionContext, build_session_context
from src.services.insight_service import InsightService
from src.services.progression_service import (
    ProgressionController,
    compute_phase,
    compute_progress_percentage,
)
from src.services.session_service import SessionService

__all__ = [
    "AdminService",
    "InsightService",
    "ProgressionController",
    "SessionContext",
    "SessionService",
    "build_session_context",
    "compute_phase",
    "compute_progress_percentage",
]
