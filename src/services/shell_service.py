"""
Presentation shell dispatch.

Maps the requested view to the one actually shown, given who is signed in
and how far their interview has progressed.
"""

from enum import Enum
from typing import List, Optional

import structlog
from pydantic import BaseModel

from src.domain.models.account import User
from src.domain.models.progression import CategoryProgressView, Phase, ProgressSnapshot
from src.services.progression_service import compute_phase

log = structlog.get_logger(__name__)


class View(str, Enum):
    AUTH = "auth"
    DASHBOARD = "dashboard"
    CORPUS = "corpus"
    INTERVIEW = "interview"
    TEST_MODE = "test_mode"
    DOCUMENTS = "documents"
    BENEFICIARIES = "beneficiaries"
    ACTION_GUIDE = "action_guide"
    SETTINGS = "settings"
    ADMIN = "admin"


class ViewDecision(BaseModel):
    requested: Optional[str] = None
    view: View
    phase: Optional[Phase] = None


class DashboardData(BaseModel):
    progress_percentage: int
    questions_answered: int
    overall_target: int
    test_mode_unlocked: bool
    current_category_name: Optional[str] = None
    categories: List[CategoryProgressView]


def select_view(
    user: Optional[User],
    is_admin: bool,
    requested: Optional[str],
    progress_percentage: int = 0,
    threshold: int = 70,
) -> ViewDecision:
    """
    Resolve the view to render.

    - No user: auth
    - admin: only for admins, otherwise corpus
    - corpus: interview below the unlock threshold, test_mode at or above
    - Unknown or missing: dashboard
    """
    if user is None:
        return ViewDecision(requested=requested, view=View.AUTH)

    try:
        view = View(requested) if requested else View.DASHBOARD
    except ValueError:
        log.debug("unknown_view_requested", requested=requested)
        view = View.DASHBOARD

    if view == View.AUTH:
        view = View.DASHBOARD

    if view == View.ADMIN and not is_admin:
        log.warning("admin_view_denied", user_id=user.id)
        view = View.CORPUS

    phase = compute_phase(progress_percentage, threshold)
    if view in (View.CORPUS, View.INTERVIEW, View.TEST_MODE):
        view = View.TEST_MODE if phase == Phase.TEST_UNLOCKED else View.INTERVIEW

    return ViewDecision(requested=requested, view=view, phase=phase)


def build_dashboard(snapshot: ProgressSnapshot) -> DashboardData:
    return DashboardData(
        progress_percentage=snapshot.progress_percentage,
        questions_answered=snapshot.questions_answered,
        overall_target=snapshot.overall_target,
        test_mode_unlocked=snapshot.phase == Phase.TEST_UNLOCKED,
        current_category_name=snapshot.current_category_name,
        categories=snapshot.categories,
    )
