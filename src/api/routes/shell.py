"""
Shell routes: which view to render and the dashboard summary.
"""

from typing import Optional

from fastapi import APIRouter, Query

from src.api.dependencies import (
    AdminServiceDep,
    ContextDep,
    CurrentUserDep,
    ProgressionDep,
    SessionServiceDep,
)
from src.services.shell_service import DashboardData, ViewDecision, build_dashboard, select_view

router = APIRouter(prefix="/shell", tags=["shell"])


@router.get("/view", response_model=ViewDecision)
async def resolve_view(
    user: CurrentUserDep,
    context: ContextDep,
    session_service: SessionServiceDep,
    admin_service: AdminServiceDep,
    requested: Optional[str] = Query(default=None),
):
    session = await session_service.resolve_active_session(user)
    return select_view(
        user,
        is_admin=await admin_service.is_admin(user.id),
        requested=requested,
        progress_percentage=session.progress_percentage,
        threshold=context.config.test_unlock_threshold,
    )


@router.get("/dashboard", response_model=DashboardData)
async def dashboard(
    user: CurrentUserDep,
    session_service: SessionServiceDep,
    controller: ProgressionDep,
):
    session = await session_service.resolve_active_session(user)
    snapshot = await controller.get_snapshot(session.id)
    return build_dashboard(snapshot)
