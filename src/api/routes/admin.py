"""
Admin portal routes.

Every endpoint requires an admin role; actions are recorded in the audit log.
"""

from typing import Optional

from fastapi import APIRouter, Query, status

from src.api.dependencies import AdminServiceDep, CurrentAdminDep
from src.api.schemas import (
    AuditLogResponse,
    PasswordResetRequest,
    SuspendRequest,
    UserListResponse,
)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=UserListResponse)
async def list_users(
    admin: CurrentAdminDep,
    admin_service: AdminServiceDep,
    search: Optional[str] = Query(default=None, max_length=320),
):
    users, stats = await admin_service.list_users(search)
    return UserListResponse(users=users, stats=stats)


@router.post("/users/{user_id}/suspend", status_code=status.HTTP_204_NO_CONTENT)
async def suspend_user(
    user_id: str,
    request: SuspendRequest,
    admin: CurrentAdminDep,
    admin_service: AdminServiceDep,
):
    await admin_service.suspend_user(admin, user_id, request.reason)


@router.post("/users/{user_id}/unsuspend", status_code=status.HTTP_204_NO_CONTENT)
async def unsuspend_user(
    user_id: str, admin: CurrentAdminDep, admin_service: AdminServiceDep
):
    await admin_service.unsuspend_user(admin, user_id)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    admin: CurrentAdminDep,
    admin_service: AdminServiceDep,
    email: Optional[str] = Query(default=None),
):
    await admin_service.delete_user(admin, user_id, email)


@router.post("/users/{user_id}/reset-password", status_code=status.HTTP_204_NO_CONTENT)
async def reset_password(
    user_id: str,
    request: PasswordResetRequest,
    admin: CurrentAdminDep,
    admin_service: AdminServiceDep,
):
    await admin_service.reset_password(admin, user_id, request.email)


@router.get("/audit-log", response_model=AuditLogResponse)
async def audit_log(
    admin: CurrentAdminDep,
    admin_service: AdminServiceDep,
    limit: int = Query(default=50, ge=1, le=500),
):
    entries = await admin_service.list_audit_log(limit)
    return AuditLogResponse(entries=entries, total=len(entries))
