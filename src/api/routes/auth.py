"""
Authentication routes.

Thin pass-through to the identity service; the browser keeps the access
token and sends it back as a bearer token.
"""

from fastapi import APIRouter, status
import structlog

from src.api.dependencies import (
    AccessTokenDep,
    AdminServiceDep,
    ContextDep,
    CurrentUserDep,
    SessionServiceDep,
)
from src.api.schemas import AuthResponse, CredentialsRequest, MeResponse
from src.core.exceptions import ConfigurationError

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _identity(context):
    if context.identity is None:
        raise ConfigurationError("Identity service is not configured")
    return context.identity


@router.post("/sign-in", response_model=AuthResponse)
async def sign_in(request: CredentialsRequest, context: ContextDep):
    auth = await _identity(context).sign_in(request.email, request.password)
    return AuthResponse(
        access_token=auth.access_token,
        refresh_token=auth.refresh_token,
        expires_in=auth.expires_in,
        user=auth.user,
    )


@router.post("/sign-up", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(request: CredentialsRequest, context: ContextDep):
    auth = await _identity(context).sign_up(request.email, request.password)
    if auth is None:
        return AuthResponse(confirmation_required=True)
    return AuthResponse(
        access_token=auth.access_token,
        refresh_token=auth.refresh_token,
        expires_in=auth.expires_in,
        user=auth.user,
    )


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    user: CurrentUserDep,
    token: AccessTokenDep,
    session_service: SessionServiceDep,
):
    await session_service.sign_out(user, token)


@router.get("/me", response_model=MeResponse)
async def me(user: CurrentUserDep, admin_service: AdminServiceDep):
    return MeResponse(user=user, is_admin=await admin_service.is_admin(user.id))
