"""Dependency injection for API routes."""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request

import structlog

from src.core.exceptions import (
    AccountSuspendedError,
    AuthRequiredError,
    ConfigurationError,
)
from src.domain.models.account import AdminUser, User
from src.services.admin_service import AdminService
from src.services.context import SessionContext
from src.services.insight_service import InsightService
from src.services.progression_service import ProgressionController
from src.services.session_service import SessionService

log = structlog.get_logger(__name__)


def get_context(request: Request) -> SessionContext:
    """The SessionContext built by the application lifespan."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise ConfigurationError("Session context not initialized")
    return context


ContextDep = Annotated[SessionContext, Depends(get_context)]


def get_progression_controller(context: ContextDep) -> ProgressionController:
    return ProgressionController(context)


def get_session_service(context: ContextDep) -> SessionService:
    return SessionService(context)


def get_insight_service(context: ContextDep) -> InsightService:
    return InsightService(context)


def get_admin_service(context: ContextDep) -> AdminService:
    return AdminService(context)


def get_access_token(authorization: Annotated[Optional[str], Header()] = None) -> str:
    """Bearer token from the Authorization header.

    Raises:
        AuthRequiredError: Header missing or not a bearer token
    """
    if not authorization:
        raise AuthRequiredError("Authentication required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthRequiredError("Authentication required")
    return token.strip()


AccessTokenDep = Annotated[str, Depends(get_access_token)]


async def get_current_user(context: ContextDep, token: AccessTokenDep) -> User:
    """Resolve the bearer token to a non-suspended user.

    Raises:
        AuthRequiredError: Token invalid or expired
        AccountSuspendedError: User has an active suspension
    """
    if context.identity is None:
        raise ConfigurationError("Identity service is not configured")

    user = await context.identity.get_current_user(token)
    if user is None:
        raise AuthRequiredError("Authentication required")

    if await context.admin().is_suspended(user.id):
        log.warning("suspended_user_rejected", user_id=user.id)
        raise AccountSuspendedError("This account has been suspended")

    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


async def get_current_admin(
    user: CurrentUserDep,
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> AdminUser:
    return await admin_service.require_admin(user)


# Type aliases for dependency injection
ProgressionDep = Annotated[ProgressionController, Depends(get_progression_controller)]
SessionServiceDep = Annotated[SessionService, Depends(get_session_service)]
InsightServiceDep = Annotated[InsightService, Depends(get_insight_service)]
AdminServiceDep = Annotated[AdminService, Depends(get_admin_service)]
CurrentAdminDep = Annotated[AdminUser, Depends(get_current_admin)]
