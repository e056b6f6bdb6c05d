"""
Admin portal operations.

Account management over the identity directory plus the store's admin
tables. Each mutating action appends an audit entry afterwards; audit
writes are best-effort and never fail the action they describe.
"""

from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional, Tuple

import structlog

from src.core.exceptions import (
    AdminRequiredError,
    ConfigurationError,
    PersistenceError,
    ValidationError,
)
from src.domain.models.account import (
    AdminAction,
    AdminUser,
    AuditLogEntry,
    User,
    UserAccount,
    UserStats,
)
from src.identity.client import IdentityGateway
from src.services.context import SessionContext

log = structlog.get_logger(__name__)


class AdminService:
    def __init__(self, context: SessionContext):
        self.context = context

    @property
    def identity(self) -> IdentityGateway:
        if self.context.identity is None:
            raise ConfigurationError("Identity service is not configured")
        return self.context.identity

    async def get_admin_user(self, user_id: str) -> Optional[AdminUser]:
        return await self.context.admin().get_admin(user_id)

    async def is_admin(self, user_id: str) -> bool:
        return await self.get_admin_user(user_id) is not None

    async def require_admin(self, user: User) -> AdminUser:
        """
        Raises:
            AdminRequiredError: User has no admin role
        """
        admin = await self.get_admin_user(user.id)
        if admin is None:
            log.warning("admin_access_denied", user_id=user.id)
            raise AdminRequiredError("Admin access required")
        return admin

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    async def list_users(
        self, search: Optional[str] = None
    ) -> Tuple[List[UserAccount], UserStats]:
        """
        Directory users joined with suspension status.

        Stats cover the whole directory; `search` filters only the returned
        accounts (case-insensitive substring of the email).
        """
        users = await self.identity.list_users()
        suspended_ids = await self.context.admin().active_suspended_user_ids()

        accounts = [
            UserAccount(
                id=u.id,
                email=u.email or "",
                created_at=u.created_at,
                last_sign_in_at=u.last_sign_in_at,
                is_suspended=u.id in suspended_ids,
            )
            for u in users
        ]

        suspended = sum(1 for a in accounts if a.is_suspended)
        stats = UserStats(
            total_users=len(accounts),
            active_users=len(accounts) - suspended,
            suspended_users=suspended,
        )

        if search:
            needle = search.lower()
            accounts = [a for a in accounts if needle in a.email.lower()]

        return accounts, stats

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def suspend_user(self, admin: AdminUser, user_id: str, reason: str) -> None:
        """
        Raises:
            ValidationError: Empty reason
        """
        if not reason or not reason.strip():
            raise ValidationError("A suspension reason is required")

        await self.context.admin().create_suspension(user_id, admin.id, reason.strip())
        log.info("user_suspended", admin_id=admin.id, user_id=user_id)
        await self._audit(
            AdminAction.SUSPEND_USER, admin, user_id, {"reason": reason.strip()}
        )

    async def unsuspend_user(self, admin: AdminUser, user_id: str) -> int:
        lifted = await self.context.admin().deactivate_suspensions(user_id, admin.id)
        log.info("user_unsuspended", admin_id=admin.id, user_id=user_id, lifted=lifted)
        await self._audit(AdminAction.UNSUSPEND_USER, admin, user_id, {"lifted": lifted})
        return lifted

    async def delete_user(
        self, admin: AdminUser, user_id: str, email: Optional[str] = None
    ) -> int:
        """
        Delete the account and all data the store holds for it.

        Every session of the user is held busy first, so nothing is
        deleted while one of their turns is running. Sessions go with their
        messages, progress rows, cursor and insights; suspensions and the
        cached session id are cleared too.

        Returns:
            Number of sessions deleted

        Raises:
            SessionBusyError: A turn or reset is running for one of the sessions
        """
        guard = self.context.guard
        sessions = await self.context.sessions().list_for_user(user_id)

        async with AsyncExitStack() as stack:
            for session in sessions:
                await stack.enter_async_context(guard.hold(session.id, "delete_user"))

            await self.identity.delete_user(user_id)

            for session in sessions:
                await self.context.sessions().delete_cascade(session.id)

        for session in sessions:
            guard.forget(session.id)
        await self.context.admin().delete_suspensions(user_id)
        self.context.cache.clear(user_id)

        log.info(
            "user_deleted", admin_id=admin.id, user_id=user_id, sessions_deleted=len(sessions)
        )
        await self._audit(
            AdminAction.DELETE_USER,
            admin,
            user_id,
            {"email": email, "sessions_deleted": len(sessions)},
        )
        return len(sessions)

    async def reset_password(self, admin: AdminUser, user_id: str, email: str) -> None:
        if not email:
            raise ValidationError("An email address is required for a password reset")
        await self.identity.send_password_reset(email)
        log.info("password_reset_sent", admin_id=admin.id, user_id=user_id)
        await self._audit(AdminAction.RESET_PASSWORD, admin, user_id, {"email": email})

    async def _audit(
        self,
        action: AdminAction,
        admin: AdminUser,
        target_user_id: Optional[str],
        details: Dict[str, Any],
    ) -> Optional[AuditLogEntry]:
        try:
            return await self.context.admin().append_audit(
                action.value, admin.id, target_user_id, details
            )
        except PersistenceError as e:
            log.error(
                "audit_log_write_failed",
                action=action.value,
                admin_id=admin.id,
                target_user_id=target_user_id,
                error=str(e),
            )
            return None

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    async def list_audit_log(self, limit: int = 50) -> List[AuditLogEntry]:
        """Newest entries first, with admin and target emails resolved."""
        entries = await self.context.admin().list_audit(limit)
        users = await self.identity.list_users()
        emails = {u.id: u.email for u in users if u.email}

        return [
            entry.model_copy(
                update={
                    "admin_email": emails.get(entry.admin_id, "Unknown"),
                    "target_email": emails.get(entry.target_user_id or "", "Unknown"),
                }
            )
            for entry in entries
        ]
