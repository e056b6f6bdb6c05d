"""Admin repository: admin roles, user suspensions and the audit log."""

import json
from typing import List, Optional, Set
from uuid import uuid4

import aiosqlite

from src.domain.models.account import AdminRole, AdminUser, AuditLogEntry, Suspension
from src.persistence.change_feed import ChangeType
from src.persistence.repositories.base import BaseRepository, now_iso, parse_dt


class AdminRepository(BaseRepository):
    """Repository for the admin portal's own tables."""

    # ------------------------------------------------------------------
    # Admin users
    # ------------------------------------------------------------------

    async def get_admin(self, user_id: str) -> Optional[AdminUser]:
        async with self._reading() as db:
            cursor = await db.execute("SELECT * FROM admin_users WHERE id = ?", (user_id,))
            row = await cursor.fetchone()
            if not row:
                return None
            return AdminUser(
                id=row["id"],
                email=row["email"],
                role=AdminRole(row["role"]),
                created_at=parse_dt(row["created_at"]),
            )

    async def add_admin(self, admin: AdminUser) -> AdminUser:
        async with self._writing("grant admin") as db:
            await db.execute(
                """INSERT INTO admin_users (id, email, role, created_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET email = excluded.email, role = excluded.role""",
                (admin.id, admin.email, admin.role.value, now_iso()),
            )
            await db.commit()

        self._publish("admin_users", ChangeType.INSERT, admin.model_dump(mode="json"))
        return admin

    # ------------------------------------------------------------------
    # Suspensions
    # ------------------------------------------------------------------

    async def create_suspension(
        self, user_id: str, suspended_by: str, reason: str
    ) -> Suspension:
        suspension = Suspension(
            id=str(uuid4()), user_id=user_id, suspended_by=suspended_by, reason=reason
        )
        async with self._writing("suspend user") as db:
            await db.execute(
                """INSERT INTO user_suspensions (
                       id, user_id, suspended_by, reason, is_active, created_at
                   ) VALUES (?, ?, ?, ?, 1, ?)""",
                (suspension.id, user_id, suspended_by, reason, now_iso()),
            )
            await db.commit()

        self._publish(
            "user_suspensions", ChangeType.INSERT, suspension.model_dump(mode="json")
        )
        return suspension

    async def deactivate_suspensions(self, user_id: str, unsuspended_by: str) -> int:
        """Lift every active suspension for a user.

        Returns:
            Number of suspensions lifted
        """
        async with self._writing("unsuspend user") as db:
            cursor = await db.execute(
                """UPDATE user_suspensions SET
                       is_active = 0, unsuspended_at = ?, unsuspended_by = ?
                   WHERE user_id = ? AND is_active = 1""",
                (now_iso(), unsuspended_by, user_id),
            )
            await db.commit()
            lifted = cursor.rowcount

        if lifted:
            self._publish(
                "user_suspensions",
                ChangeType.UPDATE,
                {"user_id": user_id, "is_active": False, "unsuspended_by": unsuspended_by},
            )
        return lifted

    async def delete_suspensions(self, user_id: str) -> int:
        """Remove every suspension record for a deleted user."""
        async with self._writing("delete suspensions") as db:
            cursor = await db.execute(
                "DELETE FROM user_suspensions WHERE user_id = ?", (user_id,)
            )
            await db.commit()
            removed = cursor.rowcount

        if removed:
            self._publish("user_suspensions", ChangeType.DELETE, {"user_id": user_id})
        return removed

    async def active_suspended_user_ids(self) -> Set[str]:
        async with self._reading() as db:
            cursor = await db.execute(
                "SELECT DISTINCT user_id FROM user_suspensions WHERE is_active = 1"
            )
            rows = await cursor.fetchall()
            return {row["user_id"] for row in rows}

    async def is_suspended(self, user_id: str) -> bool:
        async with self._reading() as db:
            cursor = await db.execute(
                "SELECT 1 FROM user_suspensions WHERE user_id = ? AND is_active = 1 LIMIT 1",
                (user_id,),
            )
            return await cursor.fetchone() is not None

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    async def append_audit(
        self,
        action: str,
        admin_id: str,
        target_user_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=str(uuid4()),
            action=action,
            admin_id=admin_id,
            target_user_id=target_user_id,
            details=details or {},
        )
        async with self._writing("append audit log") as db:
            await db.execute(
                """INSERT INTO admin_audit_log (
                       id, action, target_user_id, admin_id, details, created_at
                   ) VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    entry.id,
                    entry.action,
                    entry.target_user_id,
                    entry.admin_id,
                    json.dumps(entry.details),
                    entry.created_at.isoformat(),
                ),
            )
            await db.commit()

        self._publish("admin_audit_log", ChangeType.INSERT, entry.model_dump(mode="json"))
        return entry

    async def list_audit(self, limit: int = 50) -> List[AuditLogEntry]:
        async with self._reading() as db:
            cursor = await db.execute(
                """SELECT * FROM admin_audit_log
                   ORDER BY created_at DESC, rowid DESC
                   LIMIT ?""",
                (limit,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_entry(row) for row in rows]

    def _row_to_entry(self, row: aiosqlite.Row) -> AuditLogEntry:
        return AuditLogEntry(
            id=row["id"],
            action=row["action"],
            admin_id=row["admin_id"],
            target_user_id=row["target_user_id"],
            details=json.loads(row["details"]) if row["details"] else {},
            created_at=parse_dt(row["created_at"]),
        )
