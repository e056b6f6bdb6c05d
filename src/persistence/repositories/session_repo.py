"""Session repository for chat_sessions rows and full session teardown."""

from typing import List, Optional

import aiosqlite
import structlog

from src.core.exceptions import PersistenceWriteFailedError
from src.domain.models.session import ChatSession
from src.persistence.change_feed import ChangeType
from src.persistence.repositories.base import BaseRepository, now_iso, parse_dt

log = structlog.get_logger(__name__)

# Children first; the session row goes last
SESSION_OWNED_TABLES = (
    "messages",
    "category_progress",
    "conversation_state",
    "persona_insights",
)


class SessionRepository(BaseRepository):
    """Repository for session CRUD operations."""

    async def create(self, session: ChatSession) -> ChatSession:
        """Create a new session row."""
        now = now_iso()
        async with self._writing("create session") as db:
            await db.execute(
                """INSERT INTO chat_sessions (
                    id, user_id, progress_percentage, questions_answered,
                    milestone_stage, target_questions, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    session.id,
                    session.user_id,
                    session.progress_percentage,
                    session.questions_answered,
                    session.milestone_stage,
                    session.target_questions,
                    now,
                    now,
                ),
            )
            await db.commit()

        created = await self.get(session.id)
        if created is None:
            raise ValueError(f"Session {session.id} not found after creation")
        self._publish("chat_sessions", ChangeType.INSERT, created.model_dump(mode="json"))
        return created

    async def get(self, session_id: str) -> Optional[ChatSession]:
        """Get a session by ID."""
        async with self._reading() as db:
            cursor = await db.execute(
                "SELECT * FROM chat_sessions WHERE id = ?", (session_id,)
            )
            row = await cursor.fetchone()
            return self._row_to_session(row) if row else None

    async def list_for_user(self, user_id: str) -> List[ChatSession]:
        async with self._reading() as db:
            cursor = await db.execute(
                "SELECT * FROM chat_sessions WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_session(row) for row in rows]

    async def update_progress(
        self,
        session_id: str,
        questions_answered: int,
        progress_percentage: int,
        milestone_stage: str,
    ) -> ChatSession:
        """Persist recomputed progress fields.

        Raises:
            PersistenceWriteFailedError: Write failed or the row no longer exists
        """
        async with self._writing("update session progress") as db:
            cursor = await db.execute(
                """UPDATE chat_sessions SET
                       questions_answered = ?, progress_percentage = ?,
                       milestone_stage = ?, updated_at = ?
                   WHERE id = ?""",
                (
                    questions_answered,
                    progress_percentage,
                    milestone_stage,
                    now_iso(),
                    session_id,
                ),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise PersistenceWriteFailedError(
                    f"Session {session_id} disappeared during progress update"
                )

        updated = await self.get(session_id)
        if updated is None:
            raise PersistenceWriteFailedError(f"Session {session_id} deleted during progress update")
        self._publish("chat_sessions", ChangeType.UPDATE, updated.model_dump(mode="json"))
        return updated

    async def delete_cascade(self, session_id: str) -> bool:
        """Delete a session and every row it owns in one transaction.

        Returns:
            True if the session row existed
        """
        async with self._writing("delete session") as db:
            for table in SESSION_OWNED_TABLES:
                await db.execute(f"DELETE FROM {table} WHERE session_id = ?", (session_id,))
            cursor = await db.execute(
                "DELETE FROM chat_sessions WHERE id = ?", (session_id,)
            )
            await db.commit()
            deleted = cursor.rowcount > 0

        if deleted:
            log.info("session_deleted", session_id=session_id)
            self._publish("chat_sessions", ChangeType.DELETE, {"id": session_id})
            self._publish(
                "conversation_state", ChangeType.DELETE, {"session_id": session_id}
            )
        return deleted

    def _row_to_session(self, row: aiosqlite.Row) -> ChatSession:
        return ChatSession(
            id=row["id"],
            user_id=row["user_id"],
            progress_percentage=row["progress_percentage"],
            questions_answered=row["questions_answered"],
            milestone_stage=row["milestone_stage"],
            target_questions=row["target_questions"],
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
        )
