"""Message repository for conversation history."""

from typing import List, Optional
from uuid import uuid4

import aiosqlite

from src.domain.models.message import Message, Role
from src.persistence.change_feed import ChangeType
from src.persistence.repositories.base import BaseRepository, now_iso, parse_dt


class MessageRepository(BaseRepository):
    """Repository for append-only message rows."""

    async def add(self, session_id: str, role: Role, content: str) -> Message:
        """Append a message to a session's history.

        Args:
            session_id: Owning session
            role: USER or ASSISTANT
            content: Message text

        Returns:
            Saved Message with its database timestamp
        """
        message_id = str(uuid4())
        async with self._writing("save message") as db:
            await db.execute(
                """INSERT INTO messages (id, session_id, role, content, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (message_id, session_id, role.value, content, now_iso()),
            )
            await db.commit()

            cursor = await db.execute("SELECT * FROM messages WHERE id = ?", (message_id,))
            row = await cursor.fetchone()
            if not row:
                raise ValueError(f"Message {message_id} not found after save")
            message = self._row_to_message(row)

        self._publish("messages", ChangeType.INSERT, message.model_dump(mode="json"))
        return message

    async def list_for_session(
        self, session_id: str, limit: Optional[int] = None
    ) -> List[Message]:
        """Get a session's messages in creation order.

        Args:
            session_id: Session to read
            limit: Only the most recent N messages (still returned oldest first)

        Returns:
            Messages ordered by created_at, insertion order breaking ties
        """
        async with self._reading() as db:
            if limit:
                cursor = await db.execute(
                    """SELECT * FROM (
                           SELECT *, rowid AS seq FROM messages
                           WHERE session_id = ?
                           ORDER BY created_at DESC, rowid DESC
                           LIMIT ?
                       ) ORDER BY created_at ASC, seq ASC""",
                    (session_id, limit),
                )
            else:
                cursor = await db.execute(
                    """SELECT * FROM messages
                       WHERE session_id = ?
                       ORDER BY created_at ASC, rowid ASC""",
                    (session_id,),
                )
            rows = await cursor.fetchall()
            return [self._row_to_message(row) for row in rows]

    async def count(self, session_id: str, role: Optional[Role] = None) -> int:
        async with self._reading() as db:
            if role is None:
                cursor = await db.execute(
                    "SELECT COUNT(*) FROM messages WHERE session_id = ?", (session_id,)
                )
            else:
                cursor = await db.execute(
                    "SELECT COUNT(*) FROM messages WHERE session_id = ? AND role = ?",
                    (session_id, role.value),
                )
            row = await cursor.fetchone()
            return row[0] if row else 0

    def _row_to_message(self, row: aiosqlite.Row) -> Message:
        return Message(
            id=row["id"],
            session_id=row["session_id"],
            role=Role(row["role"]),
            content=row["content"],
            created_at=parse_dt(row["created_at"]),
        )
