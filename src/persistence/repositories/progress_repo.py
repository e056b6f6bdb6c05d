"""Progress repository: conversation cursor and per-category progress rows.

Both tables are written only by the progression controller. The
conversation_state primary key guarantees one cursor per session; category
progress rows are created with a conditional insert so a (session, category)
pair never gets a second row from this code. Reads still tolerate duplicates
written by anything else: the most recently updated row wins.
"""

import json
from typing import Dict, List, Optional
from uuid import uuid4

import aiosqlite
import structlog

from src.domain.models.session import CategoryProgress, ConversationState
from src.persistence.change_feed import ChangeType
from src.persistence.repositories.base import BaseRepository, now_iso, parse_dt

log = structlog.get_logger(__name__)


class ProgressRepository(BaseRepository):
    """Repository for conversation_state and category_progress."""

    # ------------------------------------------------------------------
    # Conversation state
    # ------------------------------------------------------------------

    async def get_state(self, session_id: str) -> Optional[ConversationState]:
        async with self._reading() as db:
            cursor = await db.execute(
                "SELECT * FROM conversation_state WHERE session_id = ?", (session_id,)
            )
            row = await cursor.fetchone()
            return self._row_to_state(row) if row else None

    async def create_state_if_absent(self, state: ConversationState) -> bool:
        """Insert the cursor unless one already exists.

        Returns:
            True if this call created the row
        """
        async with self._writing("create conversation state") as db:
            cursor = await db.execute(
                """INSERT OR IGNORE INTO conversation_state (
                       session_id, current_category_id, depth,
                       explored_topics, asked_questions, updated_at
                   ) VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    state.session_id,
                    state.current_category_id,
                    state.depth,
                    json.dumps(state.explored_topics),
                    json.dumps(state.asked_questions),
                    now_iso(),
                ),
            )
            await db.commit()
            created = cursor.rowcount > 0

        if created:
            self._publish(
                "conversation_state", ChangeType.INSERT, state.model_dump(mode="json")
            )
        return created

    async def save_state(self, state: ConversationState) -> None:
        async with self._writing("update conversation state") as db:
            await db.execute(
                """UPDATE conversation_state SET
                       current_category_id = ?, depth = ?, explored_topics = ?,
                       asked_questions = ?, updated_at = ?
                   WHERE session_id = ?""",
                (
                    state.current_category_id,
                    state.depth,
                    json.dumps(state.explored_topics),
                    json.dumps(state.asked_questions),
                    now_iso(),
                    state.session_id,
                ),
            )
            await db.commit()

        self._publish("conversation_state", ChangeType.UPDATE, state.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Category progress
    # ------------------------------------------------------------------

    async def create_progress_if_absent(
        self, session_id: str, category_id: str
    ) -> CategoryProgress:
        """Return the progress row for the pair, creating it with 0 questions if missing.

        The existence check and insert are a single statement, so two calls
        for the same pair cannot both insert.
        """
        progress_id = str(uuid4())
        now = now_iso()
        async with self._writing("create category progress") as db:
            cursor = await db.execute(
                """INSERT INTO category_progress (
                       id, session_id, category_id, questions_asked,
                       is_completed, last_question_at, created_at, updated_at
                   )
                   SELECT ?, ?, ?, 0, 0, NULL, ?, ?
                   WHERE NOT EXISTS (
                       SELECT 1 FROM category_progress
                       WHERE session_id = ? AND category_id = ?
                   )""",
                (progress_id, session_id, category_id, now, now, session_id, category_id),
            )
            await db.commit()
            created = cursor.rowcount > 0

        progress = await self.get_progress(session_id, category_id)
        if progress is None:
            raise ValueError(
                f"Progress for session {session_id} category {category_id} not found after save"
            )
        if created:
            self._publish(
                "category_progress", ChangeType.INSERT, progress.model_dump(mode="json")
            )
        return progress

    async def get_progress(
        self, session_id: str, category_id: str
    ) -> Optional[CategoryProgress]:
        async with self._reading() as db:
            cursor = await db.execute(
                """SELECT * FROM category_progress
                   WHERE session_id = ? AND category_id = ?
                   ORDER BY updated_at DESC, rowid DESC""",
                (session_id, category_id),
            )
            rows = await cursor.fetchall()

        if not rows:
            return None
        if len(rows) > 1:
            log.warning(
                "duplicate_progress_row",
                session_id=session_id,
                category_id=category_id,
                row_count=len(rows),
                kept_id=rows[0]["id"],
            )
        return self._row_to_progress(rows[0])

    async def list_progress(self, session_id: str) -> List[CategoryProgress]:
        """All progress rows for a session, one per category (newest wins)."""
        async with self._reading() as db:
            cursor = await db.execute(
                """SELECT * FROM category_progress
                   WHERE session_id = ?
                   ORDER BY updated_at DESC, rowid DESC""",
                (session_id,),
            )
            rows = await cursor.fetchall()

        latest: Dict[str, CategoryProgress] = {}
        for row in rows:
            category_id = row["category_id"]
            if category_id in latest:
                log.warning(
                    "duplicate_progress_row",
                    session_id=session_id,
                    category_id=category_id,
                    kept_id=latest[category_id].id,
                    ignored_id=row["id"],
                )
                continue
            latest[category_id] = self._row_to_progress(row)
        return list(latest.values())

    async def save_progress(self, progress: CategoryProgress) -> None:
        async with self._writing("update category progress") as db:
            await db.execute(
                """UPDATE category_progress SET
                       questions_asked = ?, is_completed = ?,
                       last_question_at = ?, updated_at = ?
                   WHERE id = ?""",
                (
                    progress.questions_asked,
                    1 if progress.is_completed else 0,
                    progress.last_question_at.isoformat()
                    if progress.last_question_at
                    else None,
                    now_iso(),
                    progress.id,
                ),
            )
            await db.commit()

        self._publish(
            "category_progress", ChangeType.UPDATE, progress.model_dump(mode="json")
        )

    async def total_answered(self, session_id: str) -> int:
        """Sum of questions_asked across the session's categories."""
        return sum(p.questions_asked for p in await self.list_progress(session_id))

    def _row_to_state(self, row: aiosqlite.Row) -> ConversationState:
        return ConversationState(
            session_id=row["session_id"],
            current_category_id=row["current_category_id"],
            depth=row["depth"],
            explored_topics=json.loads(row["explored_topics"] or "[]"),
            asked_questions=json.loads(row["asked_questions"] or "[]"),
            updated_at=parse_dt(row["updated_at"]),
        )

    def _row_to_progress(self, row: aiosqlite.Row) -> CategoryProgress:
        return CategoryProgress(
            id=row["id"],
            session_id=row["session_id"],
            category_id=row["category_id"],
            questions_asked=row["questions_asked"],
            is_completed=bool(row["is_completed"]),
            last_question_at=parse_dt(row["last_question_at"]),
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
        )
