"""Insight repository for persona_insights rows."""

from typing import List
from uuid import uuid4

import aiosqlite

from src.domain.models.insight import Insight
from src.persistence.change_feed import ChangeType
from src.persistence.repositories.base import BaseRepository, now_iso, parse_dt


class InsightRepository(BaseRepository):
    async def create(self, insight: Insight) -> Insight:
        insight_id = insight.id or str(uuid4())
        async with self._writing("save insight") as db:
            await db.execute(
                """INSERT INTO persona_insights (
                       id, session_id, category_id, category, key_phrase,
                       content, confidence, created_at
                   ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    insight_id,
                    insight.session_id,
                    insight.category_id,
                    insight.category,
                    insight.key_phrase,
                    insight.content,
                    insight.confidence,
                    now_iso(),
                ),
            )
            await db.commit()

        saved = insight.model_copy(update={"id": insight_id})
        self._publish("persona_insights", ChangeType.INSERT, saved.model_dump(mode="json"))
        return saved

    async def list_for_session(self, session_id: str) -> List[Insight]:
        """Insights for a session, newest first, with their category names."""
        async with self._reading() as db:
            cursor = await db.execute(
                """SELECT i.*, c.name AS category_name
                   FROM persona_insights i
                   LEFT JOIN categories c ON c.id = i.category_id
                   WHERE i.session_id = ?
                   ORDER BY i.created_at DESC, i.rowid DESC""",
                (session_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_insight(row) for row in rows]

    def _row_to_insight(self, row: aiosqlite.Row) -> Insight:
        return Insight(
            id=row["id"],
            session_id=row["session_id"],
            category_id=row["category_id"],
            category=row["category"],
            key_phrase=row["key_phrase"],
            content=row["content"],
            confidence=float(row["confidence"]),
            category_name=row["category_name"] or "General",
            created_at=parse_dt(row["created_at"]),
        )
