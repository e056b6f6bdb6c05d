"""Category repository: ordered reference data."""

from typing import List, Optional

import aiosqlite

from src.domain.models.category import Category
from src.persistence.change_feed import ChangeType
from src.persistence.repositories.base import BaseRepository


class CategoryRepository(BaseRepository):
    """Read access to categories plus the startup seed."""

    async def upsert_many(self, categories: List[Category]) -> int:
        """Insert or refresh categories from configuration.

        Returns:
            Number of categories written
        """
        async with self._writing("seed categories") as db:
            for category in categories:
                await db.execute(
                    """INSERT INTO categories (id, name, description, target_questions, order_index)
                       VALUES (?, ?, ?, ?, ?)
                       ON CONFLICT(id) DO UPDATE SET
                           name = excluded.name,
                           description = excluded.description,
                           target_questions = excluded.target_questions,
                           order_index = excluded.order_index""",
                    (
                        category.id,
                        category.name,
                        category.description,
                        category.target_questions,
                        category.order_index,
                    ),
                )
            await db.commit()

        for category in categories:
            self._publish("categories", ChangeType.UPDATE, category.model_dump())
        return len(categories)

    async def list_ordered(self) -> List[Category]:
        async with self._reading() as db:
            cursor = await db.execute("SELECT * FROM categories ORDER BY order_index ASC")
            rows = await cursor.fetchall()
            return [self._row_to_category(row) for row in rows]

    async def get(self, category_id: str) -> Optional[Category]:
        async with self._reading() as db:
            cursor = await db.execute(
                "SELECT * FROM categories WHERE id = ?", (category_id,)
            )
            row = await cursor.fetchone()
            return self._row_to_category(row) if row else None

    async def first(self) -> Optional[Category]:
        """Category with the smallest order index."""
        async with self._reading() as db:
            cursor = await db.execute(
                "SELECT * FROM categories ORDER BY order_index ASC LIMIT 1"
            )
            row = await cursor.fetchone()
            return self._row_to_category(row) if row else None

    async def next_after(self, order_index: int) -> Optional[Category]:
        """Category with the smallest order index strictly greater than order_index."""
        async with self._reading() as db:
            cursor = await db.execute(
                """SELECT * FROM categories
                   WHERE order_index > ?
                   ORDER BY order_index ASC
                   LIMIT 1""",
                (order_index,),
            )
            row = await cursor.fetchone()
            return self._row_to_category(row) if row else None

    def _row_to_category(self, row: aiosqlite.Row) -> Category:
        return Category(
            id=row["id"],
            name=row["name"],
            description=row["description"] or "",
            target_questions=row["target_questions"],
            order_index=row["order_index"],
        )
