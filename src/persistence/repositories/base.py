"""Shared repository plumbing: connections, write errors, change events."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

import aiosqlite
import structlog

from src.core.exceptions import PersistenceWriteFailedError
from src.persistence.change_feed import ChangeFeed, ChangeType
from src.persistence.database import connect

log = structlog.get_logger(__name__)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class BaseRepository:
    """Base for repositories over one SQLite file.

    Each operation opens its own connection. Writes go through _writing()
    so that driver errors surface as PersistenceWriteFailedError, and
    committed writes are announced on the change feed when one is attached.
    """

    def __init__(self, db_path: str, change_feed: Optional[ChangeFeed] = None):
        self.db_path = str(db_path)
        self.change_feed = change_feed

    def _reading(self):
        return connect(self.db_path)

    @asynccontextmanager
    async def _writing(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with connect(self.db_path) as db:
                yield db
        except aiosqlite.Error as e:
            log.error("store_write_failed", operation=operation, error=str(e))
            raise PersistenceWriteFailedError(f"{operation} failed: {e}") from e

    def _publish(self, table: str, change: ChangeType, record: Dict[str, Any]) -> None:
        if self.change_feed is not None:
            self.change_feed.publish(table, change, record)
