"""
Per-session in-flight guard.

At most one turn or reset may run for a session at a time within this
process. A second caller is rejected immediately with SessionBusyError
instead of queueing behind the first.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Set

import structlog

from src.core.exceptions import SessionBusyError

log = structlog.get_logger(__name__)


class SessionGuard:
    def __init__(self):
        self._active: Set[str] = set()
        self._bootstrap_locks: Dict[str, asyncio.Lock] = {}
        self._user_locks: Dict[str, asyncio.Lock] = {}

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._active

    @asynccontextmanager
    async def hold(self, session_id: str, operation: str) -> AsyncIterator[None]:
        """Mark the session busy for the duration of the block.

        Raises:
            SessionBusyError: Another turn or reset holds the session
        """
        if session_id in self._active:
            log.warning("session_busy", session_id=session_id, operation=operation)
            raise SessionBusyError(
                f"Session {session_id} already has a turn or reset in progress"
            )
        self._active.add(session_id)
        try:
            yield
        finally:
            self._active.discard(session_id)

    def bootstrap_lock(self, session_id: str) -> asyncio.Lock:
        """Lock serializing bootstrap for one session."""
        lock = self._bootstrap_locks.get(session_id)
        if lock is None:
            lock = self._bootstrap_locks[session_id] = asyncio.Lock()
        return lock

    def user_lock(self, user_id: str) -> asyncio.Lock:
        """Lock serializing session resolution for one user."""
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = self._user_locks[user_id] = asyncio.Lock()
        return lock

    def forget(self, session_id: str) -> None:
        """Drop per-session bookkeeping after the session is deleted."""
        lock = self._bootstrap_locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._bootstrap_locks[session_id]
