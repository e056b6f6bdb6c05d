"""
Session lifecycle service.

Owns everything around a session except progression itself:
- Resolving a user's active session from the local cache, reconciled
  against the store (a stale cached id is never trusted)
- Ownership checks for session reads
- Destructive reset of a session and its rows
- Message history reads
- Sign-out (identity service + cache)
"""

from typing import List, Optional
from uuid import uuid4

import structlog

from src.core.exceptions import SessionNotFoundError
from src.domain.models.account import User
from src.domain.models.message import Message
from src.domain.models.session import ChatSession
from src.services.context import SessionContext

log = structlog.get_logger(__name__)


class SessionService:
    """Creates, resolves and destroys sessions for authenticated users."""

    def __init__(self, context: SessionContext):
        self.context = context

    async def resolve_active_session(self, user: User) -> ChatSession:
        """
        Return the user's active session, creating one if needed.

        Resolution order:
            1. Cached id, if the store still has that row for this user
            2. The user's most recent session in the store
            3. A new session (progress 0, stage from config, target 135)

        The cache is rewritten to whichever session is returned.
        Concurrent calls for one user are serialized so only one session
        is ever created.
        """
        async with self.context.guard.user_lock(user.id):
            cached_id = self.context.cache.get(user.id)
            if cached_id:
                try:
                    return await self.get_session(cached_id, user)
                except SessionNotFoundError:
                    log.info(
                        "cached_session_stale",
                        user_id=user.id,
                        cached_session_id=cached_id,
                    )
                    self.context.cache.clear(user.id)

            existing = await self.context.sessions().list_for_user(user.id)
            if existing:
                session = existing[0]
                log.info("session_resumed", user_id=user.id, session_id=session.id)
            else:
                session = await self.create_session(user)

            self.context.cache.set(user.id, session.id)
            return session

    async def create_session(self, user: User) -> ChatSession:
        config = self.context.config
        session = ChatSession(
            id=str(uuid4()),
            user_id=user.id,
            progress_percentage=0,
            questions_answered=0,
            milestone_stage=config.initial_stage,
            target_questions=config.overall_question_target,
        )
        session = await self.context.sessions().create(session)
        log.info("session_created", user_id=user.id, session_id=session.id)
        return session

    async def get_session(self, session_id: str, user: Optional[User] = None) -> ChatSession:
        """
        Load a session, optionally checking it belongs to `user`.

        Raises:
            SessionNotFoundError: No such session, or owned by another user
        """
        session = await self.context.sessions().get(session_id)
        if session is None or (user is not None and session.user_id != user.id):
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session

    async def reset_session(self, session_id: str, user: User) -> None:
        """
        Destroy a session and everything it owns.

        Messages, progress rows, the conversation cursor and insights go
        with it; the cached id is cleared. Rejected while a turn is running.

        Raises:
            SessionNotFoundError: No such session for this user
            SessionBusyError: A turn is in flight for the session
        """
        async with self.context.guard.hold(session_id, "reset"):
            await self.get_session(session_id, user)
            await self.context.sessions().delete_cascade(session_id)

        self.context.guard.forget(session_id)
        if self.context.cache.get(user.id) == session_id:
            self.context.cache.clear(user.id)
        log.info("session_reset", user_id=user.id, session_id=session_id)

    async def list_messages(
        self, session_id: str, user: Optional[User] = None
    ) -> List[Message]:
        """Session history in creation order."""
        await self.get_session(session_id, user)
        return await self.context.messages().list_for_session(session_id)

    async def sign_out(self, user: User, access_token: str) -> None:
        """Revoke the token and forget the cached session id."""
        self.context.cache.clear(user.id)
        if self.context.identity is not None:
            await self.context.identity.sign_out(access_token)
        log.info("user_signed_out", user_id=user.id)
