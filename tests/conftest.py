"""
Shared test fixtures.

Every test gets its own temporary SQLite database seeded with the nine
configured categories, and a SessionContext wired to a scripted LLM client
and a mocked identity gateway.
"""

import asyncio
import tempfile
from pathlib import Path
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from src.core.category_loader import load_categories
from src.core.config import ProgressionConfig
from src.core.exceptions import LLMHTTPError
from src.domain.models.account import User
from src.domain.models.session import ChatSession
from src.identity.client import IdentityGateway
from src.llm.client import LLMClient, LLMResponse
from src.persistence.change_feed import ChangeFeed
from src.persistence.database import init_database
from src.persistence.repositories.category_repo import CategoryRepository
from src.services.context import SessionContext
from src.services.session_cache import SessionCache
from src.services.session_guard import SessionGuard


class ScriptedLLMClient(LLMClient):
    """LLM stand-in that replies with a numbered question, or fails on demand."""

    provider_name = "scripted"

    def __init__(self):
        self.calls: List[dict] = []
        self.fail_with: Optional[Exception] = None
        self.delay: float = 0.0

    async def complete(
        self, messages, system=None, temperature=None, max_tokens=None, timeout=None
    ) -> LLMResponse:
        self.calls.append({"messages": list(messages), "system": system, "timeout": timeout})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return LLMResponse(content=f"Question {len(self.calls)}?", model="scripted")


@pytest.fixture
async def test_db():
    """Temporary database with schema applied and categories seeded."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)
        await CategoryRepository(str(db_path)).upsert_many(load_categories())
        yield db_path


@pytest.fixture
def llm_client():
    return ScriptedLLMClient()


@pytest.fixture
def failing_llm_error():
    return LLMHTTPError("LLM provider returned HTTP 500", status_code=500)


@pytest.fixture
def identity():
    """Identity gateway with every network call mocked."""
    gateway = MagicMock(spec=IdentityGateway)
    gateway.sign_in = AsyncMock()
    gateway.sign_up = AsyncMock()
    gateway.sign_out = AsyncMock(return_value=None)
    gateway.get_current_user = AsyncMock(return_value=None)
    gateway.list_users = AsyncMock(return_value=[])
    gateway.delete_user = AsyncMock(return_value=None)
    gateway.send_password_reset = AsyncMock(return_value=None)
    return gateway


@pytest.fixture
def context(test_db, llm_client, identity):
    return SessionContext(
        db_path=test_db,
        config=ProgressionConfig(),
        llm_client=llm_client,
        identity=identity,
        cache=SessionCache(test_db.parent / "session_cache.json"),
        change_feed=ChangeFeed(),
        guard=SessionGuard(),
    )


@pytest.fixture
def user():
    return User(id="user-1", email="ada@example.com")


@pytest.fixture
async def session(context, user) -> ChatSession:
    """A fresh session row owned by `user`."""
    return await context.sessions().create(ChatSession(id=str(uuid4()), user_id=user.id))
