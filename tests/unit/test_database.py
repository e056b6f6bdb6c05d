"""Tests for database module."""

import tempfile
from pathlib import Path

import aiosqlite
import pytest

from src.persistence.database import check_database_health, connect, init_database


@pytest.mark.asyncio
async def test_init_database_creates_file():
    """Database initialization creates the database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "nested" / "test.db"

        assert not db_path.exists()

        await init_database(db_path)

        assert db_path.exists()


@pytest.mark.asyncio
async def test_init_database_creates_tables():
    """Database initialization creates all required tables."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)

        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            )
            tables = [row[0] for row in await cursor.fetchall()]

        for table in (
            "categories",
            "chat_sessions",
            "conversation_state",
            "category_progress",
            "messages",
            "persona_insights",
            "admin_users",
            "user_suspensions",
            "admin_audit_log",
        ):
            assert table in tables


@pytest.mark.asyncio
async def test_init_database_is_idempotent(test_db):
    await init_database(test_db)

    async with connect(test_db) as db:
        cursor = await db.execute("SELECT COUNT(*) FROM categories")
        row = await cursor.fetchone()

    assert row[0] == 9


@pytest.mark.asyncio
async def test_connect_enables_foreign_keys(test_db):
    async with connect(test_db) as db:
        with pytest.raises(aiosqlite.IntegrityError):
            await db.execute(
                """INSERT INTO messages (id, session_id, role, content, created_at)
                   VALUES ('m', 'no-such-session', 'user', 'hi', '2025-01-01')"""
            )


@pytest.mark.asyncio
async def test_check_database_health(test_db):
    health = await check_database_health(test_db)

    assert health["status"] == "healthy"
    assert health["session_count"] == 0
    assert health["integrity"] == "ok"


@pytest.mark.asyncio
async def test_check_database_health_without_schema():
    with tempfile.TemporaryDirectory() as tmpdir:
        health = await check_database_health(Path(tmpdir) / "empty.db")

    assert health["status"] == "unhealthy"
