#!/usr/bin/env python3
"""
Rebuild the database from scratch.

This script:
1. Deletes the existing database file (and its WAL side files)
2. Re-initializes the schema using init_database()
3. Seeds the categories from config/categories.yaml

WARNING: This will DELETE ALL SESSIONS, MESSAGES AND ADMIN RECORDS.
Use only for development/testing purposes.
"""

import asyncio
from pathlib import Path

import structlog

from src.core.category_loader import load_categories
from src.core.config import settings
from src.persistence.database import init_database
from src.persistence.repositories.category_repo import CategoryRepository

log = structlog.get_logger(__name__)


async def rebuild_database() -> None:
    db_path = Path(settings.database_path)

    if not db_path.exists():
        log.info("database_not_found", path=str(db_path))
    else:
        file_size = db_path.stat().st_size
        log.warning(
            "deleting_database",
            path=str(db_path),
            size_bytes=file_size,
            size_mb=f"{file_size / (1024 * 1024):.2f}",
        )
        for suffix in ("", "-wal", "-shm"):
            Path(f"{db_path}{suffix}").unlink(missing_ok=True)
        log.info("database_deleted", path=str(db_path))

    await init_database(db_path)

    categories = load_categories()
    seeded = await CategoryRepository(str(db_path)).upsert_many(categories)
    log.info("database_rebuilt", path=str(db_path), categories_seeded=seeded)


if __name__ == "__main__":
    asyncio.run(rebuild_database())
