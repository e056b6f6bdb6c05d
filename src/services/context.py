"""
Session context: the collaborators every service is built from.

Built once at startup and stored on app.state. Services receive it
explicitly instead of reaching for module-level settings or clients, so a
test can assemble one around a temporary database and a fake LLM.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog

from src.core.config import ProgressionConfig, Settings
from src.identity.client import IdentityGateway, get_identity_gateway
from src.llm.client import LLMClient, get_llm_client
from src.persistence.change_feed import ChangeFeed
from src.persistence.repositories import (
    AdminRepository,
    CategoryRepository,
    InsightRepository,
    MessageRepository,
    ProgressRepository,
    SessionRepository,
)
from src.services.session_cache import SessionCache
from src.services.session_guard import SessionGuard

log = structlog.get_logger(__name__)


@dataclass
class SessionContext:
    """Shared collaborators plus repository factories."""

    db_path: Path
    config: ProgressionConfig
    llm_client: Optional[LLMClient]
    identity: Optional[IdentityGateway]
    cache: SessionCache
    change_feed: ChangeFeed = field(default_factory=ChangeFeed)
    guard: SessionGuard = field(default_factory=SessionGuard)

    def categories(self) -> CategoryRepository:
        return CategoryRepository(str(self.db_path), self.change_feed)

    def sessions(self) -> SessionRepository:
        return SessionRepository(str(self.db_path), self.change_feed)

    def messages(self) -> MessageRepository:
        return MessageRepository(str(self.db_path), self.change_feed)

    def progress(self) -> ProgressRepository:
        return ProgressRepository(str(self.db_path), self.change_feed)

    def insights(self) -> InsightRepository:
        return InsightRepository(str(self.db_path), self.change_feed)

    def admin(self) -> AdminRepository:
        return AdminRepository(str(self.db_path), self.change_feed)


def build_session_context(
    settings: Settings,
    config: ProgressionConfig,
    llm_client: Optional[LLMClient] = None,
    identity: Optional[IdentityGateway] = None,
) -> SessionContext:
    """
    Assemble the context from settings.

    A missing LLM client is created with the configured generation timeout.
    """
    if llm_client is None:
        llm_client = get_llm_client(timeout=config.generation_timeout)
    if identity is None:
        identity = get_identity_gateway()

    context = SessionContext(
        db_path=Path(settings.database_path),
        config=config,
        llm_client=llm_client,
        identity=identity,
        cache=SessionCache(settings.session_cache_path),
    )
    log.info(
        "session_context_built",
        database_path=str(context.db_path),
        llm_provider=getattr(llm_client, "provider_name", None),
    )
    return context
