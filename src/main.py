"""
FastAPI application entry point.

Run with: uvicorn src.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from src.core.category_loader import load_categories
from src.core.config import progression_config, settings, validate_progression_config
from src.core.logging import configure_logging, get_logger, bind_context, clear_context
from src.llm.client import PROVIDER_CLASSES, PROVIDER_KEY_SETTINGS, configured_provider
from src.persistence.database import init_database
from src.persistence.repositories.category_repo import CategoryRepository
from src.api.routes import admin, auth, health, sessions, shell
from src.api.exception_handlers import setup_exception_handlers
from src.services.context import build_session_context

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Generates a UUID4 request_id for each incoming request
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        """Process request and add correlation ID."""
        request_id = str(uuid.uuid4())
        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


def validate_api_keys() -> str:
    """
    Check the generation provider is known and has its API key.

    Returns:
        The provider in use

    Raises:
        RuntimeError: Unknown provider or missing key
    """
    provider = configured_provider()

    if provider not in PROVIDER_CLASSES:
        raise RuntimeError(
            f"Unknown LLM provider '{provider}'. "
            f"Supported providers: {', '.join(PROVIDER_CLASSES)}"
        )

    attr_name, env_var = PROVIDER_KEY_SETTINGS[provider]
    if not getattr(settings, attr_name, None):
        raise RuntimeError(
            f"LLM API key missing: {env_var} is required for {provider}. "
            "Set it in .env file."
        )

    log.info("api_keys_validated", generation=provider)
    return provider


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup order: config validation, API keys, database, category seed,
    session context. Any failure aborts startup.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        database_path=str(settings.database_path),
    )

    config = validate_progression_config(progression_config)
    validate_api_keys()

    await init_database(settings.database_path)

    categories = load_categories()
    await CategoryRepository(str(settings.database_path)).upsert_many(categories)
    log.info("categories_seeded", category_count=len(categories))

    context = build_session_context(settings, config)
    app.state.context = context

    log.info("application_started")

    yield

    log.info("application_shutting_down")
    context.change_feed.close_all()


app = FastAPI(
    title="Carry On",
    description="Guided life-story interview for building a digital legacy",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(auth.router)
app.include_router(sessions.router)
app.include_router(shell.router)
app.include_router(admin.router)
