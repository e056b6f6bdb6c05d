"""
Application settings management.

Settings are loaded from environment variables with .env file support.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )
    data_dir: Path = Field(
        default=Path("data"), description="Directory for database and other data files"
    )

    # ==========================================================================
    # Structured data store
    # ==========================================================================

    database_path: Path = Field(
        default=Path("data/carry_on.db"), description="Path to SQLite database file"
    )
    session_cache_path: Path = Field(
        default=Path("data/session_cache.json"),
        description="Local cache holding each user's active session id",
    )

    # ==========================================================================
    # Text generation
    # ==========================================================================
    #
    # Defaults are defined in src/llm/client.py. Set LLM_PROVIDER only to
    # override the default provider (e.g., LLM_PROVIDER=openai)

    llm_provider: Optional[str] = Field(
        default=None, description="Override generation provider (default: anthropic)"
    )
    llm_model: Optional[str] = Field(
        default=None, description="Override generation model for the provider"
    )

    anthropic_api_key: Optional[str] = Field(
        default=None, description="Anthropic API key"
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    deepseek_api_key: Optional[str] = Field(
        default=None, description="DeepSeek API key"
    )

    # ==========================================================================
    # Identity service
    # ==========================================================================

    auth_url: str = Field(
        default="http://localhost:9999",
        description="Base URL of the GoTrue-compatible identity service",
    )
    auth_api_key: Optional[str] = Field(
        default=None, description="Public (anon) key sent with every auth request"
    )
    auth_service_role_key: Optional[str] = Field(
        default=None, description="Service-role key for admin user operations"
    )
    auth_timeout: float = Field(
        default=10.0, gt=0, description="Identity request timeout in seconds"
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["*"], description="Allowed CORS origins in debug mode"
    )


# ============================================================================
# Progression Configuration (from YAML)
# ============================================================================


DEFAULT_FALLBACK_REPLY = (
    "I'm sorry, I had trouble putting my thoughts together just now. "
    "Could you tell me a little more about that?"
)


class ProgressionConfig(BaseModel):
    """
    Interview progression parameters loaded from progression.yaml.

    Hoists the category target and the overall denominator into one place
    instead of leaving them scattered as literals.
    """

    default_category_target: int = Field(
        default=15,
        ge=1,
        description="Questions per category when a category omits its own target",
    )
    overall_question_target: int = Field(
        default=135,
        ge=1,
        description="Fixed denominator for the session-level percentage",
    )
    test_unlock_threshold: int = Field(
        default=70,
        ge=0,
        le=100,
        description="Percentage (inclusive) at which test mode unlocks",
    )
    generation_timeout: float = Field(
        default=30.0, gt=0, description="Upper bound for one text-generation call"
    )
    fallback_reply: str = Field(
        default=DEFAULT_FALLBACK_REPLY,
        min_length=1,
        description="Assistant turn persisted when text generation is unavailable",
    )
    count_fallback_turns: bool = Field(
        default=True,
        description="Whether a turn answered by the fallback reply advances progress",
    )
    history_limit: int = Field(
        default=0,
        ge=0,
        description="Most recent messages sent to the model (0 = full history)",
    )
    initial_stage: str = Field(
        default="foundation", description="Milestone stage of a new session"
    )


def _default_config_path(filename: str) -> Optional[Path]:
    """Find config/<filename> relative to the project root or the cwd."""
    project_config = Path(__file__).resolve().parent.parent.parent / "config" / filename
    if project_config.exists():
        return project_config

    cwd_config = Path.cwd() / "config" / filename
    if cwd_config.exists():
        return cwd_config

    return None


def load_progression_config(config_path: Optional[Path] = None) -> ProgressionConfig:
    """
    Load progression configuration from YAML file.

    Args:
        config_path: Path to progression.yaml. If None, uses default path.

    Returns:
        ProgressionConfig with validated settings (defaults if no file exists)

    Raises:
        ConfigurationError: If the file exists but fails validation
    """
    if config_path is None:
        config_path = _default_config_path("progression.yaml")
        if config_path is None:
            return ProgressionConfig()

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return ProgressionConfig()

    with open(str(config_path)) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return ProgressionConfig()

    try:
        return ProgressionConfig(**config_data)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid progression config {config_path}: {e}"
        ) from e


def validate_progression_config(config: ProgressionConfig) -> ProgressionConfig:
    """
    Cross-field checks run once at startup.

    Raises:
        ConfigurationError: If the configured targets cannot produce a
            reachable unlock threshold
    """
    if config.default_category_target > config.overall_question_target:
        raise ConfigurationError(
            "default_category_target "
            f"({config.default_category_target}) exceeds overall_question_target "
            f"({config.overall_question_target})"
        )
    return config


# Global settings instance
settings = Settings()

# Global progression config instance
progression_config = load_progression_config()
