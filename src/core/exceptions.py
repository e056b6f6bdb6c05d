"""
Custom exception hierarchy for Carry On.

All application exceptions inherit from CarryOnError.
"""


class CarryOnError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(CarryOnError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# Identity Errors
# =============================================================================


class AuthRequiredError(CarryOnError):
    """No authenticated user where one is required."""

    pass


class AdminRequiredError(CarryOnError):
    """Authenticated user is not an admin."""

    pass


class AccountSuspendedError(CarryOnError):
    """User account has an active suspension."""

    pass


class IdentityError(CarryOnError):
    """Identity service rejected a request."""

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


# =============================================================================
# Text Generation Errors
# =============================================================================


class GenerationUnavailableError(CarryOnError):
    """Text generation failed or timed out.

    Recovered locally by the progression controller with a fallback reply.
    """

    pass


class LLMError(GenerationUnavailableError):
    """Base for LLM provider errors."""

    pass


class LLMTimeoutError(LLMError):
    """LLM call timed out."""

    pass


class LLMRateLimitError(LLMError):
    """LLM rate limit exceeded."""

    pass


class LLMHTTPError(LLMError):
    """LLM provider returned a non-success status."""

    def __init__(self, message: str, status_code: int):
        self.status_code = status_code
        super().__init__(message)


class LLMInvalidResponseError(LLMError):
    """LLM returned invalid or empty response."""

    pass


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(CarryOnError):
    """Session-related error."""

    pass


class SessionNotFoundError(SessionError):
    """Session does not exist."""

    pass


class SessionBusyError(SessionError):
    """A turn or reset is already in flight for this session."""

    pass


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(CarryOnError):
    """Structured store error."""

    pass


class PersistenceWriteFailedError(PersistenceError):
    """A write to the structured store failed."""

    pass


class ValidationError(CarryOnError):
    """Input validation failed."""

    pass
