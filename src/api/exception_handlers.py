"""
Global exception handlers for FastAPI.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from src.core.exceptions import (
    AccountSuspendedError,
    AdminRequiredError,
    AuthRequiredError,
    CarryOnError,
    ConfigurationError,
    GenerationUnavailableError,
    IdentityError,
    PersistenceError,
    SessionBusyError,
    SessionNotFoundError,
    ValidationError,
)

log = structlog.get_logger(__name__)

# Checked in order; first isinstance match wins
STATUS_CODES = (
    (AuthRequiredError, status.HTTP_401_UNAUTHORIZED),
    (AdminRequiredError, status.HTTP_403_FORBIDDEN),
    (AccountSuspendedError, status.HTTP_403_FORBIDDEN),
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (SessionBusyError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (GenerationUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_code_for(exc: CarryOnError) -> int:
    if isinstance(exc, IdentityError):
        return exc.status_code
    for exc_type, code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def setup_exception_handlers(app: FastAPI):
    """Register custom exception handlers with the FastAPI application.

    Sets up handlers for all CarryOnError subclasses with appropriate
    HTTP status codes, plus handlers for configuration errors and generic exceptions.
    """

    @app.exception_handler(CarryOnError)
    async def carry_on_error_handler(
        request: Request,
        exc: CarryOnError,
    ) -> JSONResponse:
        """Handle CarryOnError exceptions with appropriate HTTP status codes.

        Maps specific error types to HTTP status codes (401 for missing auth,
        404 for unknown sessions, 409 for busy sessions, 503 for failed
        writes, etc.) and returns consistent error response format.
        """
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        status_code = status_code_for(exc)
        message = exc.message
        if isinstance(exc, PersistenceError):
            message = "Could not save your changes. Please try again."

        log_ctx.warning(
            "request_error",
            message=exc.message,
            status_code=status_code,
        )

        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "type": type(exc).__name__,
                    "message": message,
                }
            },
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request,
        exc: ConfigurationError,
    ) -> JSONResponse:
        """Handle configuration errors with HTTP 500 status.

        Returns a 500 Internal Server Error when the application configuration
        is invalid or missing required settings.
        """
        log.error(
            "configuration_error",
            path=request.url.path,
            message=exc.message,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "ConfigurationError",
                    "message": "Server configuration error",
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle all unhandled exceptions with HTTP 500 status.

        Catches any exception not handled by specific handlers, logs the error
        with full context, and returns a generic 500 Internal Server Error response.
        """
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        log_ctx.error(
            "unhandled_exception",
            message=str(exc),
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "InternalServerError",
                    "message": "An unexpected error occurred",
                }
            },
        )
