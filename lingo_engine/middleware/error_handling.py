"""
Error Handling

Service error taxonomy and its JSON rendering.

Propagation:
- ConfigurationError, NotInitializedError: content or startup defects;
  raised immediately and never retried
- GenerationError, ValidationError: raised per attempt inside the
  generative content service and folded into a GenerationResult there
- PersistenceError: reaches the caller while the in-memory session stays
  intact, so the write can be retried
- NotFoundError, SessionStateError: bad ids or out-of-order calls at the
  session manager

Every error leaves the HTTP layer as
    {"error", "message", "error_id", "details", "timestamp"}
with the error's status code; "details" is only filled in debug mode.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from lingo_engine.enums.learning import GenerationFailureReason

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str  # error code, e.g. "invalid_session_state"
    message: str
    error_id: str  # correlates the response with the log line
    details: Optional[dict] = None
    timestamp: datetime


# =============================================================================
# Exceptions
# =============================================================================


class ServiceError(Exception):
    """
    Root of the engine's exceptions.

    Subclasses fix status_code and error_code; both can be overridden per
    instance.
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.details = details


class ConfigurationError(ServiceError):
    """
    Content or wiring defect.

    Raised for a missing catalog/schema entry, a submodule without supported
    schemas, or an unknown picker strategy. Never retried.
    """

    status_code = 500
    error_code = "configuration_error"


class NotInitializedError(ServiceError):
    """
    Registry read before initialize() completed.

    Indicates a startup-ordering defect.
    """

    status_code = 503
    error_code = "not_initialized"


class GenerationError(ServiceError):
    """
    Malformed or unusable output from the text generator.

    Carries the reason so retries can be logged per failure class.
    """

    status_code = 502
    error_code = "generation_error"

    def __init__(
        self,
        message: str,
        reason: GenerationFailureReason = GenerationFailureReason.PARSE,
        details: dict = None,
    ):
        super().__init__(message, details=details)
        self.reason = reason


class ValidationError(GenerationError):
    """
    Parsed generator output that violates its structural contract.

    Shares the retry budget with GenerationError.
    """

    error_code = "validation_error"

    def __init__(self, message: str, details: dict = None):
        super().__init__(
            message, reason=GenerationFailureReason.VALIDATION, details=details
        )


class PersistenceError(ServiceError):
    """
    Session or event write failure.

    Raised to the caller while in-memory session state is preserved.
    """

    status_code = 503
    error_code = "persistence_error"


class NotFoundError(ServiceError):
    """Unknown session or module id."""

    status_code = 404
    error_code = "not_found"


class SessionStateError(ServiceError):
    """
    Operation not allowed in the session's current state.

    e.g. submitting an answer while the session is not awaiting one.
    """

    status_code = 409
    error_code = "invalid_session_state"


# =============================================================================
# Error Responses
# =============================================================================


def new_error_id() -> str:
    return uuid4().hex[:8]


def error_response(
    status_code: int,
    error_code: str,
    message: str,
    error_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> JSONResponse:
    """Render an ErrorResponse body with the given status code."""
    body = ErrorResponse(
        error=error_code,
        message=message,
        error_id=error_id or new_error_id(),
        details=details,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def service_error_response(
    error: ServiceError,
    error_id: Optional[str] = None,
    debug: bool = False,
) -> JSONResponse:
    """
    Render a ServiceError with its own status and error code.

    Details are only exposed in debug mode.
    """
    return error_response(
        error.status_code,
        error.error_code,
        error.message,
        error_id=error_id,
        details=error.details if debug else None,
    )


# =============================================================================
# Middleware
# =============================================================================


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Last line of defence for exceptions that escape the routes.

    ServiceErrors keep their status code. Anything else becomes a 500 whose
    body carries only the correlation id unless debug is enabled.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = new_error_id()
        route = f"{request.method} {request.url.path}"

        try:
            return await call_next(request)
        except HTTPException:
            raise
        except ServiceError as exc:
            logger.error(
                f"[{error_id}] {exc.error_code} on {route}: {exc.message}",
                extra={"error_id": error_id, "details": exc.details},
            )
            return service_error_response(exc, error_id=error_id, debug=self.debug)
        except Exception as exc:
            logger.exception(f"[{error_id}] Unhandled {type(exc).__name__} on {route}")
            details = None
            if self.debug:
                details = {
                    "exception": type(exc).__name__,
                    "message": str(exc),
                    "traceback": traceback.format_exc(),
                }
            return error_response(
                500,
                "internal_server_error",
                "An unexpected error occurred",
                error_id=error_id,
                details=details,
            )


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """
    Install the ServiceError handler and the catch-all middleware.

    The handler covers errors raised inside routes and dependencies, which
    FastAPI intercepts before they reach the middleware.
    """

    @app.exception_handler(ServiceError)
    async def _service_error_handler(request: Request, exc: ServiceError):
        logger.warning(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
        return service_error_response(exc, debug=debug)

    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    logger.debug(f"Error handling installed (debug={debug})")
