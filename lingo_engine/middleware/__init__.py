"""
Middleware and error taxonomy.

Usage:
    from lingo_engine.middleware import ConfigurationError, setup_error_handling
"""

from lingo_engine.middleware.error_handling import (
    ConfigurationError,
    ErrorHandlingMiddleware,
    ErrorResponse,
    error_response,
    GenerationError,
    NotFoundError,
    NotInitializedError,
    PersistenceError,
    ServiceError,
    SessionStateError,
    ValidationError,
    service_error_response,
    setup_error_handling,
)

__all__ = [
    "ConfigurationError",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "error_response",
    "GenerationError",
    "NotFoundError",
    "NotInitializedError",
    "PersistenceError",
    "ServiceError",
    "SessionStateError",
    "ValidationError",
    "service_error_response",
    "setup_error_handling",
]
