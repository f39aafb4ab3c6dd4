"""
FastAPI Dependencies

Access to the process-wide SessionManager created in the app lifespan.
"""

from fastapi import Request

from lingo_engine.middleware.error_handling import NotInitializedError
from lingo_engine.services.learning.session_manager import SessionManager


async def get_session_manager(request: Request) -> SessionManager:
    """
    Return the SessionManager attached to the application.

    Raises:
        NotInitializedError: If called before the lifespan finished startup
    """
    manager = getattr(request.app.state, "session_manager", None)
    if manager is None:
        raise NotInitializedError("Session engine is not initialized")
    return manager
