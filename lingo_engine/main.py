"""
Lingo Engine API

FastAPI application exposing the adaptive learning session engine.

Startup order (lifespan):
1. Interaction schema registry
2. Content catalog (validated against the registry)
3. Event store (tables created for the SQL backend)
4. Session manager

Run with:
    uvicorn lingo_engine.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Union

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lingo_engine.config import settings
from lingo_engine.middleware.error_handling import setup_error_handling
from lingo_engine.routers import health, learning
from lingo_engine.services.learning.generation import TextGenerator
from lingo_engine.services.learning.session_manager import (
    SessionManager,
    create_session_manager,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    session_manager: Optional[SessionManager] = None,
    generator: Optional[TextGenerator] = None,
    catalog_path: Optional[Union[str, Path]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        session_manager: Pre-built manager (tests); built at startup when None
        generator: Text generator for a startup-built manager
        catalog_path: Catalog location for a startup-built manager
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager = session_manager
        if manager is None:
            manager = await create_session_manager(
                generator=generator, catalog_path=catalog_path
            )
        app.state.session_manager = manager
        logger.info(f"{settings.APP_NAME} started")

        yield

        await manager.close()
        app.state.session_manager = None
        logger.info(f"{settings.APP_NAME} stopped")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Adaptive language learning session engine",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)

    app.include_router(health.router)
    app.include_router(learning.router)

    @app.get("/")
    async def root():
        return {"message": settings.APP_NAME}

    return app


app = create_app()
