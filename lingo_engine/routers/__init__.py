"""API routers."""

from lingo_engine.routers import health, learning

__all__ = ["health", "learning"]
