"""Configuration package."""

from lingo_engine.config.settings import (
    DEFAULT_CATALOG_PATH,
    Settings,
    get_settings,
    settings,
)

__all__ = [
    "DEFAULT_CATALOG_PATH",
    "Settings",
    "get_settings",
    "settings",
]
