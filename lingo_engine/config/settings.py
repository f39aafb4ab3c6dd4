"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from lingo_engine.config import settings

    # Access settings
    model = settings.TEXT_MODEL
    retries = settings.GENERATION_MAX_RETRIES
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CATALOG_PATH = PACKAGE_ROOT / "content" / "modules"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    APP_NAME: str = "Lingo Engine"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # LLM provider keys (read by LiteLLM from the environment as well)
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""
    GEMINI_API_KEY: str = ""

    # Text model used for question generation and marking
    # Format: provider/model-name (LiteLLM)
    TEXT_MODEL: str = "gemini/gemini-1.5-flash-latest"
    GENERATION_TEMPERATURE: float = 0.8
    MARKING_TEMPERATURE: float = 0.3
    GENERATION_MAX_TOKENS: int = 2048

    # Generative content service
    # Retries re-run the whole call -> repair -> validate pipeline.
    GENERATION_MAX_RETRIES: int = 1
    GENERATION_TIMEOUT_SECONDS: float = 30.0
    GENERATION_RETRY_WAIT_SECONDS: float = 0.0

    # Content catalog
    CATALOG_PATH: str = str(DEFAULT_CATALOG_PATH)
    DEFAULT_LANGUAGE: str = "en"

    # Sessions
    DEFAULT_DIFFICULTY: str = "intermediate"
    PICKER_STRATEGY: str = "random"
    SESSION_BUFFER_TTL_SECONDS: int = 900
    SESSION_MAX_QUESTIONS: int = 0  # 0 = unlimited
    SESSION_IDLE_TTL_SECONDS: int = 3600  # 0 = never expire

    # Persistence
    EVENT_STORE_BACKEND: str = "memory"  # "memory" or "sql"
    DATABASE_URL: str = "sqlite+aiosqlite:///./lingo_engine.db"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
