"""
Centralized enum definitions for the engine.

Usage:
    from lingo_engine.enums import SkillTag, SessionStatus
"""

from lingo_engine.enums.learning import (
    Difficulty,
    GenerationFailureReason,
    LLMOperation,
    SessionStatus,
    SkillTag,
)

__all__ = [
    "Difficulty",
    "GenerationFailureReason",
    "LLMOperation",
    "SessionStatus",
    "SkillTag",
]
