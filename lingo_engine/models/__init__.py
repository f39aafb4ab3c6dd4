"""
Pydantic models and domain records.

- base: strict request/response bases
- catalog: module/submodule definitions
- contracts: structural contracts and the MarkResult judgement
- session: in-memory session state, events and performance
- learning: HTTP request/response schemas
- llm_usage: LLM usage tracking
"""

from lingo_engine.models.catalog import (
    LocalizedText,
    ModuleDefinition,
    SchemaOverride,
    SubmoduleDefinition,
)
from lingo_engine.models.contracts import FALLBACK_MARK_RESULT, Contract, MarkResult
from lingo_engine.models.llm_usage import LLMUsage
from lingo_engine.models.session import (
    BufferedStep,
    LearningSessionRecord,
    ModulePerformance,
    SessionEvent,
    SessionState,
    SkillPerformance,
    StepInfo,
)

__all__ = [
    "BufferedStep",
    "Contract",
    "FALLBACK_MARK_RESULT",
    "LLMUsage",
    "LearningSessionRecord",
    "LocalizedText",
    "MarkResult",
    "ModuleDefinition",
    "ModulePerformance",
    "SchemaOverride",
    "SessionEvent",
    "SessionState",
    "SkillPerformance",
    "StepInfo",
    "SubmoduleDefinition",
]
