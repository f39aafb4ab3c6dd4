"""
Built-in interaction schemas.

Each module defines a generation contract with its prompt builder, reuses
the MarkResult marking contract with its own marking prompt builder, and
exports a DEFINITION registered by default.
"""

from lingo_engine.services.learning.interactions import (
    fill_in_gap,
    listening_comprehension,
    multiple_choice,
    speaking_conversation,
    true_false,
)
from lingo_engine.services.learning.interactions.base import (
    GenerationContext,
    InteractionSchemaDefinition,
    MarkingContext,
)

BUILTIN_SCHEMAS = (
    multiple_choice.DEFINITION,
    true_false.DEFINITION,
    fill_in_gap.DEFINITION,
    listening_comprehension.DEFINITION,
    speaking_conversation.DEFINITION,
)

__all__ = [
    "BUILTIN_SCHEMAS",
    "GenerationContext",
    "InteractionSchemaDefinition",
    "MarkingContext",
]
