"""
Interaction Schema Building Blocks

An interaction schema is a reusable exercise type. It bundles a skill tag
with two independent (contract, prompt builder) pairs, one for question
generation and one for answer marking, plus an opaque UI component id.

Prompt builders are pure functions of their context.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from lingo_engine.enums.learning import SkillTag
from lingo_engine.models.contracts import Contract, MarkResult

LANGUAGE_NAMES = {
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "it": "Italian",
    "nl": "Dutch",
    "pt": "Portuguese",
}

DIFFICULTY_DESCRIPTIONS = {
    "beginner": "simple, using basic vocabulary and grammar structures, suitable for A1-A2 level",
    "intermediate": "moderately complex, requiring more varied vocabulary and grammar, suitable for B1-B2 level",
    "advanced": "sophisticated, possibly including idiomatic expressions and complex grammar, suitable for C1-C2 level",
}

CORRECT_ANSWER_RULE = (
    'Set "correctAnswer" to the corrected answer only if the student was wrong. '
    'If the answer is correct, "correctAnswer" must be an empty string ("").'
)


@dataclass(frozen=True)
class GenerationContext:
    """Inputs available to a generation prompt builder."""

    target_language: str
    source_language: str
    difficulty: str = "intermediate"
    module_title: str = ""
    module_primary_task: str = ""
    submodule_title: str = ""
    submodule_primary_task: str = ""
    submodule_context: str = ""


@dataclass(frozen=True)
class MarkingContext:
    """Inputs available to a marking prompt builder."""

    question_data: Mapping[str, Any]
    user_answer: Any
    target_language: str
    source_language: str
    submodule_context: str = ""


GenerationPromptBuilder = Callable[[GenerationContext], str]
MarkingPromptBuilder = Callable[[MarkingContext], str]
# Returns a judgement, or None when the answer needs generator marking
LocalMarker = Callable[[Mapping[str, Any], Any], Optional[MarkResult]]


@dataclass(frozen=True)
class InteractionSchemaDefinition:
    """
    One registered exercise type.

    Attributes:
        id: Schema id (e.g. "multiple-choice")
        skill: Primary skill engaged; used to bucket performance
        title: Default (English) title
        generation_contract: Shape of generated question data
        build_generation_prompt: GenerationContext → prompt text
        marking_contract: Shape of the marking judgement
        build_marking_prompt: MarkingContext → prompt text
        ui_component: Opaque UI component identifier
        localization: language code → translated title
        local_marker: Optional deterministic marker tried before the generator
    """

    id: str
    skill: SkillTag
    title: str
    generation_contract: type[Contract]
    build_generation_prompt: GenerationPromptBuilder
    marking_contract: type[Contract]
    build_marking_prompt: MarkingPromptBuilder
    ui_component: str
    localization: Mapping[str, str] = field(default_factory=dict)
    local_marker: Optional[LocalMarker] = None

    @property
    def generation_label(self) -> str:
        return f"{self.id}:generation"

    @property
    def marking_label(self) -> str:
        return f"{self.id}:marking"

    def localized_title(self, language: str) -> str:
        return self.localization.get(language, self.title)


def language_name(code: str) -> str:
    """Human-readable language name for prompts."""
    return LANGUAGE_NAMES.get(code, code)


def describe_difficulty(difficulty: str) -> str:
    return DIFFICULTY_DESCRIPTIONS.get(difficulty, DIFFICULTY_DESCRIPTIONS["intermediate"])


def topic_lines(context: GenerationContext) -> str:
    """Module/submodule focus lines, omitting empty ones."""
    lines = []
    if context.module_primary_task:
        lines.append(f"Module focus: {context.module_primary_task}")
    if context.submodule_primary_task:
        lines.append(f"Specific topic: {context.submodule_primary_task}")
    if context.submodule_context:
        lines.append(f"Context: {context.submodule_context}")
    return "\n".join(lines)


def format_answer(answer: Any) -> str:
    """Render a user answer for inclusion in a prompt."""
    if isinstance(answer, (dict, list)):
        return json.dumps(answer, ensure_ascii=False)
    return str(answer)


def format_question_data(question_data: Mapping[str, Any]) -> str:
    return json.dumps(dict(question_data), ensure_ascii=False, indent=2)
