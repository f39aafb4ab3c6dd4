"""
Multiple-choice reading exercise.

The learner picks one of 3-5 options. Answers given as an option index are
marked locally; anything else falls through to generator marking.
"""

from typing import Any, Mapping, Optional

from pydantic import Field, StrictInt, model_validator

from lingo_engine.enums.learning import SkillTag
from lingo_engine.models.contracts import Contract, MarkResult
from lingo_engine.services.learning.interactions.base import (
    CORRECT_ANSWER_RULE,
    GenerationContext,
    InteractionSchemaDefinition,
    MarkingContext,
    describe_difficulty,
    format_answer,
    format_question_data,
    language_name,
    topic_lines,
)


class MultipleChoiceQuestion(Contract):
    question: str = Field(..., min_length=1, description="The question in the target language.")
    options: list[str] = Field(
        ..., min_length=3, max_length=5, description="3 to 5 answer options."
    )
    correct_option_index: StrictInt = Field(
        ..., ge=0, alias="correctOptionIndex", description="Zero-based index of the correct option."
    )
    explanation: str = Field("", description="Why the correct option is right.")

    @model_validator(mode="after")
    def check_index_in_range(self):
        if self.correct_option_index >= len(self.options):
            raise ValueError("correctOptionIndex is out of range for options")
        return self


def build_generation_prompt(context: GenerationContext) -> str:
    language = language_name(context.target_language)
    source = language_name(context.source_language)
    return f"""
You are a {language} language tutor creating a multiple-choice reading exercise.

Task: Write one question in {language} for a {context.difficulty} level student whose native language is {source}.

{topic_lines(context)}

Requirements:
- The question and options must be {describe_difficulty(context.difficulty)}.
- Provide between 3 and 5 options, exactly one of which is correct.
- Distractors must be plausible mistakes for a learner at this level.
- Give a short explanation in {source} of why the correct option is right.
"""


def build_marking_prompt(context: MarkingContext) -> str:
    return f"""
You are a {language_name(context.target_language)} language tutor marking a multiple-choice answer.

Question data:
{format_question_data(context.question_data)}

Student's answer: {format_answer(context.user_answer)}

Decide whether the student's answer identifies the correct option. Write feedback in {language_name(context.source_language)}.
{CORRECT_ANSWER_RULE}
"""


def mark_option_index(question_data: Mapping[str, Any], answer: Any) -> Optional[MarkResult]:
    """Deterministic marking when the answer is an option index."""
    if isinstance(answer, bool) or not isinstance(answer, int):
        return None
    options = question_data.get("options") or []
    correct_index = question_data.get("correctOptionIndex")
    if not isinstance(correct_index, int) or not 0 <= correct_index < len(options):
        return None

    if answer == correct_index:
        return MarkResult(is_correct=True, score=100, feedback="Correct!", correct_answer="")

    correct_text = options[correct_index]
    feedback = f'Incorrect. The correct answer is "{correct_text}".'
    explanation = question_data.get("explanation")
    if explanation:
        feedback = f"{feedback} {explanation}"
    return MarkResult(is_correct=False, score=0, feedback=feedback, correct_answer=correct_text)


DEFINITION = InteractionSchemaDefinition(
    id="multiple-choice",
    skill=SkillTag.READING,
    title="Multiple Choice",
    localization={"de": "Multiple Choice", "fr": "Choix multiple", "es": "Opción múltiple"},
    generation_contract=MultipleChoiceQuestion,
    build_generation_prompt=build_generation_prompt,
    marking_contract=MarkResult,
    build_marking_prompt=build_marking_prompt,
    ui_component="ReadingMultipleChoice",
    local_marker=mark_option_index,
)
