"""
True/false reading exercise.

The learner judges whether a statement in the target language is true.
Boolean answers are marked locally.
"""

from typing import Any, Mapping, Optional

from pydantic import Field, StrictBool

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


class TrueFalseQuestion(Contract):
    statement: str = Field(..., min_length=1, description="A statement in the target language.")
    is_correct_answer_true: StrictBool = Field(
        ..., alias="isCorrectAnswerTrue", description="Whether the statement is true."
    )
    explanation: str = Field("", description="Why the statement is true or false.")


def build_generation_prompt(context: GenerationContext) -> str:
    language = language_name(context.target_language)
    return f"""
You are a {language} language tutor creating a true/false reading exercise.

Task: Write one statement in {language} that a {context.difficulty} level student must judge as true or false.

{topic_lines(context)}

Requirements:
- The statement must be {describe_difficulty(context.difficulty)}.
- Judging it must require understanding the grammar or vocabulary of the topic.
- Explain the answer briefly in {language_name(context.source_language)}.
"""


def build_marking_prompt(context: MarkingContext) -> str:
    return f"""
You are a {language_name(context.target_language)} language tutor marking a true/false answer.

Question data:
{format_question_data(context.question_data)}

Student's answer: {format_answer(context.user_answer)}

Interpret the student's answer as true or false and compare it with isCorrectAnswerTrue.
Write feedback in {language_name(context.source_language)}.
{CORRECT_ANSWER_RULE}
"""


def mark_boolean(question_data: Mapping[str, Any], answer: Any) -> Optional[MarkResult]:
    """Deterministic marking when the answer is a boolean."""
    expected = question_data.get("isCorrectAnswerTrue")
    if not isinstance(answer, bool) or not isinstance(expected, bool):
        return None

    if answer == expected:
        return MarkResult(is_correct=True, score=100, feedback="Correct!", correct_answer="")

    truth = "true" if expected else "false"
    feedback = f"Incorrect. The statement was {truth}. {question_data.get('explanation') or ''}".strip()
    return MarkResult(is_correct=False, score=0, feedback=feedback, correct_answer=truth)


DEFINITION = InteractionSchemaDefinition(
    id="true-false",
    skill=SkillTag.READING,
    title="True or False",
    localization={"de": "Richtig oder falsch", "fr": "Vrai ou faux", "es": "Verdadero o falso"},
    generation_contract=TrueFalseQuestion,
    build_generation_prompt=build_generation_prompt,
    marking_contract=MarkResult,
    build_marking_prompt=build_marking_prompt,
    ui_component="ReadingTrueFalse",
    local_marker=mark_boolean,
)
