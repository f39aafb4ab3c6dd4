"""
Fill-in-the-gap writing exercise.

Marked by the generator so that accents, capitalization and acceptable
alternatives can be judged leniently.
"""

from typing import Literal, Optional

from pydantic import Field, field_validator

from lingo_engine.enums.learning import SkillTag
from lingo_engine.models.contracts import Contract, MarkResult
from lingo_engine.services.learning.interactions.base import (
    CORRECT_ANSWER_RULE,
    GenerationContext,
    InteractionSchemaDefinition,
    MarkingContext,
    describe_difficulty,
    format_answer,
    language_name,
    topic_lines,
)

GAP_MARKER = "___"


class FillInGapQuestion(Contract):
    sentence_with_gap: str = Field(
        ..., alias="sentenceWithGap", description=f"Sentence with the gap marked as {GAP_MARKER}."
    )
    correct_answer: str = Field(
        ..., min_length=1, alias="correctAnswer", description="The word or phrase filling the gap."
    )
    hint: Optional[str] = Field(None, description="Optional hint, e.g. the infinitive.")
    task_type: Literal["vocabulary", "grammar", "conjugation"] = Field(
        "grammar", alias="taskType", description="What the gap tests."
    )

    @field_validator("sentence_with_gap")
    @classmethod
    def require_gap(cls, value: str) -> str:
        if GAP_MARKER not in value:
            raise ValueError(f"sentenceWithGap must contain the gap marker {GAP_MARKER}")
        return value


def build_generation_prompt(context: GenerationContext) -> str:
    language = language_name(context.target_language)
    return f"""
You are a {language} language tutor creating a fill-in-the-gap writing exercise.

Task: Write one {language} sentence with a single gap for a {context.difficulty} level student.

{topic_lines(context)}

Requirements:
- Mark the gap with exactly "{GAP_MARKER}".
- The sentence must be {describe_difficulty(context.difficulty)}.
- The gap must have one clearly correct answer that tests the topic.
- Optionally give a hint in {language_name(context.source_language)} (e.g. the infinitive of the verb).
- taskType is one of "vocabulary", "grammar" or "conjugation".
"""


def build_marking_prompt(context: MarkingContext) -> str:
    data = context.question_data
    return f"""
You are a {language_name(context.target_language)} language tutor marking a fill-in-the-gap answer.

Sentence: {data.get('sentenceWithGap', '')}
Expected answer: {data.get('correctAnswer', '')}
Task type: {data.get('taskType', 'unknown')}
Student's answer: {format_answer(context.user_answer)}

Accept answers that are correct even if they differ from the expected answer only in
capitalization or surrounding whitespace. Treat missing accents as a minor error
(score 50-80, isCorrect false). Write feedback in {language_name(context.source_language)}.
{CORRECT_ANSWER_RULE}
"""


DEFINITION = InteractionSchemaDefinition(
    id="fill-in-gap",
    skill=SkillTag.WRITING,
    title="Fill in the Gap",
    localization={"de": "Lückentext", "fr": "Texte à trous", "es": "Rellenar el hueco"},
    generation_contract=FillInGapQuestion,
    build_generation_prompt=build_generation_prompt,
    marking_contract=MarkResult,
    build_marking_prompt=build_marking_prompt,
    ui_component="WritingFillInGap",
)
