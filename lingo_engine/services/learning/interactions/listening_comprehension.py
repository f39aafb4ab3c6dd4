"""
Listening comprehension exercise.

The core carries only the transcript; audio synthesis happens outside the
engine. Option-index answers are marked locally.
"""

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
from lingo_engine.services.learning.interactions.multiple_choice import mark_option_index


class ListeningComprehensionQuestion(Contract):
    transcript: str = Field(..., min_length=1, description="Short passage to be read aloud.")
    question: str = Field(..., min_length=1, description="Comprehension question about the passage.")
    options: list[str] = Field(..., min_length=3, max_length=4)
    correct_option_index: StrictInt = Field(..., ge=0, alias="correctOptionIndex")

    @model_validator(mode="after")
    def check_index_in_range(self):
        if self.correct_option_index >= len(self.options):
            raise ValueError("correctOptionIndex is out of range for options")
        return self


def build_generation_prompt(context: GenerationContext) -> str:
    language = language_name(context.target_language)
    return f"""
You are a {language} language tutor creating a listening comprehension exercise.

Task: Write a short spoken passage (2-4 sentences) in {language} and one comprehension
question about it for a {context.difficulty} level student.

{topic_lines(context)}

Requirements:
- The passage must be {describe_difficulty(context.difficulty)} and sound natural when spoken.
- Provide 3 or 4 options, exactly one of which is correct.
- The question must only be answerable by understanding the passage.
"""


def build_marking_prompt(context: MarkingContext) -> str:
    return f"""
You are a {language_name(context.target_language)} language tutor marking a listening comprehension answer.

Question data:
{format_question_data(context.question_data)}

Student's answer: {format_answer(context.user_answer)}

Decide whether the answer shows the student understood the passage.
Write feedback in {language_name(context.source_language)}.
{CORRECT_ANSWER_RULE}
"""


DEFINITION = InteractionSchemaDefinition(
    id="listening-comprehension",
    skill=SkillTag.LISTENING,
    title="Listening Comprehension",
    localization={"de": "Hörverstehen", "fr": "Compréhension orale", "es": "Comprensión auditiva"},
    generation_contract=ListeningComprehensionQuestion,
    build_generation_prompt=build_generation_prompt,
    marking_contract=MarkResult,
    build_marking_prompt=build_marking_prompt,
    ui_component="ListeningComprehension",
    local_marker=mark_option_index,
)
