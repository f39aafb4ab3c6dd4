"""
Speaking conversation exercise.

The learner answers one of three conversational questions aloud; speech
recognition happens outside the engine and the answer arrives as
{questionIndex, transcript}.
"""

from typing import Any, Mapping, Optional

from pydantic import Field

from lingo_engine.enums.learning import SkillTag
from lingo_engine.models.contracts import Contract, MarkResult
from lingo_engine.services.learning.interactions.base import (
    GenerationContext,
    InteractionSchemaDefinition,
    MarkingContext,
    describe_difficulty,
    language_name,
    topic_lines,
)


class SpeakingConversationQuestion(Contract):
    questions: list[str] = Field(
        ...,
        min_length=3,
        max_length=3,
        description="Exactly 3 conversational questions in the target language.",
    )
    hint: Optional[str] = Field(None, description="Optional vocabulary or grammar hint.")
    show_hint: bool = Field(False, alias="showHint", description="Whether to show the hint by default.")


def build_generation_prompt(context: GenerationContext) -> str:
    language = language_name(context.target_language)
    return f"""
You are a {language} language tutor creating a speaking practice exercise.

Task: Create 3 conversational questions in {language} for a {context.difficulty} level student to answer verbally.

{topic_lines(context)}

Requirements:
- Generate exactly 3 {language} questions that are {describe_difficulty(context.difficulty)}.
- Questions should be related to the module focus and specific topic.
- Questions should encourage the student to use the grammar or vocabulary being studied.
- Questions should encourage responses of at least 2-3 sentences.
- Also provide a helpful hint that could assist the user in formulating their answer.
"""


def resolve_spoken_answer(question_data: Mapping[str, Any], answer: Any) -> tuple[str, str]:
    """Return (original question, transcript) for a speaking answer."""
    questions = question_data.get("questions") or []
    if isinstance(answer, Mapping):
        index = answer.get("questionIndex", 0)
        transcript = answer.get("transcript") or ""
    else:
        index = 0
        transcript = "" if answer is None else str(answer)

    question = ""
    if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(questions):
        question = questions[index]
    return question, transcript


def build_marking_prompt(context: MarkingContext) -> str:
    question, transcript = resolve_spoken_answer(context.question_data, context.user_answer)
    topic = f"Context/Topic: {context.submodule_context}" if context.submodule_context else ""
    return f"""
You are a language tutor evaluating a student's spoken response. The student was asked to
respond to a question in {language_name(context.target_language)}, and their response was
transcribed using speech-to-text.

Original Question: "{question}"

Student's Transcribed Response: "{transcript}"

{topic}

Evaluate the response for relevance to the question, grammatical accuracy, vocabulary
usage, and fluency. Minor errors or odd phrasing may come from speech recognition rather
than the student.

isCorrect is true if the answer was generally appropriate and on-topic. Write feedback in
{language_name(context.source_language)}, mentioning strengths and areas for improvement.
Set "correctAnswer" to an example of a good answer, or to an empty string ("") if the
student's answer was already excellent or isCorrect is true.
"""


DEFINITION = InteractionSchemaDefinition(
    id="speaking-conversation",
    skill=SkillTag.SPEAKING,
    title="Speaking Practice",
    localization={"de": "Sprechübung", "fr": "Expression orale", "es": "Práctica oral"},
    generation_contract=SpeakingConversationQuestion,
    build_generation_prompt=build_generation_prompt,
    marking_contract=MarkResult,
    build_marking_prompt=build_marking_prompt,
    ui_component="SpeakingConversation",
)
