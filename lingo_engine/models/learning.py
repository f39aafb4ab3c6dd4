"""
Learning Session API Models (Pydantic)

Request/response schemas for the session engine HTTP surface:
- Starting, answering, advancing and ending sessions
- Session state projections for reload/resume
- Forced question previews
- Module listings and module performance

API Contract:
    Request models use StrictRequest (extra="forbid") to reject unknown fields.
    Responses serialize with camelCase aliases.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from lingo_engine.enums.learning import Difficulty, SessionStatus
from lingo_engine.models.base import StrictRequest, StrictResponse
from lingo_engine.models.contracts import MarkResult
from lingo_engine.models.session import StepInfo


# ===========================================
# Session Requests
# ===========================================


class StartSessionRequest(StrictRequest):
    """Start a new session for a module and language pair."""

    user_id: str = Field(..., min_length=1, alias="userId")
    module_id: str = Field(..., min_length=1, alias="moduleId")
    target_language: str = Field(..., min_length=2, alias="targetLanguage")
    source_language: str = Field(..., min_length=2, alias="sourceLanguage")
    difficulty: Optional[Difficulty] = None


class SubmitAnswerRequest(StrictRequest):
    """
    Submit the learner's answer to the current question.

    The answer shape depends on the interaction schema: an option index for
    multiple-choice, a boolean for true-false, free text for fill-in-gap, or
    {questionIndex, transcript} for speaking-conversation.
    """

    answer: Any = Field(..., description="Schema-specific answer payload")


class GeneratePreviewRequest(StrictRequest):
    """
    Generate a question outside of a session.

    When submodule or schema ids are omitted they are chosen by the picker.
    """

    module_id: str = Field(..., min_length=1, alias="moduleId")
    target_language: str = Field(..., min_length=2, alias="targetLanguage")
    source_language: str = Field(..., min_length=2, alias="sourceLanguage")
    submodule_id: Optional[str] = Field(None, alias="forcedSubmoduleId")
    modal_schema_id: Optional[str] = Field(None, alias="forcedModalSchemaId")
    difficulty: Optional[Difficulty] = None


# ===========================================
# Session Responses
# ===========================================


class SessionStateResponse(StrictResponse):
    """
    Projection of a session's in-memory state.

    Exposes only stable states; a session is never observed mid-marking by
    callers that hold the session lock.
    """

    session_id: str = Field(..., alias="sessionId")
    user_id: str = Field(..., alias="userId")
    module_id: str = Field(..., alias="moduleId")
    status: SessionStatus
    target_language: str = Field(..., alias="targetLanguage")
    source_language: str = Field(..., alias="sourceLanguage")
    current_step: Optional[StepInfo] = Field(None, alias="currentStep")
    question_data: Optional[dict[str, Any]] = Field(None, alias="questionData")
    user_answer: Any = Field(None, alias="userAnswer")
    is_answered: bool = Field(False, alias="isAnswered")
    mark_result: Optional[MarkResult] = Field(None, alias="markResult")
    has_buffered_step: bool = Field(False, alias="hasBufferedStep")
    correct_count: int = Field(0, alias="sessionCorrectCount")
    total_answered: int = Field(0, alias="sessionTotalAnswered")
    last_error: Optional[str] = Field(None, alias="lastError")


class SubmitAnswerResponse(StrictResponse):
    """Judgement plus the pre-fetched next step, when one was prepared."""

    mark_result: MarkResult = Field(..., alias="markResult")
    next_step: Optional[StepInfo] = Field(None, alias="nextStep")
    next_question_data: Optional[dict[str, Any]] = Field(None, alias="nextQuestionData")


class SessionSummary(StrictResponse):
    """End-of-session summary."""

    total_questions: int = Field(0, alias="totalQuestions")
    correct_answers: int = Field(0, alias="correctAnswers")
    score: int = Field(0, description="Accuracy percentage")
    time_spent_seconds: int = Field(0, alias="timeSpentSeconds")


class EndSessionResponse(StrictResponse):
    session_id: str = Field(..., alias="sessionId")
    summary: SessionSummary
    ended_at: Optional[datetime] = Field(None, alias="endedAt")


class FlushEventsResponse(StrictResponse):
    session_id: str = Field(..., alias="sessionId")
    flushed: int = 0
    pending: int = 0


class PreviewResponse(StrictResponse):
    """Result of a forced question generation."""

    module_id: str = Field(..., alias="moduleId")
    step: StepInfo
    question_data: dict[str, Any] = Field(..., alias="questionData")
    attempts: int = 1


# ===========================================
# Catalog Responses
# ===========================================


class SubmoduleSummary(StrictResponse):
    id: str
    title: str
    primary_task: str = Field("", alias="primaryTask")
    supported_modal_schema_ids: list[str] = Field(
        default_factory=list, alias="supportedModalSchemaIds"
    )


class ModuleSummary(StrictResponse):
    """Localized module listing entry."""

    id: str
    title: str
    primary_task: str = Field("", alias="primaryTask")
    supported_source_languages: list[str] = Field(
        default_factory=list, alias="supportedSourceLanguages"
    )
    submodules: list[SubmoduleSummary] = Field(default_factory=list)
