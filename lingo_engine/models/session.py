"""
Session Domain Models

In-memory session state for one learner's session, the append-only
session events written for each marked answer, and the derived module
performance report.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from lingo_engine.enums.learning import SessionStatus, SkillTag
from lingo_engine.models.contracts import MarkResult


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DomainModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StepInfo(DomainModel):
    """A resolved (submodule, schema) pair ready to be presented."""

    submodule_id: str = Field(..., alias="submoduleId")
    modal_schema_id: str = Field(..., alias="modalSchemaId")
    submodule_title: str = Field("", alias="submoduleTitle")
    ui_component: str = Field("", alias="uiComponent")


@dataclass
class BufferedStep:
    """Pre-generated next step, swapped in on advance."""

    step: StepInfo
    question_data: dict[str, Any]
    prepared_at: datetime = field(default_factory=_utc_now)

    def is_expired(self, now: datetime, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return False
        return (now - self.prepared_at).total_seconds() > ttl_seconds


@dataclass
class SessionState:
    """
    Mutable state of one active session.

    Owned by exactly one SessionOrchestrator; never shared across sessions.
    """

    session_id: str
    user_id: str
    module_id: str
    target_language: str
    source_language: str
    difficulty: str
    status: SessionStatus = SessionStatus.IDLE

    # Current question
    current_step: Optional[StepInfo] = None
    current_question_data: Optional[dict[str, Any]] = None
    current_user_answer: Any = None
    is_answered: bool = False
    current_mark_result: Optional[MarkResult] = None

    # Pre-fetched next step
    buffered_next: Optional[BufferedStep] = None

    # Running counters
    correct_count: int = 0
    total_answered: int = 0
    questions_presented: int = 0

    started_at: datetime = field(default_factory=_utc_now)
    ended_at: Optional[datetime] = None
    last_error: Optional[str] = None


class SessionEvent(DomainModel):
    """
    Immutable record of one presented question, answer and judgement.

    The skill tag is never stored here; it is resolved from the schema
    registry at query time.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    session_id: str = Field(..., alias="sessionId")
    submodule_id: str = Field(..., alias="submoduleId")
    modal_schema_id: str = Field(..., alias="modalSchemaId")
    question_data: Any = Field(None, alias="questionData")
    user_answer: Any = Field(None, alias="userAnswer")
    mark_data: Optional[MarkResult] = Field(None, alias="markData")
    timestamp: datetime = Field(default_factory=_utc_now)

    @property
    def is_correct(self) -> Optional[bool]:
        """Denormalised correctness; None for unmarked events."""
        if self.mark_data is None:
            return None
        return self.mark_data.is_correct


class LearningSessionRecord(DomainModel):
    """Persisted session header."""

    id: str
    user_id: str = Field(..., alias="userId")
    module_id: str = Field(..., alias="moduleId")
    target_language: str = Field(..., alias="targetLanguage")
    source_language: str = Field(..., alias="sourceLanguage")
    start_time: datetime = Field(default_factory=_utc_now, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")


class SkillPerformance(DomainModel):
    """Counts and accuracy for a bucket of marked events."""

    total: int = 0
    correct: int = 0
    accuracy: int = 0


class ModulePerformance(DomainModel):
    """Derived (user, module) report; never stored."""

    overall: SkillPerformance = Field(default_factory=SkillPerformance)
    by_skill: dict[SkillTag, SkillPerformance] = Field(
        default_factory=dict, alias="bySkill"
    )
