"""
Session Orchestrator

State machine for one learner's session:

    IDLE ──start──▶ AWAITING_ANSWER ──submit──▶ MARKING ──▶ ANSWERED
                          ▲                                    │
                          └──────────────advance───────────────┤
                                                               ▼
    ERROR ◀── generation failure (start / advance)           ENDED
      └──retry──▶ AWAITING_ANSWER                 (end: any state → ENDED)

submit() marks the answer and pre-fetches a candidate next step
concurrently; ANSWERED is only entered once both have resolved. The
pre-fetched step is buffered until advance() adopts it.

Buffer policy:
- A buffer older than the configured TTL is discarded on advance and the
  next step is generated on demand.
- A buffer missing because pre-fetch failed is also generated on demand;
  failure enters ERROR with the session intact.
- A buffer missing because the question budget is used up ends the session.

Persistence failures surface as PersistenceError with in-memory state
intact; unwritten events stay queued for flush_pending_events().

Not safe for concurrent calls; SessionManager serializes access per session.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from lingo_engine.config.settings import settings
from lingo_engine.enums.learning import SessionStatus
from lingo_engine.middleware.error_handling import SessionStateError
from lingo_engine.models.contracts import MarkResult
from lingo_engine.models.learning import (
    SessionStateResponse,
    SessionSummary,
    SubmitAnswerResponse,
)
from lingo_engine.models.session import BufferedStep, SessionEvent, SessionState, StepInfo
from lingo_engine.services.learning.marking import MarkingService
from lingo_engine.services.learning.picker import PickContext, PickerService
from lingo_engine.services.learning.question_generator import QuestionGenerator, QuestionResult
from lingo_engine.services.learning.statistics import StatisticsService, compute_accuracy

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionOrchestrator:
    """
    Drives one session through picker, generator, marking and statistics.

    Attributes:
        state: The session's in-memory state
        buffer_ttl_seconds: Max age of a buffered next step (<= 0 disables expiry)
        max_questions: Question budget (<= 0 is unlimited)
    """

    def __init__(
        self,
        state: SessionState,
        picker: PickerService,
        question_generator: QuestionGenerator,
        marking_service: MarkingService,
        statistics: StatisticsService,
        buffer_ttl_seconds: Optional[int] = None,
        max_questions: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        self.state = state
        self.picker = picker
        self.question_generator = question_generator
        self.marking_service = marking_service
        self.statistics = statistics
        self.buffer_ttl_seconds = (
            settings.SESSION_BUFFER_TTL_SECONDS if buffer_ttl_seconds is None else buffer_ttl_seconds
        )
        self.max_questions = (
            settings.SESSION_MAX_QUESTIONS if max_questions is None else max_questions
        )
        self._clock = clock or _utc_now

        self._pending_events: list[SessionEvent] = []
        self._history: list[tuple[str, str, bool]] = []
        self._session_persisted = False
        self._end_persisted = False

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def pending_event_count(self) -> int:
        return len(self._pending_events)

    # =========================================================================
    # Transitions
    # =========================================================================

    async def start(self) -> SessionState:
        """
        IDLE → AWAITING_ANSWER, or ERROR if the first question fails.

        Raises:
            SessionStateError: If the session is not idle
            PersistenceError: If the session header cannot be written
            ConfigurationError: If the module cannot be picked from
        """
        self._require_status(SessionStatus.IDLE, "start")

        if not self._session_persisted:
            self.state.started_at = self._clock()
            await self.statistics.start_session(
                user_id=self.state.user_id,
                module_id=self.state.module_id,
                target_language=self.state.target_language,
                source_language=self.state.source_language,
                session_id=self.state.session_id,
                start_time=self.state.started_at,
            )
            self._session_persisted = True

        await self._generate_and_present()
        return self.state

    async def submit(self, user_answer: Any) -> SubmitAnswerResponse:
        """
        AWAITING_ANSWER → MARKING → ANSWERED.

        Marking and the next-step pre-fetch run concurrently. Marking always
        yields a judgement; a failed pre-fetch just leaves no buffer.

        Raises:
            SessionStateError: If no question is awaiting an answer
            ConfigurationError: State is restored to AWAITING_ANSWER first
            PersistenceError: After ANSWERED is reached; the event stays queued
        """
        self._require_status(SessionStatus.AWAITING_ANSWER, "submit")
        state = self.state
        step = state.current_step

        state.status = SessionStatus.MARKING
        state.current_user_answer = user_answer

        mark_call = self.marking_service.mark_answer(
            module_id=state.module_id,
            submodule_id=step.submodule_id,
            schema_id=step.modal_schema_id,
            question_data=state.current_question_data,
            user_answer=user_answer,
            target_language=state.target_language,
            source_language=state.source_language,
        )
        calls = [mark_call]
        if self._question_budget_left():
            calls.append(self._generate_next())
        outcomes = await asyncio.gather(*calls, return_exceptions=True)
        mark = outcomes[0]
        prefetch = outcomes[1] if len(outcomes) > 1 else None

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                state.status = SessionStatus.AWAITING_ANSWER
                state.current_user_answer = None
                raise outcome

        self._record_answer(step, user_answer, mark)
        if prefetch is not None and prefetch.success:
            state.buffered_next = BufferedStep(
                step=prefetch.step,
                question_data=prefetch.question_data,
                prepared_at=self._clock(),
            )
        else:
            state.buffered_next = None
        state.status = SessionStatus.ANSWERED

        response = SubmitAnswerResponse(
            mark_result=mark,
            next_step=state.buffered_next.step if state.buffered_next else None,
            next_question_data=state.buffered_next.question_data if state.buffered_next else None,
        )
        await self.flush_pending_events()
        return response

    async def advance(self) -> SessionState:
        """
        ANSWERED → AWAITING_ANSWER (buffered or on-demand step), ERROR, or ENDED.

        Raises:
            SessionStateError: If the current question has not been answered
        """
        self._require_status(SessionStatus.ANSWERED, "advance")
        buffer = self.state.buffered_next
        self.state.buffered_next = None

        if buffer is not None:
            if not buffer.is_expired(self._clock(), self.buffer_ttl_seconds):
                self._present(buffer.step, buffer.question_data)
                return self.state
            logger.info(
                f"Session {self.state.session_id}: buffered step expired "
                f"(ttl={self.buffer_ttl_seconds}s), generating on demand"
            )

        if not self._question_budget_left():
            logger.info(f"Session {self.state.session_id}: question budget reached")
            await self.end()
            return self.state

        await self._generate_and_present()
        return self.state

    async def retry(self) -> SessionState:
        """ERROR → AWAITING_ANSWER; stays in ERROR if generation fails again."""
        self._require_status(SessionStatus.ERROR, "retry")
        await self._generate_and_present()
        return self.state

    async def end(self) -> SessionState:
        """
        Any state → ENDED, then persist queued events and the end time.

        Calling end() again re-attempts any persistence that failed.
        """
        state = self.state
        if state.status != SessionStatus.ENDED:
            state.status = SessionStatus.ENDED
            state.ended_at = self._clock()
            state.buffered_next = None
            logger.info(
                f"Session {state.session_id} ended: "
                f"{state.correct_count}/{state.total_answered} correct"
            )

        await self.flush_pending_events()
        if self._session_persisted and not self._end_persisted:
            await self.statistics.end_session(state.session_id, state.ended_at)
            self._end_persisted = True
        return state

    async def flush_pending_events(self) -> int:
        """
        Write queued events in order.

        Returns:
            Number of events written

        Raises:
            PersistenceError: Remaining events stay queued
        """
        flushed = 0
        while self._pending_events:
            await self.statistics.record_event(self._pending_events[0])
            self._pending_events.pop(0)
            flushed += 1
        return flushed

    # =========================================================================
    # Projections
    # =========================================================================

    def projection(self) -> SessionStateResponse:
        """Read-only view of the session for reload/resume."""
        state = self.state
        return SessionStateResponse(
            session_id=state.session_id,
            user_id=state.user_id,
            module_id=state.module_id,
            status=state.status,
            target_language=state.target_language,
            source_language=state.source_language,
            current_step=state.current_step,
            question_data=state.current_question_data,
            user_answer=state.current_user_answer,
            is_answered=state.is_answered,
            mark_result=state.current_mark_result,
            has_buffered_step=state.buffered_next is not None,
            correct_count=state.correct_count,
            total_answered=state.total_answered,
            last_error=state.last_error,
        )

    def summary(self) -> SessionSummary:
        state = self.state
        finished = state.ended_at or self._clock()
        return SessionSummary(
            total_questions=state.total_answered,
            correct_answers=state.correct_count,
            score=compute_accuracy(state.correct_count, state.total_answered),
            time_spent_seconds=max(0, int((finished - state.started_at).total_seconds())),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_status(self, expected: SessionStatus, operation: str) -> None:
        if self.state.status != expected:
            raise SessionStateError(
                f"Cannot {operation} session {self.state.session_id} in state "
                f"{self.state.status.value}",
                details={"status": self.state.status.value, "expected": expected.value},
            )

    def _question_budget_left(self) -> bool:
        return self.max_questions <= 0 or self.state.questions_presented < self.max_questions

    async def _generate_next(self) -> QuestionResult:
        state = self.state
        pick = self.picker.pick_next(
            PickContext(
                module_id=state.module_id,
                target_language=state.target_language,
                source_language=state.source_language,
                user_id=state.user_id,
                history=tuple(self._history),
            )
        )
        return await self.question_generator.generate_question(
            module_id=state.module_id,
            submodule_id=pick.submodule_id,
            schema_id=pick.modal_schema_id,
            target_language=state.target_language,
            source_language=state.source_language,
            difficulty=state.difficulty,
        )

    async def _generate_and_present(self) -> bool:
        result = await self._generate_next()
        if not result.success:
            self.state.status = SessionStatus.ERROR
            self.state.last_error = result.generation.error or "question generation failed"
            logger.warning(
                f"Session {self.state.session_id} entered error state: {self.state.last_error}"
            )
            return False
        self._present(result.step, result.question_data)
        return True

    def _present(self, step: StepInfo, question_data: dict[str, Any]) -> None:
        state = self.state
        state.current_step = step
        state.current_question_data = question_data
        state.current_user_answer = None
        state.is_answered = False
        state.current_mark_result = None
        state.questions_presented += 1
        state.last_error = None
        state.status = SessionStatus.AWAITING_ANSWER

    def _record_answer(self, step: StepInfo, user_answer: Any, mark: MarkResult) -> None:
        state = self.state
        state.current_mark_result = mark
        state.is_answered = True
        state.total_answered += 1
        if mark.is_correct:
            state.correct_count += 1
        self._history.append((step.submodule_id, step.modal_schema_id, mark.is_correct))

        self._pending_events.append(
            SessionEvent(
                session_id=state.session_id,
                submodule_id=step.submodule_id,
                modal_schema_id=step.modal_schema_id,
                question_data=state.current_question_data,
                user_answer=user_answer,
                mark_data=mark,
                timestamp=self._clock(),
            )
        )
