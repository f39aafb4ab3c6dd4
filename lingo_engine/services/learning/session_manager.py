"""
Session Manager

Consumer-facing API of the session engine. Owns the registries and
services, and a map of session id → SessionOrchestrator. Each session has
its own asyncio.Lock; sessions share nothing mutable. Sessions left idle
longer than SESSION_IDLE_TTL_SECONDS are ended and released the next time
a session is started.

Usage:
    manager = await create_session_manager()

    state = await manager.start_session("user-1", "present-tense", "de", "en")
    result = await manager.submit_answer(state.session_id, 2)
    state = await manager.advance(state.session_id)
    summary = await manager.end_session(state.session_id)
"""

import asyncio
import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Union

from lingo_engine.config.settings import settings
from lingo_engine.middleware.error_handling import (
    ConfigurationError,
    GenerationError,
    NotFoundError,
    PersistenceError,
)
from lingo_engine.models.catalog import ModuleDefinition
from lingo_engine.models.learning import (
    EndSessionResponse,
    FlushEventsResponse,
    PreviewResponse,
    SessionStateResponse,
    SubmitAnswerResponse,
)
from lingo_engine.models.session import LearningSessionRecord, ModulePerformance, SessionState
from lingo_engine.services.learning.catalog import ContentCatalog, load_catalog_records
from lingo_engine.services.learning.event_store import (
    EventStore,
    SqlAlchemyEventStore,
    create_event_store,
)
from lingo_engine.services.learning.generation import GenerativeContentService, TextGenerator
from lingo_engine.services.learning.marking import MarkingService
from lingo_engine.services.learning.orchestrator import Clock, SessionOrchestrator
from lingo_engine.services.learning.picker import PickContext, PickerService
from lingo_engine.services.learning.question_generator import QuestionGenerator
from lingo_engine.services.learning.schema_registry import InteractionSchemaRegistry
from lingo_engine.services.learning.statistics import DEFAULT_HISTORY_LIMIT, StatisticsService
from lingo_engine.services.llm.client import get_llm_client

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates sessions and serializes operations on each one."""

    def __init__(
        self,
        catalog: ContentCatalog,
        schema_registry: InteractionSchemaRegistry,
        generation_service: GenerativeContentService,
        event_store: EventStore,
        picker: Optional[PickerService] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
        buffer_ttl_seconds: Optional[int] = None,
        max_questions: Optional[int] = None,
        idle_ttl_seconds: Optional[int] = None,
    ):
        self.catalog = catalog
        self.schema_registry = schema_registry
        self.generation_service = generation_service
        self.event_store = event_store
        self.picker = picker or PickerService(catalog, rng=rng, strategy=settings.PICKER_STRATEGY)
        self.question_generator = QuestionGenerator(catalog, schema_registry, generation_service)
        self.marking_service = MarkingService(catalog, schema_registry, generation_service)
        self.statistics = StatisticsService(event_store, schema_registry)

        self._clock = clock
        self._buffer_ttl_seconds = buffer_ttl_seconds
        self._max_questions = max_questions
        self._idle_ttl_seconds = (
            settings.SESSION_IDLE_TTL_SECONDS if idle_ttl_seconds is None else idle_ttl_seconds
        )
        self._sessions: dict[str, SessionOrchestrator] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_active: dict[str, datetime] = {}

    @property
    def active_session_count(self) -> int:
        return len(self._sessions)

    def _now(self) -> datetime:
        return self._clock() if self._clock else datetime.now(timezone.utc)

    def _get(self, session_id: str) -> tuple[SessionOrchestrator, asyncio.Lock]:
        orchestrator = self._sessions.get(session_id)
        if orchestrator is None:
            raise NotFoundError(f"Session not found: {session_id}")
        self._last_active[session_id] = self._now()
        return orchestrator, self._locks[session_id]

    def _forget(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)
        self._last_active.pop(session_id, None)

    async def _discard(self, session_id: str, orchestrator: SessionOrchestrator) -> None:
        """End the session so its record gets an end time, then release it."""
        try:
            await orchestrator.end()
        except PersistenceError as e:
            logger.warning(f"Could not close record of session {session_id}: {e}")
        self._forget(session_id)

    async def expire_idle_sessions(self) -> int:
        """
        End and release sessions idle for longer than the idle TTL.

        Sessions with an operation in flight are skipped. A TTL of 0
        disables expiry.

        Returns:
            Number of sessions released
        """
        if self._idle_ttl_seconds <= 0:
            return 0

        cutoff = self._now() - timedelta(seconds=self._idle_ttl_seconds)
        idle = [
            session_id
            for session_id, last_active in self._last_active.items()
            if last_active < cutoff and not self._locks[session_id].locked()
        ]
        expired = 0
        for session_id in idle:
            orchestrator = self._sessions.get(session_id)
            if orchestrator is None:
                continue
            async with self._locks[session_id]:
                await self._discard(session_id, orchestrator)
            expired += 1

        if expired:
            logger.info(f"Expired {expired} idle session(s)")
        return expired

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def start_session(
        self,
        user_id: str,
        module_id: str,
        target_language: str,
        source_language: str,
        difficulty: Optional[str] = None,
    ) -> SessionStateResponse:
        """
        Start a session and generate its first question.

        A generation failure leaves the session in ERROR (use retry);
        configuration and persistence errors discard it and bubble. A
        discarded session whose record was already written gets an end time.
        """
        if self.catalog.get_module(module_id) is None:
            raise NotFoundError(f"Module not found: {module_id}")
        await self.expire_idle_sessions()

        session_id = str(uuid.uuid4())
        state = SessionState(
            session_id=session_id,
            user_id=user_id,
            module_id=module_id,
            target_language=target_language,
            source_language=source_language,
            difficulty=difficulty or settings.DEFAULT_DIFFICULTY,
        )
        orchestrator = SessionOrchestrator(
            state,
            picker=self.picker,
            question_generator=self.question_generator,
            marking_service=self.marking_service,
            statistics=self.statistics,
            buffer_ttl_seconds=self._buffer_ttl_seconds,
            max_questions=self._max_questions,
            clock=self._clock,
        )
        lock = asyncio.Lock()
        self._sessions[session_id] = orchestrator
        self._locks[session_id] = lock
        self._last_active[session_id] = self._now()

        try:
            async with lock:
                await orchestrator.start()
                return orchestrator.projection()
        except Exception:
            await self._discard(session_id, orchestrator)
            raise

    async def submit_answer(self, session_id: str, answer: Any) -> SubmitAnswerResponse:
        orchestrator, lock = self._get(session_id)
        async with lock:
            return await orchestrator.submit(answer)

    async def advance(self, session_id: str) -> SessionStateResponse:
        orchestrator, lock = self._get(session_id)
        async with lock:
            await orchestrator.advance()
            return orchestrator.projection()

    async def retry(self, session_id: str) -> SessionStateResponse:
        orchestrator, lock = self._get(session_id)
        async with lock:
            await orchestrator.retry()
            return orchestrator.projection()

    async def end_session(self, session_id: str) -> EndSessionResponse:
        """
        End a session and return its summary.

        The session is released once its events and end time are persisted;
        on PersistenceError it is kept so end_session can be called again.
        """
        orchestrator, lock = self._get(session_id)
        async with lock:
            state = await orchestrator.end()
            response = EndSessionResponse(
                session_id=session_id,
                summary=orchestrator.summary(),
                ended_at=state.ended_at,
            )
        self._forget(session_id)
        return response

    async def get_session_state(self, session_id: str) -> SessionStateResponse:
        orchestrator, lock = self._get(session_id)
        async with lock:
            return orchestrator.projection()

    async def flush_events(self, session_id: str) -> FlushEventsResponse:
        """Re-attempt persistence of events queued after a PersistenceError."""
        orchestrator, lock = self._get(session_id)
        async with lock:
            flushed = await orchestrator.flush_pending_events()
            return FlushEventsResponse(
                session_id=session_id,
                flushed=flushed,
                pending=orchestrator.pending_event_count,
            )

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_module_performance(self, user_id: str, module_id: str) -> ModulePerformance:
        return await self.statistics.get_module_performance(user_id, module_id)

    async def get_user_session_history(
        self,
        user_id: str,
        module_id: Optional[str] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[LearningSessionRecord]:
        return await self.statistics.get_user_session_history(user_id, module_id, limit)

    # =========================================================================
    # Catalog and previews
    # =========================================================================

    def list_modules(self, language: Optional[str] = None) -> list[ModuleDefinition]:
        """All modules, or those supporting `language` as source language."""
        if language is None:
            return self.catalog.get_all_modules()
        return self.catalog.get_modules_for_language(language)

    def get_module(self, module_id: str, language: Optional[str] = None) -> ModuleDefinition:
        module = self.catalog.get_module(module_id, language)
        if module is None:
            raise NotFoundError(f"Module not found: {module_id}")
        return module

    async def generate_preview(
        self,
        module_id: str,
        target_language: str,
        source_language: str,
        submodule_id: Optional[str] = None,
        schema_id: Optional[str] = None,
        difficulty: Optional[str] = None,
    ) -> PreviewResponse:
        """
        Generate a question outside any session.

        Either both submodule_id and schema_id are forced, or neither is
        and the picker chooses.

        Raises:
            NotFoundError: Unknown module
            ConfigurationError: Only one of submodule/schema forced, or an
                unsupported pair
            GenerationError: Generation failed after retries
        """
        if self.catalog.get_module(module_id) is None:
            raise NotFoundError(f"Module not found: {module_id}")

        if (submodule_id is None) != (schema_id is None):
            raise ConfigurationError(
                "Forced generation needs both a submodule id and a schema id"
            )
        if submodule_id is None:
            pick = self.picker.pick_next(
                PickContext(
                    module_id=module_id,
                    target_language=target_language,
                    source_language=source_language,
                )
            )
            submodule_id, schema_id = pick.submodule_id, pick.modal_schema_id

        result = await self.question_generator.generate_question(
            module_id=module_id,
            submodule_id=submodule_id,
            schema_id=schema_id,
            target_language=target_language,
            source_language=source_language,
            difficulty=difficulty,
        )
        if not result.success:
            raise GenerationError(
                f"Preview generation failed: {result.generation.error}",
                reason=result.generation.reason,
            )
        return PreviewResponse(
            module_id=module_id,
            step=result.step,
            question_data=result.question_data,
            attempts=result.generation.attempts,
        )

    async def close(self) -> None:
        await self.event_store.close()


async def create_session_manager(
    generator: Optional[TextGenerator] = None,
    catalog_path: Optional[Union[str, Path]] = None,
    event_store: Optional[EventStore] = None,
    rng: Optional[random.Random] = None,
) -> SessionManager:
    """
    Build a SessionManager with initialized registries.

    Registries are fully populated before the manager is returned.

    Args:
        generator: Text generator (defaults to the shared LLM client)
        catalog_path: Catalog file or directory (defaults to CATALOG_PATH)
        event_store: Event store (defaults to EVENT_STORE_BACKEND)
        rng: Random source for the picker
    """
    schema_registry = InteractionSchemaRegistry()
    schema_registry.initialize()

    records = await load_catalog_records(catalog_path or settings.CATALOG_PATH)
    catalog = ContentCatalog()
    catalog.initialize(records, schema_registry=schema_registry)

    if event_store is None:
        event_store = create_event_store()
    if isinstance(event_store, SqlAlchemyEventStore):
        await event_store.init_schema()

    if generator is None:
        generator = get_llm_client()

    return SessionManager(
        catalog=catalog,
        schema_registry=schema_registry,
        generation_service=GenerativeContentService(generator),
        event_store=event_store,
        rng=rng,
    )
