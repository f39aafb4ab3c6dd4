"""
Unit tests for SessionManager.

Covers the consumer-facing API: session lifecycle by id, isolation between
sessions, per-session serialization, previews, catalog listings and the
factory that wires everything from settings.
"""

import asyncio
import random

import pytest

from lingo_engine.enums.learning import GenerationFailureReason, SessionStatus
from lingo_engine.middleware.error_handling import (
    ConfigurationError,
    GenerationError,
    NotFoundError,
    SessionStateError,
)
from lingo_engine.services.learning.event_store import InMemoryEventStore
from lingo_engine.services.learning.session_manager import (
    SessionManager,
    create_session_manager,
)
from tests.conftest import MC_GENERATION, MULTIPLE_CHOICE_QUESTION, ScriptedGenerator


@pytest.fixture
def manager(catalog, schema_registry, generation_service, event_store, clock) -> SessionManager:
    return SessionManager(
        catalog=catalog,
        schema_registry=schema_registry,
        generation_service=generation_service,
        event_store=event_store,
        rng=random.Random(3),
        clock=clock,
        buffer_ttl_seconds=0,
        max_questions=0,
    )


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_full_session(self, manager, generator, clock):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)

        state = await manager.start_session("u-1", "quiz", "de", "en")
        assert state.status == SessionStatus.AWAITING_ANSWER
        assert manager.active_session_count == 1

        result = await manager.submit_answer(state.session_id, 0)
        assert result.mark_result.is_correct is True

        state = await manager.advance(state.session_id)
        assert state.status == SessionStatus.AWAITING_ANSWER
        assert state.correct_count == 1

        clock.advance(30)
        ended = await manager.end_session(state.session_id)

        assert ended.summary.total_questions == 1
        assert ended.summary.correct_answers == 1
        assert ended.summary.score == 100
        assert ended.summary.time_spent_seconds == 30
        assert manager.active_session_count == 0

    @pytest.mark.asyncio
    async def test_default_difficulty_applied(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)

        await manager.start_session("u-1", "quiz", "de", "en")

        assert "intermediate" in generator.calls[0].prompt

    @pytest.mark.asyncio
    async def test_unknown_module(self, manager, generator):
        with pytest.raises(NotFoundError):
            await manager.start_session("u-1", "nope", "de", "en")
        assert generator.calls == []
        assert manager.active_session_count == 0

    @pytest.mark.asyncio
    async def test_failed_start_closes_session_record(self, manager, generator, event_store, monkeypatch):
        def no_submodules(context):
            raise ConfigurationError("Module has no usable submodules")

        monkeypatch.setattr(manager.picker, "pick_next", no_submodules)

        with pytest.raises(ConfigurationError):
            await manager.start_session("u-1", "quiz", "de", "en")

        assert manager.active_session_count == 0
        records = await event_store.list_sessions("u-1")
        assert len(records) == 1
        assert records[0].end_time is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["advance", "retry", "end_session", "get_session_state"])
    async def test_unknown_session(self, manager, operation):
        with pytest.raises(NotFoundError):
            await getattr(manager, operation)("missing")

    @pytest.mark.asyncio
    async def test_ended_session_is_released(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        state = await manager.start_session("u-1", "quiz", "de", "en")
        await manager.end_session(state.session_id)

        with pytest.raises(NotFoundError):
            await manager.submit_answer(state.session_id, 0)

    @pytest.mark.asyncio
    async def test_error_state_and_retry(self, manager, generator):
        generator.script(MC_GENERATION, {"question": "?"}, {"question": "?"}, MULTIPLE_CHOICE_QUESTION)

        state = await manager.start_session("u-1", "quiz", "de", "en")
        assert state.status == SessionStatus.ERROR
        assert state.last_error

        state = await manager.retry(state.session_id)
        assert state.status == SessionStatus.AWAITING_ANSWER

    @pytest.mark.asyncio
    async def test_get_session_state_projection(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        state = await manager.start_session("u-1", "quiz", "de", "en")
        await manager.submit_answer(state.session_id, 1)

        projection = await manager.get_session_state(state.session_id)

        assert projection.status == SessionStatus.ANSWERED
        assert projection.user_answer == 1
        assert projection.is_answered is True
        assert projection.has_buffered_step is True
        assert projection.mark_result.is_correct is False
        payload = projection.model_dump(by_alias=True)
        assert payload["sessionTotalAnswered"] == 1
        assert payload["sessionCorrectCount"] == 0

    @pytest.mark.asyncio
    async def test_flush_events_with_nothing_pending(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        state = await manager.start_session("u-1", "quiz", "de", "en")

        flushed = await manager.flush_events(state.session_id)

        assert flushed.flushed == 0
        assert flushed.pending == 0


class TestIdleExpiry:
    @pytest.fixture
    def idle_manager(self, catalog, schema_registry, generation_service, event_store, clock):
        return SessionManager(
            catalog=catalog,
            schema_registry=schema_registry,
            generation_service=generation_service,
            event_store=event_store,
            rng=random.Random(3),
            clock=clock,
            buffer_ttl_seconds=0,
            max_questions=0,
            idle_ttl_seconds=60,
        )

    @pytest.mark.asyncio
    async def test_idle_session_released_on_next_start(self, idle_manager, generator, event_store, clock):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        old = await idle_manager.start_session("u-1", "quiz", "de", "en")

        clock.advance(61)
        new = await idle_manager.start_session("u-2", "quiz", "de", "en")

        assert idle_manager.active_session_count == 1
        with pytest.raises(NotFoundError):
            await idle_manager.get_session_state(old.session_id)
        record = await event_store.get_session(old.session_id)
        assert record.end_time is not None
        state = await idle_manager.get_session_state(new.session_id)
        assert state.status == SessionStatus.AWAITING_ANSWER

    @pytest.mark.asyncio
    async def test_activity_keeps_session_alive(self, idle_manager, generator, clock):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        state = await idle_manager.start_session("u-1", "quiz", "de", "en")

        clock.advance(45)
        await idle_manager.get_session_state(state.session_id)
        clock.advance(45)

        assert await idle_manager.expire_idle_sessions() == 0
        assert idle_manager.active_session_count == 1

    @pytest.mark.asyncio
    async def test_zero_ttl_never_expires(
        self, catalog, schema_registry, generation_service, event_store, generator, clock
    ):
        manager = SessionManager(
            catalog=catalog,
            schema_registry=schema_registry,
            generation_service=generation_service,
            event_store=event_store,
            clock=clock,
            idle_ttl_seconds=0,
        )
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        await manager.start_session("u-1", "quiz", "de", "en")

        clock.advance(86400)

        assert await manager.expire_idle_sessions() == 0
        assert manager.active_session_count == 1


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        first = await manager.start_session("u-1", "quiz", "de", "en")
        second = await manager.start_session("u-2", "quiz", "de", "en")

        await manager.submit_answer(first.session_id, 0)

        other = await manager.get_session_state(second.session_id)
        assert other.status == SessionStatus.AWAITING_ANSWER
        assert other.total_answered == 0
        assert first.session_id != second.session_id

    @pytest.mark.asyncio
    async def test_concurrent_submits_are_serialized(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        state = await manager.start_session("u-1", "quiz", "de", "en")

        outcomes = await asyncio.gather(
            manager.submit_answer(state.session_id, 0),
            manager.submit_answer(state.session_id, 1),
            return_exceptions=True,
        )

        errors = [o for o in outcomes if isinstance(o, BaseException)]
        assert len(errors) == 1
        assert isinstance(errors[0], SessionStateError)
        projection = await manager.get_session_state(state.session_id)
        assert projection.total_answered == 1

    @pytest.mark.asyncio
    async def test_parallel_sessions_complete(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        states = await asyncio.gather(
            *(manager.start_session(f"u-{i}", "quiz", "de", "en") for i in range(5))
        )

        results = await asyncio.gather(*(manager.submit_answer(s.session_id, 0) for s in states))

        assert all(r.mark_result.is_correct for r in results)
        assert manager.active_session_count == 5


class TestPreview:
    @pytest.mark.asyncio
    async def test_forced_preview(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)

        preview = await manager.generate_preview(
            "present-tense",
            "de",
            "en",
            submodule_id="regular-verbs",
            schema_id="multiple-choice",
            difficulty="advanced",
        )

        assert preview.step.submodule_id == "regular-verbs"
        assert preview.step.modal_schema_id == "multiple-choice"
        assert preview.question_data == MULTIPLE_CHOICE_QUESTION
        assert preview.attempts == 1
        assert "advanced" in generator.calls[0].prompt
        assert manager.active_session_count == 0

    @pytest.mark.asyncio
    async def test_picked_preview(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)

        preview = await manager.generate_preview("quiz", "de", "en")

        assert preview.step.submodule_id == "basics"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "forced", [{"submodule_id": "regular-verbs"}, {"schema_id": "multiple-choice"}]
    )
    async def test_half_forced_preview_rejected(self, manager, generator, forced):
        with pytest.raises(ConfigurationError):
            await manager.generate_preview("present-tense", "de", "en", **forced)
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_unsupported_pair_rejected(self, manager):
        with pytest.raises(ConfigurationError):
            await manager.generate_preview(
                "present-tense", "de", "en", submodule_id="regular-verbs", schema_id="true-false"
            )

    @pytest.mark.asyncio
    async def test_preview_generation_failure(self, manager, generator):
        generator.script(MC_GENERATION, {"question": "?"})

        with pytest.raises(GenerationError) as exc_info:
            await manager.generate_preview(
                "present-tense", "de", "en", submodule_id="regular-verbs", schema_id="multiple-choice"
            )

        assert exc_info.value.reason == GenerationFailureReason.VALIDATION

    @pytest.mark.asyncio
    async def test_preview_unknown_module(self, manager):
        with pytest.raises(NotFoundError):
            await manager.generate_preview("nope", "de", "en")


class TestCatalogAndStatistics:
    def test_list_modules(self, manager):
        assert [m.id for m in manager.list_modules()] == ["present-tense", "articles", "quiz"]

    def test_list_modules_for_language_is_localized(self, manager):
        modules = manager.list_modules("de")

        assert [m.id for m in modules] == ["present-tense"]
        assert modules[0].title == "Präsens"

    def test_get_module(self, manager):
        assert manager.get_module("present-tense", "de").submodules[0].title == "Regelmäßige Verben"
        with pytest.raises(NotFoundError):
            manager.get_module("nope")

    @pytest.mark.asyncio
    async def test_performance_and_history(self, manager, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)
        state = await manager.start_session("u-1", "quiz", "de", "en")
        await manager.submit_answer(state.session_id, 0)
        await manager.advance(state.session_id)
        await manager.submit_answer(state.session_id, 2)
        await manager.end_session(state.session_id)

        performance = await manager.get_module_performance("u-1", "quiz")
        history = await manager.get_user_session_history("u-1")

        assert performance.overall.total == 2
        assert performance.overall.correct == 1
        assert performance.overall.accuracy == 50
        assert [record.id for record in history] == [state.session_id]
        assert history[0].end_time is not None


class TestFactory:
    @pytest.mark.asyncio
    async def test_create_with_bundled_catalog(self):
        generator = ScriptedGenerator()
        manager = await create_session_manager(
            generator=generator, event_store=InMemoryEventStore(), rng=random.Random(1)
        )

        module_ids = {m.id for m in manager.list_modules()}
        assert {"present-tense", "articles"} <= module_ids
        assert manager.schema_registry.is_initialized
        await manager.close()

    @pytest.mark.asyncio
    async def test_create_with_missing_catalog(self, tmp_path):
        with pytest.raises(ConfigurationError):
            await create_session_manager(
                generator=ScriptedGenerator(),
                catalog_path=tmp_path / "missing",
                event_store=InMemoryEventStore(),
            )
