"""
Unit tests for the statistics service.

Tests accuracy arithmetic, per-skill aggregation with registry-resolved
skill tags, and session bookkeeping over the in-memory event store.
"""

from datetime import datetime, timedelta, timezone

import pytest

from lingo_engine.enums.learning import SkillTag
from lingo_engine.models.contracts import MarkResult
from lingo_engine.models.session import SessionEvent
from lingo_engine.services.learning.statistics import (
    StatisticsService,
    aggregate_performance,
    compute_accuracy,
)

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def make_event(
    schema_id: str,
    is_correct: bool = True,
    session_id: str = "s-1",
    marked: bool = True,
    offset: int = 0,
) -> SessionEvent:
    mark = (
        MarkResult(is_correct=is_correct, score=100 if is_correct else 0, feedback="ok")
        if marked
        else None
    )
    return SessionEvent(
        session_id=session_id,
        submodule_id="regular-verbs",
        modal_schema_id=schema_id,
        question_data={"q": offset},
        user_answer="a",
        mark_data=mark,
        timestamp=T0 + timedelta(seconds=offset),
    )


# =============================================================================
# Accuracy
# =============================================================================


class TestComputeAccuracy:
    @pytest.mark.parametrize(
        "correct,total,expected",
        [
            (0, 0, 0),
            (6, 10, 60),
            (3, 4, 75),
            (3, 6, 50),
            (1, 3, 33),
            (2, 3, 67),
            (1, 8, 13),
            (10, 10, 100),
        ],
    )
    def test_values(self, correct, total, expected):
        assert compute_accuracy(correct, total) == expected

    @pytest.mark.parametrize("total", [1, 3, 7, 10, 33])
    def test_non_decreasing_in_correct(self, total):
        values = [compute_accuracy(correct, total) for correct in range(total + 1)]
        assert values == sorted(values)
        assert values[0] == 0
        assert values[-1] == 100


# =============================================================================
# Aggregation
# =============================================================================


class TestAggregatePerformance:
    def test_reading_and_writing_split(self, schema_registry):
        """10 events: reading 4 (3 correct), writing 6 (3 correct)."""
        events = (
            [make_event("multiple-choice", True) for _ in range(2)]
            + [make_event("true-false", True), make_event("true-false", False)]
            + [make_event("fill-in-gap", True) for _ in range(3)]
            + [make_event("fill-in-gap", False) for _ in range(3)]
        )

        performance = aggregate_performance(events, schema_registry)

        assert performance.overall.model_dump() == {"total": 10, "correct": 6, "accuracy": 60}
        assert performance.by_skill[SkillTag.READING].model_dump() == {
            "total": 4,
            "correct": 3,
            "accuracy": 75,
        }
        assert performance.by_skill[SkillTag.WRITING].model_dump() == {
            "total": 6,
            "correct": 3,
            "accuracy": 50,
        }

    def test_every_skill_is_reported(self, schema_registry):
        performance = aggregate_performance([], schema_registry)

        assert set(performance.by_skill) == set(SkillTag)
        assert performance.overall.total == 0
        assert performance.overall.accuracy == 0

    def test_unmarked_events_are_excluded(self, schema_registry):
        events = [make_event("multiple-choice", True), make_event("multiple-choice", marked=False)]

        performance = aggregate_performance(events, schema_registry)

        assert performance.overall.total == 1
        assert performance.by_skill[SkillTag.READING].total == 1

    def test_unknown_schema_counts_toward_overall_only(self, schema_registry, caplog):
        events = [make_event("retired-schema", True), make_event("fill-in-gap", False)]

        with caplog.at_level("WARNING", logger="lingo_engine.services.learning.statistics"):
            performance = aggregate_performance(events, schema_registry)

        assert performance.overall.total == 2
        assert performance.overall.correct == 1
        assert sum(bucket.total for bucket in performance.by_skill.values()) == 1
        assert "retired-schema" in caplog.text

    def test_serializes_with_skill_keys(self, schema_registry):
        performance = aggregate_performance([make_event("listening-comprehension")], schema_registry)

        data = performance.model_dump(by_alias=True, mode="json")

        assert data["bySkill"]["listening"] == {"total": 1, "correct": 1, "accuracy": 100}


# =============================================================================
# StatisticsService
# =============================================================================


@pytest.fixture
def statistics(event_store, schema_registry) -> StatisticsService:
    return StatisticsService(event_store, schema_registry)


class TestStatisticsService:
    @pytest.mark.asyncio
    async def test_start_session_persists_header(self, statistics, event_store):
        record = await statistics.start_session(
            "u-1", "present-tense", "de", "en", session_id="s-1", start_time=T0
        )

        assert record.id == "s-1"
        assert await event_store.get_session("s-1") == record

    @pytest.mark.asyncio
    async def test_start_session_generates_id(self, statistics):
        record = await statistics.start_session("u-1", "present-tense", "de", "en")

        assert len(record.id) == 36
        assert record.end_time is None

    @pytest.mark.asyncio
    async def test_end_session(self, statistics):
        await statistics.start_session("u-1", "present-tense", "de", "en", session_id="s-1")

        record = await statistics.end_session("s-1", T0 + timedelta(minutes=5))

        assert record.end_time == T0 + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_end_unknown_session(self, statistics):
        assert await statistics.end_session("missing") is None

    @pytest.mark.asyncio
    async def test_module_performance_scoped_to_user_and_module(self, statistics):
        await statistics.start_session("u-1", "present-tense", "de", "en", session_id="s-1")
        await statistics.start_session("u-1", "articles", "de", "en", session_id="s-2")
        await statistics.start_session("u-2", "present-tense", "de", "en", session_id="s-3")
        await statistics.record_event(make_event("multiple-choice", True, session_id="s-1"))
        await statistics.record_event(make_event("fill-in-gap", False, session_id="s-1"))
        await statistics.record_event(make_event("multiple-choice", True, session_id="s-2"))
        await statistics.record_event(make_event("multiple-choice", False, session_id="s-3"))

        performance = await statistics.get_module_performance("u-1", "present-tense")

        assert performance.overall.total == 2
        assert performance.overall.correct == 1
        assert performance.by_skill[SkillTag.READING].accuracy == 100
        assert performance.by_skill[SkillTag.WRITING].accuracy == 0

    @pytest.mark.asyncio
    async def test_performance_across_sessions(self, statistics):
        for index, session_id in enumerate(["s-1", "s-2"]):
            await statistics.start_session("u-1", "present-tense", "de", "en", session_id=session_id)
            await statistics.record_event(
                make_event("true-false", index == 0, session_id=session_id, offset=index)
            )

        performance = await statistics.get_module_performance("u-1", "present-tense")

        assert performance.overall.model_dump() == {"total": 2, "correct": 1, "accuracy": 50}

    @pytest.mark.asyncio
    async def test_session_history_newest_first(self, statistics):
        for minute in range(3):
            await statistics.start_session(
                "u-1",
                "present-tense",
                "de",
                "en",
                session_id=f"s-{minute}",
                start_time=T0 + timedelta(minutes=minute),
            )
        await statistics.start_session("u-1", "articles", "de", "en", session_id="other")

        history = await statistics.get_user_session_history("u-1", "present-tense", limit=2)

        assert [record.id for record in history] == ["s-2", "s-1"]
        assert len(await statistics.get_user_session_history("u-1")) == 4
