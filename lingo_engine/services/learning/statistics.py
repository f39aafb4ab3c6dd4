"""
Statistics Service

Records sessions and session events, and computes module performance on
demand.

Performance for a (user, module) pair:
- overall: {total, correct, accuracy} over marked events only
- bySkill: the same per skill tag, where each event's tag is resolved by
  looking up its modalSchemaId in the schema registry at query time

Accuracy = round(correct / total * 100), 0 when total is 0.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from lingo_engine.enums.learning import SkillTag
from lingo_engine.models.session import (
    LearningSessionRecord,
    ModulePerformance,
    SessionEvent,
    SkillPerformance,
)
from lingo_engine.services.learning.event_store import EventStore
from lingo_engine.services.learning.schema_registry import InteractionSchemaRegistry

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


def compute_accuracy(correct: int, total: int) -> int:
    """Whole-number accuracy percentage; 0 when there is nothing to measure."""
    if total <= 0:
        return 0
    # Half-up rounding in integer arithmetic
    return (correct * 200 + total) // (2 * total)


def _bucket(total: int, correct: int) -> SkillPerformance:
    return SkillPerformance(total=total, correct=correct, accuracy=compute_accuracy(correct, total))


def aggregate_performance(
    events: Iterable[SessionEvent],
    schema_registry: InteractionSchemaRegistry,
) -> ModulePerformance:
    """
    Aggregate marked events into overall and per-skill performance.

    Unmarked events are excluded. Events whose schema id is no longer
    registered count toward overall only.
    """
    totals = {tag: [0, 0] for tag in SkillTag}
    overall_total = 0
    overall_correct = 0

    for event in events:
        is_correct = event.is_correct
        if is_correct is None:
            continue

        overall_total += 1
        overall_correct += int(is_correct)

        skill = schema_registry.get_skill(event.modal_schema_id)
        if skill is None:
            logger.warning(
                f"Unknown interaction schema {event.modal_schema_id} in session "
                f"{event.session_id}; excluded from skill breakdown"
            )
            continue
        totals[skill][0] += 1
        totals[skill][1] += int(is_correct)

    return ModulePerformance(
        overall=_bucket(overall_total, overall_correct),
        by_skill={tag: _bucket(total, correct) for tag, (total, correct) in totals.items()},
    )


class StatisticsService:
    """Session bookkeeping and performance queries over an EventStore."""

    def __init__(self, event_store: EventStore, schema_registry: InteractionSchemaRegistry):
        self.event_store = event_store
        self.schema_registry = schema_registry

    async def start_session(
        self,
        user_id: str,
        module_id: str,
        target_language: str,
        source_language: str,
        session_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
    ) -> LearningSessionRecord:
        """Create and persist a session header."""
        record = LearningSessionRecord(
            id=session_id or str(uuid.uuid4()),
            user_id=user_id,
            module_id=module_id,
            target_language=target_language,
            source_language=source_language,
            start_time=start_time or datetime.now(timezone.utc),
        )
        await self.event_store.create_session(record)
        logger.info(f"Started session {record.id} for user {user_id} on module {module_id}")
        return record

    async def record_event(self, event: SessionEvent) -> None:
        """Append a session event."""
        await self.event_store.append_event(event)

    async def end_session(
        self, session_id: str, end_time: Optional[datetime] = None
    ) -> Optional[LearningSessionRecord]:
        """Finalize a session's end time."""
        record = await self.event_store.end_session(
            session_id, end_time or datetime.now(timezone.utc)
        )
        if record is None:
            logger.warning(f"end_session: unknown session {session_id}")
        return record

    async def get_user_session_history(
        self,
        user_id: str,
        module_id: Optional[str] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[LearningSessionRecord]:
        """A user's sessions, newest first."""
        return await self.event_store.list_sessions(user_id, module_id, limit=limit)

    async def get_module_performance(self, user_id: str, module_id: str) -> ModulePerformance:
        events = await self.event_store.list_events(user_id, module_id)
        return aggregate_performance(events, self.schema_registry)
