"""
Session Event Store

Persistence for session headers and the append-only session event log.

Backends:
- InMemoryEventStore: default; process-local, guarded by an asyncio lock
- SqlAlchemyEventStore: SQLAlchemy 2.0 async (SQLite via aiosqlite by
  default); every SQLAlchemy failure surfaces as PersistenceError

Reads are eventually consistent with concurrent writes.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from lingo_engine.config.settings import settings
from lingo_engine.db.base import create_engine, create_session_maker, init_db
from lingo_engine.db.models_learning import LearningSession, SessionEventRow
from lingo_engine.middleware.error_handling import ConfigurationError, PersistenceError
from lingo_engine.models.contracts import MarkResult
from lingo_engine.models.session import LearningSessionRecord, SessionEvent

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EventStore(ABC):
    """Persistence interface consumed by the statistics service."""

    @abstractmethod
    async def create_session(self, record: LearningSessionRecord) -> None:
        """Persist a new session header."""

    @abstractmethod
    async def end_session(
        self, session_id: str, end_time: datetime
    ) -> Optional[LearningSessionRecord]:
        """Set a session's end time; returns the updated record or None."""

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[LearningSessionRecord]:
        """Fetch a session header."""

    @abstractmethod
    async def list_sessions(
        self, user_id: str, module_id: Optional[str] = None, limit: Optional[int] = None
    ) -> list[LearningSessionRecord]:
        """A user's sessions, newest first."""

    @abstractmethod
    async def append_event(self, event: SessionEvent) -> None:
        """Append an event to the log."""

    @abstractmethod
    async def list_events(
        self, user_id: str, module_id: Optional[str] = None, limit: Optional[int] = None
    ) -> list[SessionEvent]:
        """A user's events (optionally for one module), newest first."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryEventStore(EventStore):
    """Process-local store; append-only event list."""

    def __init__(self):
        self._sessions: dict[str, LearningSessionRecord] = {}
        self._events: list[SessionEvent] = []
        self._lock = asyncio.Lock()

    async def create_session(self, record: LearningSessionRecord) -> None:
        async with self._lock:
            if record.id in self._sessions:
                raise PersistenceError(f"Session already exists: {record.id}")
            self._sessions[record.id] = record

    async def end_session(
        self, session_id: str, end_time: datetime
    ) -> Optional[LearningSessionRecord]:
        async with self._lock:
            record = self._sessions.get(session_id)
            if record is None:
                return None
            updated = record.model_copy(update={"end_time": end_time})
            self._sessions[session_id] = updated
            return updated

    async def get_session(self, session_id: str) -> Optional[LearningSessionRecord]:
        return self._sessions.get(session_id)

    async def list_sessions(
        self, user_id: str, module_id: Optional[str] = None, limit: Optional[int] = None
    ) -> list[LearningSessionRecord]:
        sessions = [
            s
            for s in self._sessions.values()
            if s.user_id == user_id and (module_id is None or s.module_id == module_id)
        ]
        sessions.sort(key=lambda s: s.start_time, reverse=True)
        return sessions[:limit] if limit is not None else sessions

    async def append_event(self, event: SessionEvent) -> None:
        async with self._lock:
            if event.session_id not in self._sessions:
                raise PersistenceError(f"Unknown session for event: {event.session_id}")
            self._events.append(event)

    async def list_events(
        self, user_id: str, module_id: Optional[str] = None, limit: Optional[int] = None
    ) -> list[SessionEvent]:
        session_ids = {
            s.id
            for s in self._sessions.values()
            if s.user_id == user_id and (module_id is None or s.module_id == module_id)
        }
        # Reversed insertion order is newest first
        events = [e for e in reversed(self._events) if e.session_id in session_ids]
        return events[:limit] if limit is not None else events


class SqlAlchemyEventStore(EventStore):
    """
    SQLAlchemy-backed store.

    Usage:
        store = SqlAlchemyEventStore.from_url("sqlite+aiosqlite:///./lingo.db")
        await store.init_schema()
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None,
    ):
        self._session_maker = session_maker
        self._engine = engine

    @classmethod
    def from_url(cls, url: Optional[str] = None, echo: Optional[bool] = None) -> "SqlAlchemyEventStore":
        engine = create_engine(url, echo=echo)
        return cls(create_session_maker(engine), engine=engine)

    async def init_schema(self) -> None:
        if self._engine is None:
            raise ConfigurationError("SqlAlchemyEventStore has no engine to initialize")
        try:
            await init_db(self._engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to initialize event store schema: {e}") from e

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    @asynccontextmanager
    async def _db(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_maker() as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Event store failed to {action}: {e}")
            raise PersistenceError(f"Failed to {action}", details={"error": str(e)}) from e

    @staticmethod
    def _to_record(row: LearningSession) -> LearningSessionRecord:
        return LearningSessionRecord(
            id=row.id,
            user_id=row.user_id,
            module_id=row.module_id,
            target_language=row.target_language,
            source_language=row.source_language,
            start_time=_as_utc(row.start_time),
            end_time=_as_utc(row.end_time),
        )

    @staticmethod
    def _to_event(row: SessionEventRow) -> SessionEvent:
        return SessionEvent(
            session_id=row.session_id,
            submodule_id=row.submodule_id,
            modal_schema_id=row.modal_schema_id,
            question_data=row.question_data,
            user_answer=row.user_answer,
            mark_data=MarkResult.model_validate(row.mark_data) if row.mark_data else None,
            timestamp=_as_utc(row.created_at),
        )

    async def create_session(self, record: LearningSessionRecord) -> None:
        async with self._db("create session") as db:
            db.add(
                LearningSession(
                    id=record.id,
                    user_id=record.user_id,
                    module_id=record.module_id,
                    target_language=record.target_language,
                    source_language=record.source_language,
                    start_time=record.start_time,
                    end_time=record.end_time,
                )
            )
            await db.commit()

    async def end_session(
        self, session_id: str, end_time: datetime
    ) -> Optional[LearningSessionRecord]:
        async with self._db("end session") as db:
            row = await db.get(LearningSession, session_id)
            if row is None:
                return None
            row.end_time = end_time
            await db.commit()
            return self._to_record(row)

    async def get_session(self, session_id: str) -> Optional[LearningSessionRecord]:
        async with self._db("load session") as db:
            row = await db.get(LearningSession, session_id)
            return self._to_record(row) if row else None

    async def list_sessions(
        self, user_id: str, module_id: Optional[str] = None, limit: Optional[int] = None
    ) -> list[LearningSessionRecord]:
        query = select(LearningSession).where(LearningSession.user_id == user_id)
        if module_id is not None:
            query = query.where(LearningSession.module_id == module_id)
        query = query.order_by(LearningSession.start_time.desc())
        if limit is not None:
            query = query.limit(limit)

        async with self._db("list sessions") as db:
            result = await db.execute(query)
            return [self._to_record(row) for row in result.scalars().all()]

    async def append_event(self, event: SessionEvent) -> None:
        async with self._db("append session event") as db:
            if await db.get(LearningSession, event.session_id) is None:
                raise PersistenceError(f"Unknown session for event: {event.session_id}")
            db.add(
                SessionEventRow(
                    session_id=event.session_id,
                    submodule_id=event.submodule_id,
                    modal_schema_id=event.modal_schema_id,
                    question_data=event.question_data,
                    user_answer=event.user_answer,
                    mark_data=event.mark_data.to_data() if event.mark_data else None,
                    is_correct=event.is_correct,
                    created_at=event.timestamp,
                )
            )
            await db.commit()

    async def list_events(
        self, user_id: str, module_id: Optional[str] = None, limit: Optional[int] = None
    ) -> list[SessionEvent]:
        query = (
            select(SessionEventRow)
            .join(LearningSession, SessionEventRow.session_id == LearningSession.id)
            .where(LearningSession.user_id == user_id)
        )
        if module_id is not None:
            query = query.where(LearningSession.module_id == module_id)
        query = query.order_by(SessionEventRow.created_at.desc(), SessionEventRow.id.desc())
        if limit is not None:
            query = query.limit(limit)

        async with self._db("list session events") as db:
            result = await db.execute(query)
            return [self._to_event(row) for row in result.scalars().all()]


def create_event_store(backend: Optional[str] = None) -> EventStore:
    """
    Build the configured event store.

    Raises:
        ConfigurationError: For an unknown backend name
    """
    backend = backend or settings.EVENT_STORE_BACKEND
    if backend == "memory":
        return InMemoryEventStore()
    if backend == "sql":
        return SqlAlchemyEventStore.from_url(settings.DATABASE_URL)
    raise ConfigurationError(f"Unknown event store backend: {backend}")
