"""
SQLAlchemy Database Models for Learning Sessions

Tables:
- learning_sessions: One row per learner session
- session_events: Append-only log of marked answers

The skill tag is intentionally absent from session_events; it is resolved
from the interaction schema registry at query time.

ARCHITECTURE NOTE:
    There is a corresponding Pydantic file: lingo_engine/models/session.py

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lingo_engine.db.base import Base


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class LearningSession(Base):
    """
    Learner session header.

    Attributes:
        id: Session UUID string.
        user_id: Learner identifier.
        module_id: Catalog module the session practises.
        target_language: Language being learned.
        source_language: Learner's language.
        start_time: When the session started.
        end_time: When the session ended; null while active.
        events: Marked answers recorded for this session.
    """

    __tablename__ = "learning_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    module_id: Mapped[str] = mapped_column(String(255), index=True)
    target_language: Mapped[str] = mapped_column(String(16))
    source_language: Mapped[str] = mapped_column(String(16))
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    events: Mapped[List["SessionEventRow"]] = relationship(back_populates="session")


class SessionEventRow(Base):
    """
    One presented question, submitted answer and judgement.

    Attributes:
        question_data: Generated question payload (contract aliases).
        user_answer: Learner's answer payload.
        mark_data: {isCorrect, score, feedback, correctAnswer}; null if unmarked.
        is_correct: Denormalised from mark_data for aggregation queries.
    """

    __tablename__ = "session_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("learning_sessions.id", ondelete="CASCADE"), index=True
    )
    submodule_id: Mapped[str] = mapped_column(String(255))
    modal_schema_id: Mapped[str] = mapped_column(String(100))
    question_data: Mapped[Optional[Any]] = mapped_column(JSON)
    user_answer: Mapped[Optional[Any]] = mapped_column(JSON)
    mark_data: Mapped[Optional[dict]] = mapped_column(JSON)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, index=True
    )

    session: Mapped["LearningSession"] = relationship(back_populates="events")
