"""
Learning Session Enums

Defines enums for skill tags, session states, exercise difficulty and
generation failure reasons.
"""

from enum import Enum


class SkillTag(str, Enum):
    """
    Primary skill engaged by an interaction schema.

    Used to bucket aggregate performance. The tag lives on the schema
    definition, never on individual session events.
    """

    READING = "reading"
    WRITING = "writing"
    LISTENING = "listening"
    SPEAKING = "speaking"


class SessionStatus(str, Enum):
    """
    States of the session orchestrator.

    State transitions:
    - IDLE → AWAITING_ANSWER (start) or ERROR (first question failed)
    - AWAITING_ANSWER → MARKING → ANSWERED (submit)
    - ANSWERED → AWAITING_ANSWER (advance) or ENDED (no further step)
    - ERROR → AWAITING_ANSWER (retry succeeded)
    - any → ENDED (end)
    """

    IDLE = "idle"
    AWAITING_ANSWER = "awaiting_answer"
    MARKING = "marking"
    ANSWERED = "answered"
    ENDED = "ended"
    ERROR = "error"


class Difficulty(str, Enum):
    """
    Learner level passed to generation prompts.

    - BEGINNER: A1-A2 vocabulary and grammar
    - INTERMEDIATE: B1-B2
    - ADVANCED: C1-C2, idiomatic language
    """

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class GenerationFailureReason(str, Enum):
    """Why a single generation attempt was rejected."""

    TRANSPORT = "transport"  # External call raised
    TIMEOUT = "timeout"  # External call exceeded the caller's timeout
    EMPTY = "empty"  # No text returned
    PARSE = "parse"  # Not parseable even after repair
    VALIDATION = "validation"  # Parsed but violates the contract


class LLMOperation(str, Enum):
    """Operations attributed in LLM usage logs."""

    QUESTION_GENERATION = "question_generation"
    ANSWER_MARKING = "answer_marking"
    STRUCTURED_GENERATION = "structured_generation"
