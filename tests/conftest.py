"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests:
- A scripted text generator standing in for the LLM client
- Initialized schema registry and content catalog
- Generation service, event store and a controllable clock
"""

import json
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Union

import pytest
from pydantic import BaseModel

# Keep tests independent of any local .env
os.environ.setdefault("EVENT_STORE_BACKEND", "memory")

from lingo_engine.services.learning.catalog import ContentCatalog
from lingo_engine.services.learning.event_store import InMemoryEventStore
from lingo_engine.services.learning.generation import GenerativeContentService
from lingo_engine.services.learning.schema_registry import InteractionSchemaRegistry


# ============================================================================
# Sample Generator Payloads
# ============================================================================

MULTIPLE_CHOICE_QUESTION: dict[str, Any] = {
    "question": "Welche Form ist richtig? Ich ___ jeden Tag zur Arbeit.",
    "options": ["gehe", "gehst", "geht"],
    "correctOptionIndex": 0,
    "explanation": "Die erste Person Singular endet auf -e.",
}

TRUE_FALSE_QUESTION: dict[str, Any] = {
    "statement": "'Er spielt' ist die dritte Person Singular von 'spielen'.",
    "isCorrectAnswerTrue": True,
    "explanation": "Die dritte Person Singular endet auf -t.",
}

FILL_IN_GAP_QUESTION: dict[str, Any] = {
    "sentenceWithGap": "Wir ___ in Berlin.",
    "correctAnswer": "wohnen",
    "hint": "wohnen",
    "taskType": "conjugation",
}

LISTENING_QUESTION: dict[str, Any] = {
    "transcript": "Anna steht um sieben Uhr auf und trinkt einen Kaffee.",
    "question": "Was trinkt Anna?",
    "options": ["Tee", "Kaffee", "Saft"],
    "correctOptionIndex": 1,
}

SPEAKING_QUESTION: dict[str, Any] = {
    "questions": [
        "Was machst du am Wochenende?",
        "Wo wohnst du?",
        "Was isst du gern?",
    ],
    "hint": "Benutze das Präsens.",
    "showHint": False,
}

MARK_CORRECT: dict[str, Any] = {
    "isCorrect": True,
    "score": 100,
    "feedback": "Sehr gut!",
    "correctAnswer": "",
}

MARK_INCORRECT: dict[str, Any] = {
    "isCorrect": False,
    "score": 30,
    "feedback": "Not quite, check the verb ending.",
    "correctAnswer": "wohnen",
}


# ============================================================================
# Sample Catalog
# ============================================================================

SAMPLE_CATALOG_RECORDS: list[dict[str, Any]] = [
    {
        "id": "present-tense",
        "title": "Present Tense",
        "localization": {"de": {"title": "Präsens"}},
        "primaryTask": "Use verbs in the present tense",
        "supportedSourceLanguages": ["en", "de"],
        "moduleOverrides": {
            "fill-in-gap": {
                "markingPromptOverride": "Module template: {userAnswer} ({targetLanguage})",
            },
        },
        "submodules": [
            {
                "id": "regular-verbs",
                "title": "Regular verbs",
                "localization": {"de": {"title": "Regelmäßige Verben"}},
                "primaryTask": "Conjugate regular verbs",
                "context": "Everyday activities",
                "supportedModalSchemaIds": ["multiple-choice", "fill-in-gap"],
            },
            {
                "id": "irregular-verbs",
                "title": "Irregular verbs",
                "primaryTask": "Use common irregular verbs",
                "supportedModalSchemaIds": ["true-false", "fill-in-gap"],
                "overrides": {
                    "true-false": {"uiComponentOverride": "CompactTrueFalse"},
                    "fill-in-gap": {
                        "markingPromptOverride": (
                            "Submodule template: {userAnswer} / {taskType} / {unknownKey}"
                        ),
                    },
                },
            },
        ],
    },
    {
        "id": "articles",
        "title": "Articles",
        "supportedSourceLanguages": ["en"],
        "submodules": [
            {
                "id": "listening",
                "title": "Listening",
                "supportedModalSchemaIds": ["listening-comprehension", "speaking-conversation"],
            },
        ],
    },
    {
        "id": "quiz",
        "title": "Quiz",
        "supportedSourceLanguages": ["en"],
        "submodules": [
            {
                "id": "basics",
                "title": "Basics",
                "supportedModalSchemaIds": ["multiple-choice"],
            },
        ],
    },
]

MC_GENERATION = "multiple-choice:generation"
MC_MARKING = "multiple-choice:marking"


# ============================================================================
# Scripted Text Generator
# ============================================================================


@dataclass
class GeneratorCall:
    prompt: str
    contract: type[BaseModel]
    label: str


ScriptedResponse = Union[str, dict, list, BaseException]


class ScriptedGenerator:
    """
    Fake text generator driven by per-label scripts.

    Responses for a label are consumed in order; the last one repeats.
    dict/list responses are returned as JSON text, exceptions are raised.
    The "*" label matches any label without its own script.
    """

    def __init__(self):
        self.calls: list[GeneratorCall] = []
        self._scripts: dict[str, list[ScriptedResponse]] = {}

    def script(self, label: str, *responses: ScriptedResponse) -> "ScriptedGenerator":
        self._scripts.setdefault(label, []).extend(responses)
        return self

    def calls_for(self, label: str) -> list[GeneratorCall]:
        return [call for call in self.calls if call.label == label]

    async def generate_text(self, prompt: str, contract: type[BaseModel], label: str) -> str:
        self.calls.append(GeneratorCall(prompt=prompt, contract=contract, label=label))
        queue = self._scripts.get(label) or self._scripts.get("*")
        if not queue:
            raise RuntimeError(f"No scripted response for {label}")

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def schema_registry() -> InteractionSchemaRegistry:
    registry = InteractionSchemaRegistry()
    registry.initialize()
    return registry


@pytest.fixture
def catalog(schema_registry: InteractionSchemaRegistry) -> ContentCatalog:
    content_catalog = ContentCatalog(default_language="en")
    content_catalog.initialize(SAMPLE_CATALOG_RECORDS, schema_registry=schema_registry)
    return content_catalog


@pytest.fixture
def generation_service(generator: ScriptedGenerator) -> GenerativeContentService:
    return GenerativeContentService(
        generator, max_retries=1, timeout_seconds=5, retry_wait_seconds=0
    )


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
