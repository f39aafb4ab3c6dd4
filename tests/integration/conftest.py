"""
Integration test fixtures.

The app is built around a pre-wired SessionManager so the HTTP layer runs
against the sample catalog and a scripted generator.
"""

import random

import pytest
from fastapi.testclient import TestClient

from lingo_engine.main import create_app
from lingo_engine.services.learning.session_manager import SessionManager


@pytest.fixture
def session_manager(catalog, schema_registry, generation_service, event_store, clock) -> SessionManager:
    return SessionManager(
        catalog=catalog,
        schema_registry=schema_registry,
        generation_service=generation_service,
        event_store=event_store,
        rng=random.Random(11),
        clock=clock,
        buffer_ttl_seconds=0,
        max_questions=0,
    )


@pytest.fixture
def client(session_manager: SessionManager):
    with TestClient(create_app(session_manager=session_manager)) as test_client:
        yield test_client
