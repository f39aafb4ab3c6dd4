"""
Learning Session Engine Services

Modules:
- repair: tolerant repair of near-valid generator JSON
- generation: contract-validated generation with bounded retry
- interactions: built-in interaction schemas
- schema_registry: load-once interaction schema index
- catalog: load-once module/submodule index
- picker: pluggable next-step selection strategies
- question_generator: question data generation for a step
- marking: answer judgement with deterministic and generator marking
- event_store: session/event persistence backends
- statistics: session bookkeeping and performance aggregation
- orchestrator: per-session state machine with next-step pre-fetch
- session_manager: consumer-facing session API

Usage:
    from lingo_engine.services.learning import create_session_manager

    manager = await create_session_manager()
"""

from lingo_engine.services.learning.catalog import ContentCatalog, load_catalog_records
from lingo_engine.services.learning.event_store import (
    EventStore,
    InMemoryEventStore,
    SqlAlchemyEventStore,
    create_event_store,
)
from lingo_engine.services.learning.generation import (
    GenerationResult,
    GenerativeContentService,
    TextGenerator,
)
from lingo_engine.services.learning.marking import MarkingService
from lingo_engine.services.learning.orchestrator import SessionOrchestrator
from lingo_engine.services.learning.picker import (
    AdaptiveStrategy,
    PickContext,
    PickerService,
    PickerStrategy,
    PickResult,
    RandomStrategy,
)
from lingo_engine.services.learning.question_generator import QuestionGenerator, QuestionResult
from lingo_engine.services.learning.schema_registry import InteractionSchemaRegistry
from lingo_engine.services.learning.session_manager import SessionManager, create_session_manager
from lingo_engine.services.learning.statistics import (
    StatisticsService,
    aggregate_performance,
    compute_accuracy,
)

__all__ = [
    # Registries
    "ContentCatalog",
    "InteractionSchemaRegistry",
    "load_catalog_records",
    # Generation
    "GenerationResult",
    "GenerativeContentService",
    "TextGenerator",
    "QuestionGenerator",
    "QuestionResult",
    # Selection
    "AdaptiveStrategy",
    "PickContext",
    "PickResult",
    "PickerService",
    "PickerStrategy",
    "RandomStrategy",
    # Marking
    "MarkingService",
    # Persistence and statistics
    "EventStore",
    "InMemoryEventStore",
    "SqlAlchemyEventStore",
    "StatisticsService",
    "aggregate_performance",
    "compute_accuracy",
    "create_event_store",
    # Sessions
    "SessionManager",
    "SessionOrchestrator",
    "create_session_manager",
]
