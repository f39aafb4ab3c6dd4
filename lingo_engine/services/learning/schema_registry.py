"""
Interaction Schema Registry

Immutable index of interaction schemas keyed by schema id. Populated exactly
once, all-or-nothing, before any read; afterwards safe for concurrent reads.

Usage:
    registry = InteractionSchemaRegistry()
    registry.initialize()  # registers the built-in schemas

    schema = registry.get_schema("fill-in-gap")
"""

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from pydantic import BaseModel

from lingo_engine.enums.learning import SkillTag
from lingo_engine.middleware.error_handling import ConfigurationError, NotInitializedError
from lingo_engine.services.learning.interactions import BUILTIN_SCHEMAS
from lingo_engine.services.learning.interactions.base import InteractionSchemaDefinition

logger = logging.getLogger(__name__)


class InteractionSchemaRegistry:
    """Load-once registry of InteractionSchemaDefinition entries."""

    def __init__(self):
        self._schemas: Mapping[str, InteractionSchemaDefinition] = MappingProxyType({})
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(
        self, definitions: Optional[Iterable[InteractionSchemaDefinition]] = None
    ) -> None:
        """
        Register schema definitions atomically.

        Args:
            definitions: Definitions to register (defaults to the built-ins)

        Raises:
            ConfigurationError: On a second call, a duplicate id, or a
                malformed definition. Nothing is registered in that case.
        """
        if self._initialized:
            raise ConfigurationError("Interaction schema registry is already initialized")

        staged: dict[str, InteractionSchemaDefinition] = {}
        for definition in BUILTIN_SCHEMAS if definitions is None else definitions:
            self._check_definition(definition)
            if definition.id in staged:
                raise ConfigurationError(f"Duplicate interaction schema id: {definition.id}")
            staged[definition.id] = definition

        self._schemas = MappingProxyType(staged)
        self._initialized = True
        logger.info(f"Interaction schema registry initialized with {len(staged)} schemas")

    @staticmethod
    def _check_definition(definition: InteractionSchemaDefinition) -> None:
        if not isinstance(definition, InteractionSchemaDefinition):
            raise ConfigurationError(f"Not an interaction schema definition: {definition!r}")
        if not definition.id:
            raise ConfigurationError("Interaction schema id must not be empty")
        if not isinstance(definition.skill, SkillTag):
            raise ConfigurationError(
                f"Schema {definition.id} has invalid skill tag: {definition.skill!r}"
            )
        for contract in (definition.generation_contract, definition.marking_contract):
            if not (isinstance(contract, type) and issubclass(contract, BaseModel)):
                raise ConfigurationError(f"Schema {definition.id} has an invalid contract")
        if not (callable(definition.build_generation_prompt) and callable(definition.build_marking_prompt)):
            raise ConfigurationError(f"Schema {definition.id} is missing a prompt builder")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError(
                "Interaction schema registry not initialized. Call initialize() first."
            )

    def get_schema(self, schema_id: str) -> Optional[InteractionSchemaDefinition]:
        """Return the schema, or None for an unknown id."""
        self._require_initialized()
        return self._schemas.get(schema_id)

    def require_schema(self, schema_id: str) -> InteractionSchemaDefinition:
        """Return the schema; an unknown id is a configuration error."""
        schema = self.get_schema(schema_id)
        if schema is None:
            raise ConfigurationError(f"Interaction schema not found: {schema_id}")
        return schema

    def get_all_schemas(self) -> list[InteractionSchemaDefinition]:
        self._require_initialized()
        return list(self._schemas.values())

    def schema_ids(self) -> frozenset[str]:
        self._require_initialized()
        return frozenset(self._schemas)

    def get_skill(self, schema_id: str) -> Optional[SkillTag]:
        """Skill tag for a schema id, or None if the id is unknown."""
        schema = self.get_schema(schema_id)
        return schema.skill if schema else None
