"""
Question Generator

Resolves a (module, submodule, schema) triple against the registries,
builds the schema's generation prompt and runs it through the generative
content service.

Unknown ids and unsupported (submodule, schema) pairs are configuration
errors; generator failures come back as a failed GenerationResult.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from lingo_engine.config.settings import settings
from lingo_engine.middleware.error_handling import ConfigurationError
from lingo_engine.models.catalog import ModuleDefinition, SubmoduleDefinition
from lingo_engine.models.session import StepInfo
from lingo_engine.services.learning.catalog import ContentCatalog
from lingo_engine.services.learning.generation import (
    GenerationResult,
    GenerativeContentService,
)
from lingo_engine.services.learning.interactions.base import (
    GenerationContext,
    InteractionSchemaDefinition,
)
from lingo_engine.services.learning.schema_registry import InteractionSchemaRegistry

logger = logging.getLogger(__name__)


@dataclass
class ResolvedStep:
    """Catalog and schema entries behind a step."""

    module: ModuleDefinition
    submodule: SubmoduleDefinition
    schema: InteractionSchemaDefinition
    step: StepInfo


@dataclass
class QuestionResult:
    """A resolved step and the outcome of generating its question data."""

    step: StepInfo
    generation: GenerationResult

    @property
    def success(self) -> bool:
        return self.generation.success

    @property
    def question_data(self) -> Optional[dict[str, Any]]:
        return self.generation.data


def resolve_step(
    catalog: ContentCatalog,
    schema_registry: InteractionSchemaRegistry,
    module_id: str,
    submodule_id: str,
    schema_id: str,
    language: Optional[str] = None,
) -> ResolvedStep:
    """
    Resolve catalog entries for a step.

    UI component resolution: submodule override, then module override,
    then the schema default.

    Raises:
        ConfigurationError: Unknown module, submodule or schema, or a schema
            the submodule does not support
    """
    module = catalog.require_module(module_id, language)
    submodule = module.get_submodule(submodule_id)
    if submodule is None:
        raise ConfigurationError(f"Submodule not found: {submodule_id} in module {module_id}")

    schema = schema_registry.require_schema(schema_id)
    if schema_id not in submodule.supported_modal_schema_ids:
        raise ConfigurationError(
            f"Submodule {module_id}/{submodule_id} does not support schema {schema_id}"
        )

    ui_component = (
        module.resolve_override(submodule_id, schema_id, "ui_component_override")
        or schema.ui_component
    )
    step = StepInfo(
        submodule_id=submodule.id,
        modal_schema_id=schema.id,
        submodule_title=submodule.title,
        ui_component=ui_component,
    )
    return ResolvedStep(module=module, submodule=submodule, schema=schema, step=step)


class QuestionGenerator:
    """Generates question data for a step."""

    def __init__(
        self,
        catalog: ContentCatalog,
        schema_registry: InteractionSchemaRegistry,
        generation_service: GenerativeContentService,
    ):
        self.catalog = catalog
        self.schema_registry = schema_registry
        self.generation_service = generation_service

    async def generate_question(
        self,
        module_id: str,
        submodule_id: str,
        schema_id: str,
        target_language: str,
        source_language: str,
        difficulty: Optional[str] = None,
    ) -> QuestionResult:
        """
        Generate question data for one (submodule, schema) pair.

        Titles are localized to the target language.

        Returns:
            QuestionResult; check `.success` before using question data

        Raises:
            ConfigurationError: If the step cannot be resolved
        """
        resolved = resolve_step(
            self.catalog,
            self.schema_registry,
            module_id,
            submodule_id,
            schema_id,
            language=target_language,
        )
        context = GenerationContext(
            target_language=target_language,
            source_language=source_language,
            difficulty=difficulty or settings.DEFAULT_DIFFICULTY,
            module_title=resolved.module.title,
            module_primary_task=resolved.module.primary_task,
            submodule_title=resolved.submodule.title,
            submodule_primary_task=resolved.submodule.primary_task,
            submodule_context=resolved.submodule.context,
        )

        prompt = resolved.schema.build_generation_prompt(context)
        generation = await self.generation_service.generate_structured_data(
            prompt,
            resolved.schema.generation_contract,
            resolved.schema.generation_label,
        )

        if generation.success:
            logger.debug(
                f"Generated {schema_id} question for {module_id}/{submodule_id} "
                f"in {generation.attempts} attempt(s)"
            )
        else:
            logger.warning(
                f"Question generation failed for {module_id}/{submodule_id}/{schema_id}: "
                f"{generation.error}"
            )
        return QuestionResult(step=resolved.step, generation=generation)
