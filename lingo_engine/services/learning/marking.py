"""
Marking Service

Evaluates a submitted answer against an interaction schema's marking
contract and always returns a judgement:

1. Deterministic local marking when the schema has a local marker that
   applies to the answer (e.g. an option index for multiple-choice).
2. Otherwise the marking prompt is built (override template if the catalog
   declares one for the (submodule, schema) pair, else the schema's own
   builder) and sent through the generative content service.
3. If generation fails after retries, a fixed fallback judgement is
   returned so the session can progress.

A judgement with isCorrect=true and a non-empty correctAnswer is logged as
an anomaly and its correctAnswer cleared.
"""

import json
import logging
import re
from typing import Any, Mapping, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from lingo_engine.models.contracts import FALLBACK_MARK_RESULT, MarkResult
from lingo_engine.services.learning.catalog import ContentCatalog
from lingo_engine.services.learning.generation import GenerativeContentService
from lingo_engine.services.learning.interactions.base import MarkingContext, format_answer
from lingo_engine.services.learning.question_generator import ResolvedStep, resolve_step
from lingo_engine.services.learning.schema_registry import InteractionSchemaRegistry

logger = logging.getLogger(__name__)

_PLACEHOLDER_PATTERN = re.compile(r"\{\w+\}")


def build_placeholder_values(
    question_data: Mapping[str, Any],
    user_answer: Any,
    target_language: str,
    source_language: str,
) -> dict[str, Optional[str]]:
    """Values available to marking prompt override templates."""
    return {
        "targetLanguage": target_language,
        "sourceLanguage": source_language,
        "questionDataJSON": json.dumps(dict(question_data), ensure_ascii=False),
        "taskType": question_data.get("taskType") or "unknown",
        "userAnswer": format_answer(user_answer),
        "presentedSentence": question_data.get("presentedSentence"),
        "correctSentence": question_data.get("correctSentence"),
        "errorsIntroducedJSON": json.dumps(
            question_data.get("errorsIntroduced") or [], ensure_ascii=False
        ),
    }


def fill_placeholders(template: str, values: Mapping[str, Any]) -> str:
    """
    Replace {name} placeholders in a template.

    None values are skipped; any placeholder left unfilled is removed.
    """
    result = template
    for key, value in values.items():
        if value is not None:
            result = result.replace(f"{{{key}}}", str(value))
    return _PLACEHOLDER_PATTERN.sub("", result)


class MarkingService:
    """Produces a MarkResult for every submitted answer."""

    def __init__(
        self,
        catalog: ContentCatalog,
        schema_registry: InteractionSchemaRegistry,
        generation_service: GenerativeContentService,
    ):
        self.catalog = catalog
        self.schema_registry = schema_registry
        self.generation_service = generation_service

    async def mark_answer(
        self,
        module_id: str,
        submodule_id: str,
        schema_id: str,
        question_data: Mapping[str, Any],
        user_answer: Any,
        target_language: str,
        source_language: str,
    ) -> MarkResult:
        """
        Mark an answer.

        Returns:
            MarkResult; the fallback judgement if the generator fails

        Raises:
            ConfigurationError: If the step cannot be resolved
        """
        resolved = resolve_step(
            self.catalog, self.schema_registry, module_id, submodule_id, schema_id
        )
        schema = resolved.schema

        if schema.local_marker is not None:
            local = schema.local_marker(question_data, user_answer)
            if local is not None:
                logger.debug(f"Marked {schema_id} answer locally")
                return self._enforce_correct_answer_rule(local, schema.marking_label)

        prompt = self.build_prompt(
            resolved, question_data, user_answer, target_language, source_language
        )
        result = await self.generation_service.generate_structured_data(
            prompt, schema.marking_contract, schema.marking_label
        )

        if not result.success:
            logger.error(
                f"Marking failed for {module_id}/{submodule_id}/{schema_id} after "
                f"{result.attempts} attempt(s), returning fallback judgement: {result.error}"
            )
            return FALLBACK_MARK_RESULT.model_copy()

        mark = self._to_mark_result(result.value, schema.marking_label)
        return self._enforce_correct_answer_rule(mark, schema.marking_label)

    def build_prompt(
        self,
        resolved: ResolvedStep,
        question_data: Mapping[str, Any],
        user_answer: Any,
        target_language: str,
        source_language: str,
    ) -> str:
        """
        Build the marking prompt.

        Override resolution: submodule override, then module override,
        then the schema's marking prompt builder.
        """
        template = resolved.module.resolve_override(
            resolved.submodule.id, resolved.schema.id, "marking_prompt_override"
        )
        if template:
            values = build_placeholder_values(
                question_data, user_answer, target_language, source_language
            )
            return fill_placeholders(template, values)

        context = MarkingContext(
            question_data=question_data,
            user_answer=user_answer,
            target_language=target_language,
            source_language=source_language,
            submodule_context=resolved.submodule.context,
        )
        return resolved.schema.build_marking_prompt(context)

    @staticmethod
    def _to_mark_result(value: BaseModel, label: str) -> MarkResult:
        if isinstance(value, MarkResult):
            return value
        try:
            return MarkResult.model_validate(value.model_dump(by_alias=True))
        except PydanticValidationError as e:
            logger.error(f"Marking contract {label} output is not a judgement: {e}")
            return FALLBACK_MARK_RESULT.model_copy()

    @staticmethod
    def _enforce_correct_answer_rule(mark: MarkResult, label: str) -> MarkResult:
        if mark.is_correct and mark.correct_answer:
            logger.warning(
                f"{label}: correct judgement carried a correctAnswer "
                f"({mark.correct_answer!r}); clearing it"
            )
            return mark.model_copy(update={"correct_answer": ""})
        return mark
