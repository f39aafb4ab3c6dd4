"""
Generative Content Service

Converts untrusted generator text into a value that satisfies a structural
contract, or a typed failure result. Never raises for generator faults.

Pipeline per attempt:
    generate_text (with timeout) → parse (strict, then repair) → validate

Any failure in the pipeline (transport, timeout, empty text, parse,
contract validation) re-runs the whole pipeline with a new external call,
up to GENERATION_MAX_RETRIES retries. Attempts are stateless: failure
detail is logged, never fed back into the next prompt.

Usage:
    service = GenerativeContentService(get_llm_client())
    result = await service.generate_structured_data(prompt, TrueFalseQuestion, "true-false:generation")
    if result.success:
        question = result.data
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from lingo_engine.config.settings import settings
from lingo_engine.enums.learning import GenerationFailureReason
from lingo_engine.middleware.error_handling import GenerationError, ValidationError
from lingo_engine.services.learning.repair import parse_structured_text

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """The consumed text-generation capability."""

    async def generate_text(self, prompt: str, contract: type[BaseModel], label: str) -> str:
        ...


@dataclass
class GenerationResult:
    """
    Typed outcome of a structured generation.

    Attributes:
        success: Whether a contract-satisfying value was produced
        value: Validated contract instance (None on failure)
        attempts: Number of external calls made
        error: Last failure message (None on success)
        reason: Last failure reason (None on success)
    """

    success: bool
    value: Optional[BaseModel] = None
    attempts: int = 0
    error: Optional[str] = None
    reason: Optional[GenerationFailureReason] = None

    @property
    def data(self) -> Optional[dict[str, Any]]:
        """Validated value serialized with contract aliases."""
        if self.value is None:
            return None
        return self.value.model_dump(by_alias=True, mode="json")

    @classmethod
    def ok(cls, value: BaseModel, attempts: int) -> "GenerationResult":
        return cls(success=True, value=value, attempts=attempts)

    @classmethod
    def failed(cls, error: GenerationError, attempts: int) -> "GenerationResult":
        return cls(
            success=False,
            attempts=attempts,
            error=error.message,
            reason=error.reason,
        )


class GenerativeContentService:
    """
    Bounded-retry wrapper around a text generator.

    Attributes:
        generator: Text-generation capability (LLMClient or a test double)
        max_retries: Retries after the first attempt (total = max_retries + 1)
        timeout_seconds: Per-attempt timeout for the external call
        retry_wait_seconds: Fixed wait between attempts
    """

    def __init__(
        self,
        generator: TextGenerator,
        max_retries: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        retry_wait_seconds: Optional[float] = None,
    ):
        self.generator = generator
        self.max_retries = (
            settings.GENERATION_MAX_RETRIES if max_retries is None else max_retries
        )
        self.timeout_seconds = (
            settings.GENERATION_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        self.retry_wait_seconds = (
            settings.GENERATION_RETRY_WAIT_SECONDS
            if retry_wait_seconds is None
            else retry_wait_seconds
        )

        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def generate_structured_data(
        self,
        prompt: str,
        contract: type[BaseModel],
        label: str,
        timeout_seconds: Optional[float] = None,
    ) -> GenerationResult:
        """
        Produce a value satisfying `contract`, or a failure result.

        Args:
            prompt: Prompt text
            contract: Target contract model
            label: Contract label used in prompts and logs
            timeout_seconds: Per-attempt timeout override

        Returns:
            GenerationResult; success=False after exhausting all attempts
        """
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        attempts = 0

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                retry=retry_if_exception_type(GenerationError),
                wait=wait_fixed(self.retry_wait_seconds),
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    value = await self._run_attempt(prompt, contract, label, timeout, attempts)
        except GenerationError as e:
            logger.error(
                f"Generation for {label} failed after {attempts} attempt(s): "
                f"{e.reason.value}: {e.message}"
            )
            return GenerationResult.failed(e, attempts)

        if attempts > 1:
            logger.info(f"Generation for {label} succeeded on attempt {attempts}")
        return GenerationResult.ok(value, attempts)

    async def _run_attempt(
        self,
        prompt: str,
        contract: type[BaseModel],
        label: str,
        timeout: float,
        attempt_number: int,
    ) -> BaseModel:
        """Run one call → parse → validate pass, logging its failure."""
        try:
            text = await self._call_generator(prompt, contract, label, timeout)
            data = parse_structured_text(text)
            return self._validate(data, contract, label)
        except GenerationError as e:
            logger.warning(
                f"Generation attempt {attempt_number}/{self.max_attempts} for {label} "
                f"failed ({e.reason.value}): {e.message}"
            )
            raise

    async def _call_generator(
        self,
        prompt: str,
        contract: type[BaseModel],
        label: str,
        timeout: float,
    ) -> str:
        try:
            text = await asyncio.wait_for(
                self.generator.generate_text(prompt, contract, label),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise GenerationError(
                f"Generator timed out after {timeout}s",
                reason=GenerationFailureReason.TIMEOUT,
            ) from e
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(
                f"{type(e).__name__}: {e}",
                reason=GenerationFailureReason.TRANSPORT,
            ) from e

        if not isinstance(text, str) or not text.strip():
            raise GenerationError(
                "Generator returned no text", reason=GenerationFailureReason.EMPTY
            )
        return text

    @staticmethod
    def _validate(data: Any, contract: type[BaseModel], label: str) -> BaseModel:
        try:
            return contract.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Output violates contract {label}: {e.error_count()} error(s)",
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e
