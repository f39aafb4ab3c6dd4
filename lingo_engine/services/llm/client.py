"""
LLM Client

Text-generation capability behind the generative content service, backed
by LiteLLM so any "provider/model" id from settings.TEXT_MODEL works.

The client sends one request per call and returns the raw answer text.
It never retries or parses: the generative content service owns the
attempt bound and the repair/validation pipeline.

See: https://docs.litellm.ai/

Usage:
    from lingo_engine.services.llm import get_llm_client

    client = get_llm_client()
    text = await client.generate_text(prompt, MultipleChoiceQuestion, "multiple-choice:generation")
"""

import logging
import os
import time
from typing import Optional, Union

import litellm
from litellm import acompletion
from pydantic import BaseModel

from lingo_engine.config.settings import settings
from lingo_engine.enums.learning import LLMOperation
from lingo_engine.models.contracts import describe_contract
from lingo_engine.models.llm_usage import (
    LLMUsage,
    create_error_usage,
    extract_usage_from_response,
)

logger = logging.getLogger(__name__)

litellm.drop_params = True  # providers ignore params they don't support
if settings.DEBUG:
    os.environ["LITELLM_LOG"] = "DEBUG"

SYSTEM_PROMPT = (
    "You are an expert language teacher generating structured exercise data. "
    "Always answer with valid JSON only, without Markdown fences or commentary."
)


def get_default_text_model() -> str:
    return settings.TEXT_MODEL


def build_messages(
    prompt: str,
    system_prompt: Optional[str] = None,
) -> list[dict[str, str]]:
    """Chat messages for a single-turn request, system message first."""
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


def _adjust_temperature_for_model(model: str, temperature: float) -> float:
    # Gemini 3 models only accept temperature=1.0
    if "gemini-3" in model.lower():
        return 1.0
    return temperature


class LLMClient:
    """
    LLM client used for question generation and answer marking.

    Attributes:
        model: LiteLLM model identifier
        max_tokens: Completion token cap
    """

    # Operations that use the lower marking temperature
    MARKING_OPERATIONS = {LLMOperation.ANSWER_MARKING}

    PROVIDER_KEYS = {
        "OPENAI_API_KEY": "OpenAI",
        "ANTHROPIC_API_KEY": "Anthropic",
        "GEMINI_API_KEY": "Gemini",
    }

    def __init__(self, model: Optional[str] = None, max_tokens: Optional[int] = None):
        self.model = model or get_default_text_model()
        self.max_tokens = max_tokens or settings.GENERATION_MAX_TOKENS
        self._validate_api_keys()

    def _validate_api_keys(self):
        """Warn when no provider key is set in the environment or settings."""
        configured = [
            provider
            for key, provider in self.PROVIDER_KEYS.items()
            if os.getenv(key) or getattr(settings, key, "")
        ]
        if configured:
            logger.info(f"LLM client ready for {self.model} (keys: {', '.join(configured)})")
        else:
            logger.warning(
                f"No LLM API key configured for {self.model}; "
                f"set one of {', '.join(self.PROVIDER_KEYS)}"
            )

    def temperature_for(self, operation: Union[LLMOperation, str]) -> float:
        """Configured sampling temperature for an operation."""
        if operation in self.MARKING_OPERATIONS:
            return settings.MARKING_TEMPERATURE
        return settings.GENERATION_TEMPERATURE

    async def complete(
        self,
        messages: list[dict],
        operation: Union[LLMOperation, str] = LLMOperation.STRUCTURED_GENERATION,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        label: Optional[str] = None,
        model: Optional[str] = None,
    ) -> tuple[str, LLMUsage]:
        """
        Generate a completion.

        Args:
            messages: Chat messages in OpenAI format
            operation: Operation for temperature selection and attribution
            temperature: Sampling temperature override
            max_tokens: Maximum tokens in response
            json_mode: Request structured JSON output from the provider
            label: Contract label for attribution
            model: Optional model override

        Returns:
            Tuple of (raw response text, LLMUsage)

        Raises:
            Exception: Any transport-level failure from LiteLLM
        """
        model = model or self.model
        if temperature is None:
            temperature = self.temperature_for(operation)
        operation_name = operation.value if isinstance(operation, LLMOperation) else operation

        kwargs = {
            "model": model,
            "messages": messages,
            "temperature": _adjust_temperature_for_model(model, temperature),
            "max_tokens": max_tokens or self.max_tokens,
        }

        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start_time = time.perf_counter()

        try:
            response = await acompletion(**kwargs)
            latency_ms = int((time.perf_counter() - start_time) * 1000)

            usage = extract_usage_from_response(
                response=response,
                model=model,
                latency_ms=latency_ms,
                label=label,
                operation=operation_name,
            )

            logger.debug(f"LLM completion ok in {latency_ms}ms: {usage}")

            content = response.choices[0].message.content or ""
            return content, usage

        except Exception as e:
            usage = create_error_usage(
                model=model,
                latency_ms=int((time.perf_counter() - start_time) * 1000),
                error_message=str(e),
                label=label,
                operation=operation_name,
            )
            logger.error(f"LLM completion failed: {e} ({usage})")
            raise

    async def generate_text(
        self,
        prompt: str,
        contract: type[BaseModel],
        label: str,
        operation: Union[LLMOperation, str] = LLMOperation.STRUCTURED_GENERATION,
    ) -> str:
        """
        Send a prompt and return the raw text answer.

        The contract's JSON schema is appended to the prompt under its label.
        The output is untrusted: callers must parse and validate it.

        Args:
            prompt: Prompt text built by a schema prompt builder
            contract: Target contract model
            label: Contract label (e.g. "fill-in-gap:generation")
            operation: Operation for temperature selection; inferred from
                ":generation" and ":marking" label suffixes

        Returns:
            Raw response text
        """
        if label.endswith(":marking"):
            operation = LLMOperation.ANSWER_MARKING
        elif label.endswith(":generation"):
            operation = LLMOperation.QUESTION_GENERATION

        full_prompt = f"{prompt.strip()}\n\n{describe_contract(contract, label)}"
        content, usage = await self.complete(
            messages=build_messages(full_prompt, SYSTEM_PROMPT),
            operation=operation,
            json_mode=True,
            label=label,
        )
        logger.info(f"LLM usage: {usage}")
        return content


# Singleton instance
_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Process-wide client, created on first use."""
    global _client
    if _client is None:
        _client = LLMClient()
    return _client


def reset_llm_client():
    global _client
    _client = None
