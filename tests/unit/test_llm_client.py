"""
Unit tests for the LiteLLM-backed text generator and usage extraction.

LiteLLM's acompletion is patched; responses are plain namespaces shaped
like LiteLLM ModelResponse objects.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from lingo_engine.config.settings import settings
from lingo_engine.enums.learning import LLMOperation
from lingo_engine.models.contracts import MarkResult
from lingo_engine.models.llm_usage import (
    create_error_usage,
    extract_provider,
    extract_usage_from_response,
)
from lingo_engine.services.learning.interactions.multiple_choice import (
    MultipleChoiceQuestion,
)
from lingo_engine.services.llm.client import (
    SYSTEM_PROMPT,
    LLMClient,
    build_messages,
    get_llm_client,
    reset_llm_client,
)

MODEL = "openai/gpt-4o-mini"


def make_response(content: str = '{"ok": true}', cost: float = 0.0012) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=40, total_tokens=160),
        _hidden_params={"response_cost": cost},
    )


@pytest.fixture
def client() -> LLMClient:
    return LLMClient(model=MODEL, max_tokens=512)


class TestBuildMessages:
    def test_with_system_prompt(self):
        messages = build_messages("hello", "be brief")

        assert messages == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hello"},
        ]

    def test_without_system_prompt(self):
        assert build_messages("hello") == [{"role": "user", "content": "hello"}]


class TestGenerateText:
    @pytest.mark.asyncio
    async def test_returns_raw_content(self, client):
        mock = AsyncMock(return_value=make_response("```json\n{\"a\": 1}\n```"))
        with patch("lingo_engine.services.llm.client.acompletion", mock):
            text = await client.generate_text(
                "Write a question.", MultipleChoiceQuestion, "multiple-choice:generation"
            )

        assert text == "```json\n{\"a\": 1}\n```"

    @pytest.mark.asyncio
    async def test_usage_logged_per_call(self, client, caplog):
        mock = AsyncMock(return_value=make_response(cost=0.0012))
        with caplog.at_level("INFO", logger="lingo_engine.services.llm.client"):
            with patch("lingo_engine.services.llm.client.acompletion", mock):
                await client.generate_text(
                    "Write a question.", MultipleChoiceQuestion, "multiple-choice:generation"
                )

        usage_lines = [r.getMessage() for r in caplog.records if "LLM usage" in r.getMessage()]
        assert len(usage_lines) == 1
        assert "multiple-choice:generation" in usage_lines[0]
        assert "cost=$0.0012" in usage_lines[0]
        assert "tokens=160" in usage_lines[0]

    @pytest.mark.asyncio
    async def test_request_shape(self, client):
        mock = AsyncMock(return_value=make_response())
        with patch("lingo_engine.services.llm.client.acompletion", mock):
            await client.generate_text(
                "Write a question.", MultipleChoiceQuestion, "multiple-choice:generation"
            )

        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == MODEL
        assert kwargs["max_tokens"] == 512
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == settings.GENERATION_TEMPERATURE
        system, user = kwargs["messages"]
        assert system == {"role": "system", "content": SYSTEM_PROMPT}
        assert user["content"].startswith("Write a question.")
        assert "'multiple-choice:generation'" in user["content"]
        assert '"correctOptionIndex"' in user["content"]

    @pytest.mark.asyncio
    async def test_marking_label_uses_marking_temperature(self, client):
        mock = AsyncMock(return_value=make_response())
        with patch("lingo_engine.services.llm.client.acompletion", mock):
            await client.generate_text("Mark this.", MarkResult, "fill-in-gap:marking")

        assert mock.call_args.kwargs["temperature"] == settings.MARKING_TEMPERATURE

    @pytest.mark.asyncio
    async def test_missing_content_is_empty_text(self, client):
        response = make_response()
        response.choices[0].message.content = None
        with patch("lingo_engine.services.llm.client.acompletion", AsyncMock(return_value=response)):
            text = await client.generate_text("Mark this.", MarkResult, "true-false:marking")

        assert text == ""

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self, client, caplog):
        mock = AsyncMock(side_effect=ConnectionError("provider down"))
        with patch("lingo_engine.services.llm.client.acompletion", mock):
            with pytest.raises(ConnectionError):
                await client.generate_text("Mark this.", MarkResult, "true-false:marking")

        assert mock.await_count == 1
        assert "LLM completion failed" in caplog.text


class TestComplete:
    @pytest.mark.asyncio
    async def test_usage_returned(self, client):
        with patch(
            "lingo_engine.services.llm.client.acompletion",
            AsyncMock(return_value=make_response()),
        ):
            content, usage = await client.complete(
                build_messages("hi"), operation=LLMOperation.ANSWER_MARKING, label="x:marking"
            )

        assert content == '{"ok": true}'
        assert usage.provider == "openai"
        assert usage.total_tokens == 160
        assert usage.cost_usd == pytest.approx(0.0012)
        assert usage.operation == "answer_marking"
        assert usage.success is True

    @pytest.mark.asyncio
    async def test_no_response_format_without_json_mode(self, client):
        mock = AsyncMock(return_value=make_response())
        with patch("lingo_engine.services.llm.client.acompletion", mock):
            await client.complete(build_messages("hi"), temperature=0.1)

        assert "response_format" not in mock.call_args.kwargs
        assert mock.call_args.kwargs["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_gemini_3_temperature_pinned(self):
        client = LLMClient(model="gemini/gemini-3-pro-preview")
        mock = AsyncMock(return_value=make_response())
        with patch("lingo_engine.services.llm.client.acompletion", mock):
            await client.complete(build_messages("hi"), temperature=0.2)

        assert mock.call_args.kwargs["temperature"] == 1.0


class TestUsageHelpers:
    def test_extract_provider(self):
        assert extract_provider("anthropic/claude-3-haiku") == "anthropic"
        assert extract_provider("gpt-4o") == "unknown"

    def test_usage_without_token_counts(self):
        response = SimpleNamespace(usage=None, _hidden_params={})

        usage = extract_usage_from_response(response, MODEL, latency_ms=12, label="a:generation")

        assert usage.total_tokens is None
        assert usage.cost_usd is None
        assert usage.total_cost == 0.0
        assert "N/A" in str(usage)

    def test_error_usage(self):
        usage = create_error_usage(MODEL, latency_ms=5, error_message="boom", label="a:marking")

        assert usage.success is False
        assert usage.error_message == "boom"
        assert usage.to_dict()["label"] == "a:marking"


class TestSingleton:
    def test_shared_instance_and_reset(self):
        reset_llm_client()
        first = get_llm_client()

        assert get_llm_client() is first
        reset_llm_client()
        assert get_llm_client() is not first
        reset_llm_client()
