"""
LLM Service Module

Provides the text-generation capability via LiteLLM.

Usage:
    from lingo_engine.services.llm import get_llm_client

    client = get_llm_client()
    text = await client.generate_text(prompt, contract, "true-false:generation")
"""

from lingo_engine.models.llm_usage import LLMUsage
from lingo_engine.services.llm.client import (
    LLMClient,
    build_messages,
    get_default_text_model,
    get_llm_client,
    reset_llm_client,
)

__all__ = [
    "LLMClient",
    "LLMUsage",
    "build_messages",
    "get_default_text_model",
    "get_llm_client",
    "reset_llm_client",
]
