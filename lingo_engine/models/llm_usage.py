"""
LLM usage records.

One LLMUsage per completion call (successful or not), built from the
LiteLLM response: token counts, cost in USD, latency and the contract
label the call was made for. Records are logged, not persisted.
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from typing import Optional

import litellm

logger = logging.getLogger(__name__)


@dataclass
class LLMUsage:
    """
    Token, cost and latency figures for a single completion.

    Attributes:
        model: LiteLLM model id ("provider/model")
        provider: Provider prefix of the model id, or "unknown"
        label: Contract label, e.g. "fill-in-gap:marking"
        operation: LLMOperation value the call was attributed to
        cost_usd: Cost reported by LiteLLM, or computed from tokens
        success: False for transport failures
    """

    model: str = ""
    provider: str = ""
    label: Optional[str] = None
    operation: Optional[str] = None

    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    cost_usd: Optional[float] = None
    latency_ms: Optional[int] = None

    success: bool = True
    error_message: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def total_cost(self) -> float:
        return self.cost_usd or 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    def __str__(self) -> str:
        cost = f"${self.cost_usd:.4f}" if self.cost_usd else "N/A"
        tokens = self.total_tokens if self.total_tokens else "N/A"
        return f"LLMUsage({self.model}, {self.label}, cost={cost}, tokens={tokens})"


def extract_provider(model: str) -> str:
    """"gemini/gemini-1.5-flash" -> "gemini"; ids without a prefix are "unknown"."""
    provider, sep, _ = model.partition("/")
    return provider if sep else "unknown"


def extract_usage_from_response(
    response,
    model: str,
    latency_ms: int,
    label: Optional[str] = None,
    operation: Optional[str] = None,
) -> LLMUsage:
    """
    Build an LLMUsage from a LiteLLM ModelResponse.

    Cost comes from LiteLLM's hidden response params when present, else
    from litellm.completion_cost when token counts are known.
    """
    usage = LLMUsage(
        model=model,
        provider=extract_provider(model),
        label=label,
        operation=operation,
        latency_ms=latency_ms,
    )

    counts = getattr(response, "usage", None)
    if counts:
        usage.prompt_tokens = getattr(counts, "prompt_tokens", None)
        usage.completion_tokens = getattr(counts, "completion_tokens", None)
        usage.total_tokens = getattr(counts, "total_tokens", None)

    hidden_params = getattr(response, "_hidden_params", None) or {}
    usage.cost_usd = hidden_params.get("response_cost")

    if usage.cost_usd is None and usage.total_tokens:
        try:
            usage.cost_usd = litellm.completion_cost(completion_response=response)
        except Exception as e:
            logger.debug(f"No cost available for {model}: {e}")

    return usage


def create_error_usage(
    model: str,
    latency_ms: int,
    error_message: str,
    label: Optional[str] = None,
    operation: Optional[str] = None,
) -> LLMUsage:
    """Usage record for a call that raised before returning a response."""
    return LLMUsage(
        model=model,
        provider=extract_provider(model),
        label=label,
        operation=operation,
        latency_ms=latency_ms,
        success=False,
        error_message=error_message,
    )
