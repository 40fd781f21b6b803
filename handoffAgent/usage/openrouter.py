"""OpenRouter usage extraction, formatting and budget accumulation.

OpenRouter reports cost alongside token counts. Depending on the client the
data arrives either as ``provider_metadata["openrouter"]["usage"]`` or, for
OpenAI-compatible chat models, as ``response_metadata["token_usage"]`` with
a ``cost`` field. Both camelCase and snake_case keys are accepted.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from ..utils.errors import AgentsError

LOGGER = logging.getLogger(__name__)


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class OpenRouterUsage:
    """Token and cost metrics of one OpenRouter request."""

    total_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: float = 0.0
    cached_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    upstream_inference_cost: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OpenRouterUsage":
        prompt_details = _pick(data, "promptTokensDetails", "prompt_tokens_details", default={}) or {}
        completion_details = _pick(data, "completionTokensDetails", "completion_tokens_details", default={}) or {}
        cost_details = _pick(data, "costDetails", "cost_details", default={}) or {}

        prompt_tokens = int(_pick(data, "promptTokens", "prompt_tokens", "input_tokens", default=0))
        completion_tokens = int(_pick(data, "completionTokens", "completion_tokens", "output_tokens", default=0))
        total_tokens = int(_pick(data, "totalTokens", "total_tokens", default=prompt_tokens + completion_tokens))

        return cls(
            total_tokens=total_tokens,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=float(_pick(data, "cost", default=0.0)),
            cached_tokens=_pick(prompt_details, "cachedTokens", "cached_tokens"),
            reasoning_tokens=_pick(completion_details, "reasoningTokens", "reasoning_tokens"),
            upstream_inference_cost=_pick(cost_details, "upstreamInferenceCost", "upstream_inference_cost"),
        )


@dataclass
class UsageExtractionResult:
    """Usage with defaults and a flag telling whether real data was found."""

    present: bool
    total_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: float = 0.0
    cached_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None


def _provider_metadata(result: Any) -> Optional[Mapping[str, Any]]:
    if result is None:
        return None
    if isinstance(result, Mapping):
        metadata = result.get("provider_metadata", result.get("providerMetadata"))
    else:
        metadata = getattr(result, "provider_metadata", None)
    return metadata if isinstance(metadata, Mapping) else None


def extract_openrouter_usage(result: Any) -> Optional[OpenRouterUsage]:
    """Extract OpenRouter usage from a generation result, finish event or usage event.

    Returns:
        OpenRouterUsage, or None when no OpenRouter usage is present
    """
    metadata = _provider_metadata(result)
    if not metadata:
        return None

    openrouter = metadata.get("openrouter")
    if isinstance(openrouter, Mapping) and isinstance(openrouter.get("usage"), Mapping):
        return OpenRouterUsage.from_dict(openrouter["usage"])

    token_usage = metadata.get("token_usage")
    if isinstance(token_usage, Mapping) and "cost" in token_usage:
        return OpenRouterUsage.from_dict(token_usage)

    return None


def extract_openrouter_usage_with_defaults(result: Any) -> UsageExtractionResult:
    usage = extract_openrouter_usage(result)
    if usage is None:
        return UsageExtractionResult(present=False)
    return UsageExtractionResult(
        present=True,
        total_tokens=usage.total_tokens,
        prompt_tokens=usage.prompt_tokens,
        completion_tokens=usage.completion_tokens,
        cost=usage.cost,
        cached_tokens=usage.cached_tokens,
        reasoning_tokens=usage.reasoning_tokens,
    )


def format_cost(cost: Optional[float]) -> str:
    """Format a USD cost, e.g. ``$0.000123``; values below 1e-6 use exponent notation."""
    if cost is None or (isinstance(cost, float) and math.isnan(cost)):
        return "$0.000000"
    if 0 < cost < 0.000001:
        return f"${cost:.2e}"
    return f"${cost:.6f}"


def format_tokens(count: Optional[int]) -> str:
    """Format a token count with comma separators, e.g. ``1,234``."""
    if count is None or (isinstance(count, float) and math.isnan(count)):
        return "0"
    return f"{count:,}"


def summarize_usage(usage: Optional[OpenRouterUsage], detailed: bool = False) -> str:
    """Human-readable usage summary.

    >>> summarize_usage(OpenRouterUsage(27, 13, 14, 0.000028))
    '27 tokens ($0.000028)'
    >>> summarize_usage(OpenRouterUsage(27, 13, 14, 0.000028), detailed=True)
    '27 tokens (13 prompt + 14 completion) ($0.000028)'
    """
    if usage is None:
        return "No usage data available"

    tokens = format_tokens(usage.total_tokens)
    cost = format_cost(usage.cost)

    if detailed:
        details = (
            f"{tokens} tokens ({format_tokens(usage.prompt_tokens)} prompt + "
            f"{format_tokens(usage.completion_tokens)} completion)"
        )
        if usage.cached_tokens:
            details += f", {format_tokens(usage.cached_tokens)} cached"
        if usage.reasoning_tokens:
            details += f", {format_tokens(usage.reasoning_tokens)} reasoning"
        return f"{details} ({cost})"

    return f"{tokens} tokens ({cost})"


class BudgetExceededError(AgentsError):
    """Adding a request would push accumulated cost over ``max_cost``."""
    pass


class UsageAccumulator:
    """Accumulate usage across requests with an optional cost budget.

    Args:
        max_cost: Budget in USD; ``add()`` raises ``BudgetExceededError`` beyond it
        on_budget_warning: Called once with the remaining budget when 90% is reached
    """

    WARNING_THRESHOLD = 0.9

    def __init__(self, max_cost: Optional[float] = None, on_budget_warning: Optional[Callable[[float], None]] = None):
        self.max_cost = max_cost
        self.on_budget_warning = on_budget_warning
        self.reset()

    def add(self, usage: OpenRouterUsage) -> None:
        new_cost = self.cost + usage.cost

        if self.max_cost is not None and new_cost > self.max_cost:
            raise BudgetExceededError(
                f"Budget exceeded: {format_cost(new_cost)} > {format_cost(self.max_cost)} (limit)"
            )

        if (
            self.max_cost is not None
            and self.on_budget_warning is not None
            and not self._warning_triggered
            and new_cost >= self.max_cost * self.WARNING_THRESHOLD
        ):
            self._warning_triggered = True
            remaining = self.max_cost - new_cost
            LOGGER.warning(f"Usage budget at {new_cost / self.max_cost:.0%}, {format_cost(remaining)} remaining")
            self.on_budget_warning(remaining)

        self.total_tokens += usage.total_tokens
        self.prompt_tokens += usage.prompt_tokens
        self.completion_tokens += usage.completion_tokens
        self.cost = new_cost
        self.request_count += 1

    def get_total(self) -> Dict[str, Any]:
        return {
            "total_tokens": self.total_tokens,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "cost": self.cost,
            "request_count": self.request_count,
        }

    def get_remaining_budget(self) -> Optional[float]:
        if self.max_cost is None:
            return None
        return max(0.0, self.max_cost - self.cost)

    def reset(self) -> None:
        self.total_tokens = 0
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.cost = 0.0
        self.request_count = 0
        self._warning_triggered = False

    def summarize(self, detailed: bool = False) -> str:
        tokens = format_tokens(self.total_tokens)
        cost = format_cost(self.cost)

        if detailed:
            avg_per_request = self.cost / self.request_count if self.request_count > 0 else 0
            return (
                f"{tokens} tokens ({format_tokens(self.prompt_tokens)} prompt + "
                f"{format_tokens(self.completion_tokens)} completion) across {self.request_count} requests "
                f"({cost} total, {format_cost(avg_per_request)}/request)"
            )

        return f"{tokens} tokens ({cost}) across {self.request_count} requests"

