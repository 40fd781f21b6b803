"""Usage tracking and OpenRouter usage utilities."""

from .openrouter import (
    BudgetExceededError,
    OpenRouterUsage,
    UsageAccumulator,
    UsageExtractionResult,
    extract_openrouter_usage,
    extract_openrouter_usage_with_defaults,
    format_cost,
    format_tokens,
    summarize_usage,
)
from .tracking import (
    UsageTrackingConfig,
    UsageTrackingEvent,
    build_usage_event,
    compose_on_finish,
    configure_usage_tracking,
    get_usage_tracking_config,
    invoke_usage_tracker,
    reset_usage_tracking,
    schedule_usage_tracking,
)

__all__ = [
    "BudgetExceededError",
    "OpenRouterUsage",
    "UsageAccumulator",
    "UsageExtractionResult",
    "UsageTrackingConfig",
    "UsageTrackingEvent",
    "build_usage_event",
    "compose_on_finish",
    "configure_usage_tracking",
    "extract_openrouter_usage",
    "extract_openrouter_usage_with_defaults",
    "format_cost",
    "format_tokens",
    "get_usage_tracking_config",
    "invoke_usage_tracker",
    "reset_usage_tracking",
    "schedule_usage_tracking",
    "summarize_usage",
]
