"""Usage tracking: one event per agent invocation, delivered to a tracker.

Configure a process-wide tracker once::

    configure_usage_tracking(lambda event: print(event.agent_name, event.usage))

    configure_usage_tracking(UsageTrackingConfig(
        on_usage=save_to_db,
        on_error=lambda error, event: LOGGER.error(...),
    ))

A tracker passed to ``Workflow`` (or ``invoke_agent``/``stream_agent``)
takes precedence over the global one. Tracker failures are reported to
``on_error`` or logged; they never reach the caller.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Literal, Optional, Set, Union

if TYPE_CHECKING:
    from ..agents.context import ExecutionContext

LOGGER = logging.getLogger(__name__)

UsageMethod = Literal["generate", "stream"]


@dataclass
class UsageTrackingEvent:
    """Usage of one agent invocation.

    Attributes:
        agent_name: Agent that produced the response
        session_id: Session id from the execution context
        handoff_chain: Agents that handed off before this one plus this agent,
            ``None`` when no handoff happened
        usage: Token usage (``input_tokens``, ``output_tokens``, ``total_tokens``)
        provider_metadata: Provider-specific metadata (e.g. OpenRouter cost)
        method: "generate" or "stream"
        finish_reason: Why generation stopped
        duration: Wall time in milliseconds (generate only)
        context: Snapshot of the execution context
    """

    agent_name: str
    method: UsageMethod
    session_id: Optional[str] = None
    handoff_chain: Optional[List[str]] = None
    usage: Optional[Dict[str, Any]] = None
    provider_metadata: Optional[Dict[str, Any]] = None
    finish_reason: Optional[str] = None
    duration: Optional[float] = None
    context: Dict[str, Any] = field(default_factory=dict)


UsageTrackingHandler = Callable[[UsageTrackingEvent], Union[None, Awaitable[None]]]
UsageErrorHandler = Callable[[BaseException, UsageTrackingEvent], Union[None, Awaitable[None]]]


@dataclass
class UsageTrackingConfig:
    on_usage: UsageTrackingHandler
    on_error: Optional[UsageErrorHandler] = None


TrackerLike = Union[UsageTrackingConfig, UsageTrackingHandler]

_global_config: Optional[UsageTrackingConfig] = None

# Strong references to fire-and-forget deliveries so they are not collected mid-flight
_background_tasks: Set[asyncio.Task] = set()


def as_tracking_config(tracker: Optional[TrackerLike]) -> Optional[UsageTrackingConfig]:
    if tracker is None or isinstance(tracker, UsageTrackingConfig):
        return tracker
    if callable(tracker):
        return UsageTrackingConfig(on_usage=tracker)
    raise TypeError(f"Unsupported usage tracker: {tracker!r}")


def configure_usage_tracking(config: TrackerLike) -> None:
    """Set the process-wide usage tracker (a handler or a ``UsageTrackingConfig``)."""
    global _global_config
    _global_config = as_tracking_config(config)
    LOGGER.debug("Global usage tracking configured")


def reset_usage_tracking() -> None:
    """Clear the process-wide usage tracker."""
    global _global_config
    _global_config = None


def get_usage_tracking_config() -> Optional[UsageTrackingConfig]:
    return _global_config


def resolve_tracker(tracker: Optional[TrackerLike] = None) -> Optional[UsageTrackingConfig]:
    """Injected tracker first, then the global one."""
    return as_tracking_config(tracker) if tracker is not None else _global_config


def build_usage_event(
    agent_name: str,
    method: UsageMethod,
    context: Optional["ExecutionContext"] = None,
    usage: Optional[Dict[str, Any]] = None,
    provider_metadata: Optional[Dict[str, Any]] = None,
    finish_reason: Optional[str] = None,
    duration: Optional[float] = None,
) -> UsageTrackingEvent:
    existing_chain = list(context.handoff_chain) if context is not None else []
    handoff_chain = [*existing_chain, agent_name] if existing_chain else None

    return UsageTrackingEvent(
        agent_name=agent_name,
        method=method,
        session_id=context.session_id if context is not None else None,
        handoff_chain=handoff_chain,
        usage=usage,
        provider_metadata=provider_metadata,
        finish_reason=finish_reason,
        duration=duration,
        context=context.snapshot() if context is not None else {},
    )


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


async def invoke_usage_tracker(event: UsageTrackingEvent, config: Optional[UsageTrackingConfig]) -> None:
    """Deliver one event; failures go to ``on_error`` or the log, never to the caller."""
    if config is None:
        return

    try:
        await _maybe_await(config.on_usage(event))
    except Exception as error:
        if config.on_error is None:
            LOGGER.error(f"Usage tracking failed for {event.agent_name}: {error}")
            return
        try:
            await _maybe_await(config.on_error(error, event))
        except Exception as handler_error:
            LOGGER.error(f"Usage tracking error handler failed: {handler_error}")


def schedule_usage_tracking(event: UsageTrackingEvent, config: Optional[UsageTrackingConfig]) -> Optional[asyncio.Task]:
    """Deliver an event in the background (used after ``generate``)."""
    if config is None:
        return None
    task = asyncio.get_running_loop().create_task(invoke_usage_tracker(event, config))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tracking() -> None:
    """Wait for pending background deliveries."""
    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


def compose_on_finish(
    on_finish: Optional[Callable[[Any], Any]],
    build_event: Callable[[Any], UsageTrackingEvent],
    config: Optional[UsageTrackingConfig],
) -> Optional[Callable[[Any], Awaitable[None]]]:
    """Combine the caller's ``on_finish`` with usage tracking for ``stream``.

    Both run concurrently; a failure in one does not stop the other. The
    caller's own exception is re-raised once both have completed.
    """
    if config is None:
        return on_finish

    async def composed(event: Any) -> None:
        tracking_event = build_event(event)

        async def run_caller() -> None:
            if on_finish is not None:
                await _maybe_await(on_finish(event))

        caller_result, _ = await asyncio.gather(
            run_caller(),
            invoke_usage_tracker(tracking_event, config),
            return_exceptions=True,
        )
        if isinstance(caller_result, BaseException):
            raise caller_result

    return composed
