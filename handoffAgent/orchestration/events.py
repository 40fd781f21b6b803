"""Lifecycle events reported through a workflow's ``on_event`` callback."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Optional, Union

LOGGER = logging.getLogger(__name__)

AgentEventType = Literal[
    "agent-start",
    "agent-step",
    "agent-finish",
    "agent-handoff",
    "agent-complete",
    "agent-error",
]


@dataclass
class AgentEvent:
    type: AgentEventType
    agent: Optional[str] = None
    round: Optional[int] = None
    from_agent: Optional[str] = None
    to_agent: Optional[str] = None
    reason: Optional[str] = None
    step: Any = None
    error: Optional[BaseException] = None


OnEvent = Callable[[AgentEvent], Union[None, Awaitable[None]]]


async def emit_event(on_event: Optional[OnEvent], event: AgentEvent) -> None:
    if on_event is None:
        return
    result = on_event(event)
    if inspect.isawaitable(result):
        await result
