"""Model runner interface.

The orchestration layer never calls a chat model directly. It hands a
``ModelRequest`` to a ``ModelRunner`` and consumes either a
``GenerationResult`` (``generate``) or an async iterator of stream chunks
(``stream``). ``LangChainModelRunner`` is the bundled implementation; tests
use a scripted runner.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Union,
)

from langchain_core.messages import BaseMessage
from langchain_core.tools import BaseTool

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from ..agents.context import ExecutionContext
    from ..guardrails.permissions import ToolPermissions


@dataclass
class ModelRequest:
    """Everything needed for one agent invocation."""

    agent_name: str
    system_prompt: str
    messages: List[BaseMessage]
    tools: Dict[str, BaseTool] = field(default_factory=dict)
    model: Union["BaseChatModel", str, None] = None
    max_steps: int = 10
    temperature: Optional[float] = None
    model_settings: Dict[str, Any] = field(default_factory=dict)
    context: Optional["ExecutionContext"] = None
    permissions: Optional["ToolPermissions"] = None
    on_step_finish: Optional[Callable[["StepEvent"], Any]] = None


@dataclass
class StepEvent:
    """One model step (a model call plus the tools it requested)."""

    step: int
    text: str = ""
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    tool_results: List[Dict[str, Any]] = field(default_factory=list)
    usage: Optional[Dict[str, Any]] = None
    finish_reason: Optional[str] = None


@dataclass
class FinishEvent:
    """Passed to ``on_finish`` exactly once when a stream ends."""

    text: str = ""
    usage: Optional[Dict[str, Any]] = None
    provider_metadata: Optional[Dict[str, Any]] = None
    finish_reason: Optional[str] = None
    steps: List[StepEvent] = field(default_factory=list)


@dataclass
class GenerationResult:
    """Result of a non-streaming invocation."""

    text: str = ""
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    tool_results: List[Dict[str, Any]] = field(default_factory=list)
    usage: Optional[Dict[str, Any]] = None
    provider_metadata: Optional[Dict[str, Any]] = None
    finish_reason: Optional[str] = None
    steps: List[StepEvent] = field(default_factory=list)
    messages: List[BaseMessage] = field(default_factory=list)


OnFinish = Callable[[FinishEvent], Union[None, Awaitable[None]]]


class ModelRunner(Protocol):
    """Black-box language model call with tool execution."""

    async def generate(self, request: ModelRequest) -> GenerationResult:
        ...

    def stream(self, request: ModelRequest, on_finish: Optional[OnFinish] = None) -> AsyncIterator[Dict[str, Any]]:
        ...


def merge_usage(total: Optional[Dict[str, Any]], usage: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Add token counts of ``usage`` into ``total`` (numeric keys only)."""
    if not usage:
        return total
    merged = dict(total or {})
    for key, value in usage.items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            merged[key] = merged.get(key, 0) + value
        elif key not in merged:
            merged[key] = value
    return merged
