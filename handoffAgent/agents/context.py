"""Turn-scoped execution context."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from langchain_core.messages import BaseMessage

if TYPE_CHECKING:
    from ..streaming.writer import StreamWriter


@dataclass
class AgentRunContext:
    """What handoff callbacks and input filters see of the running turn."""

    context: "ExecutionContext"
    current_agent: Optional[str] = None
    round: int = 0

    @property
    def handoff_chain(self) -> List[str]:
        return self.context.handoff_chain


@dataclass
class ExecutionContext:
    """Per-turn key/value bag passed by reference through every round.

    Caller-owned: ``session_id``, ``user_id``, ``chat_id`` and free ``fields``.
    Engine-owned: ``handoff_chain``, ``memory_addition``, ``writer``,
    ``tool_usage`` and ``run_context``.
    """

    session_id: Optional[str] = None
    user_id: Optional[str] = None
    chat_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    handoff_chain: List[str] = field(default_factory=list)
    memory_addition: Optional[str] = None
    writer: Optional["StreamWriter"] = field(default=None, repr=False)
    tool_usage: Dict[str, int] = field(default_factory=dict)
    run_context: AgentRunContext = field(init=False, repr=False)

    def __post_init__(self):
        self.run_context = AgentRunContext(context=self)

    def begin_turn(self) -> None:
        """Reset engine-owned state so a reused context starts a clean turn."""
        self.handoff_chain = []
        self.memory_addition = None
        self.tool_usage = {}
        self.run_context.current_agent = None
        self.run_context.round = 0

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "ExecutionContext":
        """Build a context from a plain dict, pulling out the well-known ids."""
        data = dict(data or {})
        data.update(kwargs)
        return cls(
            session_id=data.pop("session_id", None),
            user_id=data.pop("user_id", None),
            chat_id=data.pop("chat_id", None),
            fields=data,
        )

    def get(self, key: str, default: Any = None) -> Any:
        if key in ("session_id", "user_id", "chat_id"):
            value = getattr(self, key)
            return default if value is None else value
        return self.fields.get(key, default)

    def __getitem__(self, key: str) -> Any:
        if key in ("session_id", "user_id", "chat_id"):
            return getattr(self, key)
        return self.fields[key]

    def set(self, key: str, value: Any) -> None:
        if key in ("session_id", "user_id", "chat_id"):
            setattr(self, key, value)
        else:
            self.fields[key] = value

    @property
    def memory_chat_id(self) -> Optional[str]:
        return self.chat_id or self.fields.get("chatId") or self.session_id

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict view used for usage events."""
        data = dict(self.fields)
        for key in ("session_id", "user_id", "chat_id"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.handoff_chain:
            data["handoff_chain"] = list(self.handoff_chain)
        return data


@dataclass
class HandoffInputData:
    """Input of a per-edge handoff filter.

    Attributes:
        input_history: Conversation so far, the filter returns a replacement
        pre_handoff_items: Messages produced before the handing-off round
        new_items: Tool results produced by the handing-off round
        run_context: The running turn
    """

    input_history: List[BaseMessage]
    pre_handoff_items: List[BaseMessage] = field(default_factory=list)
    new_items: List[Dict[str, Any]] = field(default_factory=list)
    run_context: Optional[AgentRunContext] = None
