"""Agent definition - immutable description of one cooperating agent.

An Agent bundles a system prompt, a model, a tool set and the names of the
agents it may hand off to. Agents are shared by reference across turns and
never mutated during a turn; everything turn-scoped lives in
``ExecutionContext``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Pattern,
    Sequence,
    Tuple,
    Union,
)

from langchain_core.tools import BaseTool

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from ..guardrails.guardrails import InputGuardrail, OutputGuardrail
    from ..guardrails.permissions import ToolPermissions
    from ..memory.config import MemoryConfig
    from .context import AgentRunContext, ExecutionContext, HandoffInputData


# ========== Static | Derived ==========

@dataclass(frozen=True)
class Static:
    """A value fixed at definition time."""

    value: Any

    def resolve(self, context: Optional["ExecutionContext"]) -> Any:
        return self.value


@dataclass(frozen=True)
class Derived:
    """A value computed from the execution context once per round."""

    fn: Callable[["ExecutionContext"], Any]

    def resolve(self, context: Optional["ExecutionContext"]) -> Any:
        return self.fn(context)


Resolvable = Union[Static, Derived]


def as_resolvable(value: Any) -> Resolvable:
    if isinstance(value, (Static, Derived)):
        return value
    if callable(value) and not isinstance(value, (BaseTool, Mapping)):
        return Derived(value)
    return Static(value)


def normalize_tools(tools: Any) -> Dict[str, BaseTool]:
    """Accept a mapping or an iterable of tools and return ``{name: tool}``."""
    if not tools:
        return {}
    if isinstance(tools, Mapping):
        return dict(tools)
    return {t.name: t for t in tools}


# ========== Handoff edges ==========

InputFilter = Callable[["HandoffInputData"], "HandoffInputData"]
OnHandoff = Callable[["AgentRunContext"], Any]


@dataclass(frozen=True)
class Handoff:
    """Edge to another agent, referenced by name.

    Attributes:
        target: Name of the target agent
        input_filter: Rewrites the conversation handed to the target
        on_handoff: Callback run when control transfers along this edge
    """

    target: str
    input_filter: Optional[InputFilter] = None
    on_handoff: Optional[OnHandoff] = None


def handoff(agent: Union["Agent", str], input_filter: InputFilter = None, on_handoff: OnHandoff = None) -> Handoff:
    """Build a configured handoff edge.

    >>> triage = Agent(name="triage", handoffs=[handoff(invoices, on_handoff=audit)])
    """
    target = agent if isinstance(agent, str) else agent.name
    edge = Handoff(target=target, input_filter=input_filter, on_handoff=on_handoff)
    if not isinstance(agent, str):
        object.__setattr__(edge, "_agent", agent)
    return edge


MatchPattern = Union[str, Pattern[str]]
MatchOn = Union[Callable[[str], bool], Sequence[MatchPattern]]


# ========== Agent ==========

@dataclass(frozen=True)
class Agent:
    """One agent of a workflow.

    Attributes:
        name: Unique name within a workflow
        instructions: System prompt, a string or ``context -> str``
        tools: Tool mapping (or list), or ``context -> mapping``
        model: LangChain chat model or model id; ``None`` uses the configured default
        handoffs: Agents (objects, names or ``Handoff`` edges) this agent may delegate to
        handoff_description: One-line description shown to agents handing off to this one
        max_turns: Maximum model steps per round
        match_on: Routing rule, a predicate over input text or a list of string/regex patterns
        last_messages: Conversation window size for this agent
        memory: History and working memory configuration
        input_guardrails: Checks run on user input before dispatch
        output_guardrails: Checks run on committed output
        permissions: Tool permission rules
        temperature: Sampling temperature
        model_settings: Extra kwargs bound to the chat model
    """

    name: str
    instructions: Any = ""
    tools: Any = field(default_factory=dict)
    model: Union["BaseChatModel", str, None] = None
    handoffs: Tuple[Handoff, ...] = ()
    handoff_description: Optional[str] = None
    max_turns: Optional[int] = None
    match_on: Optional[MatchOn] = None
    last_messages: Optional[int] = None
    memory: Optional["MemoryConfig"] = None
    input_guardrails: Tuple["InputGuardrail", ...] = ()
    output_guardrails: Tuple["OutputGuardrail", ...] = ()
    permissions: Optional["ToolPermissions"] = None
    temperature: Optional[float] = None
    model_settings: Dict[str, Any] = field(default_factory=dict)
    linked_agents: Tuple["Agent", ...] = field(default=(), repr=False, compare=False)

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise ValueError("Agent name must be a non-empty string")

        object.__setattr__(self, "instructions", as_resolvable(self.instructions))

        tools = self.tools
        if isinstance(tools, (Static, Derived)):
            resolved_tools = tools
        elif callable(tools) and not isinstance(tools, (BaseTool, Mapping)):
            resolved_tools = Derived(tools)
        else:
            resolved_tools = Static(normalize_tools(tools))
        object.__setattr__(self, "tools", resolved_tools)

        edges: List[Handoff] = []
        linked: List[Agent] = list(self.linked_agents)
        for item in self.handoffs or ():
            if isinstance(item, Handoff):
                edges.append(item)
                agent_obj = getattr(item, "_agent", None)
                if agent_obj is not None:
                    linked.append(agent_obj)
            elif isinstance(item, Agent):
                edges.append(Handoff(target=item.name))
                linked.append(item)
            elif isinstance(item, str):
                edges.append(Handoff(target=item))
            else:
                raise TypeError(f"Unsupported handoff entry for agent {self.name}: {item!r}")
        object.__setattr__(self, "handoffs", tuple(edges))
        object.__setattr__(self, "linked_agents", tuple(linked))

        if isinstance(self.match_on, (str, re.Pattern)):
            object.__setattr__(self, "match_on", (self.match_on,))
        elif self.match_on is not None and not callable(self.match_on):
            object.__setattr__(self, "match_on", tuple(self.match_on))

        object.__setattr__(self, "input_guardrails", tuple(self.input_guardrails or ()))
        object.__setattr__(self, "output_guardrails", tuple(self.output_guardrails or ()))

        if self.max_turns is not None and self.max_turns < 1:
            raise ValueError("max_turns must be >= 1")
        if self.last_messages is not None and self.last_messages < 1:
            raise ValueError("last_messages must be >= 1")

    # ========== Resolution ==========

    @property
    def has_static_instructions(self) -> bool:
        return isinstance(self.instructions, Static)

    def resolve_instructions(self, context: Optional["ExecutionContext"] = None) -> str:
        value = self.instructions.resolve(context)
        return "" if value is None else str(value)

    def resolve_tools(self, context: Optional["ExecutionContext"] = None) -> Dict[str, BaseTool]:
        return normalize_tools(self.tools.resolve(context))

    # ========== Handoff edges ==========

    @property
    def handoff_names(self) -> List[str]:
        return [edge.target for edge in self.handoffs]

    @property
    def has_handoffs(self) -> bool:
        return bool(self.handoffs)

    def get_handoff(self, target: str) -> Optional[Handoff]:
        for edge in self.handoffs:
            if edge.target == target:
                return edge
        return None

    def clone(self, **changes: Any) -> "Agent":
        """Return a copy with selected fields replaced."""
        values = {
            "name": self.name,
            "instructions": self.instructions,
            "tools": self.tools,
            "model": self.model,
            "handoffs": self.handoffs,
            "handoff_description": self.handoff_description,
            "max_turns": self.max_turns,
            "match_on": self.match_on,
            "last_messages": self.last_messages,
            "memory": self.memory,
            "input_guardrails": self.input_guardrails,
            "output_guardrails": self.output_guardrails,
            "permissions": self.permissions,
            "temperature": self.temperature,
            "model_settings": self.model_settings,
            "linked_agents": self.linked_agents,
        }
        values.update(changes)
        return Agent(**values)

    def __hash__(self) -> int:
        return hash(self.name)

