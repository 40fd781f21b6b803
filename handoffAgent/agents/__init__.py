"""Agent definitions, registry and handoff tool."""

from .context import AgentRunContext, ExecutionContext, HandoffInputData
from .handoff_tools import HANDOFF_TOOL_NAME, create_handoff_tool, handoff_prompt, is_handoff_result
from .registry import AgentRegistry
from .schema import Agent, Derived, Handoff, Static, handoff

__all__ = [
    "Agent",
    "AgentRegistry",
    "AgentRunContext",
    "Derived",
    "ExecutionContext",
    "HANDOFF_TOOL_NAME",
    "Handoff",
    "HandoffInputData",
    "Static",
    "create_handoff_tool",
    "handoff",
    "handoff_prompt",
    "is_handoff_result",
]
