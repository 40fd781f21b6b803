"""Handoff tool and handoff prompt for agent-to-agent delegation.

Every agent with handoff targets gets one reserved tool, ``handoff_to_agent``.
The tool does not switch agents itself: it returns a handoff instruction
(``{"type": "handoff", "target_agent", "reason", "context"}``) which the
stream multiplexer captures and the orchestration loop acts on after the
round ends.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field

from .schema import Agent

LOGGER = logging.getLogger(__name__)

HANDOFF_TOOL_NAME = "handoff_to_agent"

HANDOFF_PROMPT_PREFIX = """# System context
You are part of a multi-agent system designed to make agent coordination and execution easy. \
Agents can hand off a conversation to another agent. Handoffs are achieved by calling the \
handoff tool, `handoff_to_agent`. Transfers between agents are handled seamlessly in the \
background; do not mention or draw attention to these transfers in your conversation with the user.

When the request belongs to another agent, call `handoff_to_agent` immediately and do not \
answer the request yourself. Explain the handoff reason briefly and pass any facts the target \
agent needs in `context`."""


class HandoffArgs(BaseModel):
    """Arguments of the handoff tool."""

    target_agent: str = Field(description="Name of the agent to transfer the conversation to")
    reason: str = Field(default="", description="Why this agent is the right one for the request")
    context: Optional[str] = Field(
        default=None,
        description="Facts from the conversation the target agent needs to continue",
    )


def _describe_targets(targets: Sequence[Agent]) -> str:
    lines = []
    for target in targets:
        description = target.handoff_description or f"{target.name} agent"
        lines.append(f"- {target.name}: {description}")
    return "\n".join(lines)


def create_handoff_tool(targets: Sequence[Agent]) -> BaseTool:
    """Create the ``handoff_to_agent`` tool for the given targets.

    Args:
        targets: Agents the calling agent may delegate to

    Returns:
        BaseTool: handoff tool whose result is a handoff instruction dict
    """
    target_names = [t.name for t in targets]
    description = (
        "Transfer the conversation to a specialist agent.\n\n"
        f"Available agents:\n{_describe_targets(targets)}\n\n"
        "Use the exact agent name as target_agent."
    )

    def handoff_to_agent(target_agent: str, reason: str = "", context: Optional[str] = None) -> Dict[str, Any]:
        if target_agent not in target_names:
            LOGGER.warning(f"Handoff to agent outside catalog: {target_agent} (known: {target_names})")
        else:
            LOGGER.info(f"Handoff requested → {target_agent}")
        result: Dict[str, Any] = {"type": "handoff", "target_agent": target_agent, "reason": reason}
        if context:
            result["context"] = context
        return result

    return StructuredTool.from_function(
        func=handoff_to_agent,
        name=HANDOFF_TOOL_NAME,
        description=description,
        args_schema=HandoffArgs,
    )


def is_handoff_result(value: Any) -> bool:
    """Check whether a tool output is a handoff instruction."""
    return (
        isinstance(value, dict)
        and value.get("type") == "handoff"
        and isinstance(value.get("target_agent"), str)
        and bool(value.get("target_agent"))
    )


def handoff_prompt(instructions: str, targets: Sequence[Agent] = ()) -> str:
    """Prepend handoff instructions (and the target catalog) to an agent's prompt."""
    parts: List[str] = [HANDOFF_PROMPT_PREFIX]
    if targets:
        parts.append(f"## Agents you can hand off to\n{_describe_targets(targets)}")
    if instructions:
        parts.append(instructions)
    return "\n\n".join(parts)
