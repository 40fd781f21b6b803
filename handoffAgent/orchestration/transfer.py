"""Handoff transfer - rewrite the conversation for the next agent."""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from ..agents.context import AgentRunContext, HandoffInputData
from ..agents.handoff_tools import HANDOFF_TOOL_NAME
from ..agents.schema import Handoff
from ..utils.logging_utils import log_error
from ..utils.message_utils import message_text

LOGGER = logging.getLogger(__name__)

CONTEXT_NOTE_HEADER = "[Context from previous agent]"


def _format_tool_output(output: Any) -> str:
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(output)


def default_input_filter(
    data: HandoffInputData,
    handoff: Optional[Dict[str, Any]] = None,
    keep_recent: int = 6,
) -> HandoffInputData:
    """Keep a minimal context for the next agent.

    Recent non-tool messages ending with the latest user request are kept.
    Tool results of the handing-off round (except the handoff itself) and the
    handoff ``context`` are carried in a note placed before that request.
    """
    history: List[BaseMessage] = [
        m for m in data.input_history
        if not isinstance(m, ToolMessage)
        and not (isinstance(m, AIMessage) and m.tool_calls and not message_text(m))
    ]

    last_user_idx = None
    for idx in range(len(history) - 1, -1, -1):
        if isinstance(history[idx], HumanMessage):
            last_user_idx = idx
            break

    if last_user_idx is None:
        kept = history[-keep_recent:]
    else:
        kept = history[: last_user_idx + 1][-keep_recent:]

    notes = []
    tool_items = [item for item in data.new_items if item.get("tool_name") != HANDOFF_TOOL_NAME]
    if tool_items:
        lines = [f"- {item['tool_name']}: {_format_tool_output(item.get('output'))}" for item in tool_items]
        notes.append("Tool results:\n" + "\n".join(lines))
    if handoff and handoff.get("context"):
        notes.append(f"Handoff context: {handoff['context']}")

    if notes:
        note = AIMessage(content=f"{CONTEXT_NOTE_HEADER}\n" + "\n\n".join(notes))
        if kept and isinstance(kept[-1], HumanMessage):
            kept = kept[:-1] + [note, kept[-1]]
        else:
            kept = kept + [note]

    return HandoffInputData(
        input_history=kept,
        pre_handoff_items=data.pre_handoff_items,
        new_items=data.new_items,
        run_context=data.run_context,
    )


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


async def transfer_handoff(
    messages: List[BaseMessage],
    tool_results: Dict[str, Any],
    handoff: Dict[str, Any],
    from_agent: str,
    run_context: AgentRunContext,
    edge: Optional[Handoff] = None,
    keep_recent: int = 6,
) -> List[BaseMessage]:
    """Apply a handoff to the conversation in place.

    Args:
        messages: Conversation of the turn, replaced in place
        tool_results: Tool outputs of the handing-off round by tool name
        handoff: Handoff instruction
        from_agent: Agent handing off
        run_context: Running turn
        edge: Configured edge (input filter and on_handoff callback)
        keep_recent: Messages kept by the default filter

    Returns:
        The same ``messages`` list
    """
    data = HandoffInputData(
        input_history=list(messages),
        pre_handoff_items=list(messages),
        new_items=[{"tool_name": name, "output": output} for name, output in tool_results.items()],
        run_context=run_context,
    )

    if edge is not None and edge.input_filter is not None:
        try:
            filtered = await _maybe_await(edge.input_filter(data))
            messages[:] = list(filtered.input_history)
        except Exception as e:
            log_error(LOGGER, e, f"input filter {from_agent} → {handoff.get('target_agent')}, keeping history")
    else:
        messages[:] = default_input_filter(data, handoff, keep_recent).input_history

    chain = run_context.context.handoff_chain
    if not chain or chain[-1] != from_agent:
        chain.append(from_agent)

    if edge is not None and edge.on_handoff is not None:
        try:
            await _maybe_await(edge.on_handoff(run_context))
        except Exception as e:
            log_error(LOGGER, e, f"on_handoff {from_agent} → {handoff.get('target_agent')}")

    return messages
