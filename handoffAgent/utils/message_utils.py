"""Utilities for selecting and cleaning conversation windows."""

from __future__ import annotations

from typing import List, Optional, Set

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage


def message_text(message: BaseMessage) -> str:
    """Plain text of a message (joins text blocks of list contents)."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def clean_message_history(messages: List[BaseMessage]) -> List[BaseMessage]:
    """Remove AI messages with unanswered tool_calls and ToolMessages without a caller.

    Providers require every AI message with tool_calls to be followed by the
    matching ToolMessages, and every ToolMessage to answer a visible call.

    Args:
        messages: List of conversation messages

    Returns:
        Cleaned list
    """
    answered_call_ids: Set[str] = set()
    for msg in messages:
        if isinstance(msg, ToolMessage) and msg.tool_call_id:
            answered_call_ids.add(msg.tool_call_id)

    cleaned: List[BaseMessage] = []
    visible_call_ids: Set[str] = set()
    for msg in messages:
        if isinstance(msg, AIMessage) and msg.tool_calls:
            call_ids = [tc.get("id") for tc in msg.tool_calls]
            if any(tc_id and tc_id not in answered_call_ids for tc_id in call_ids):
                continue
            visible_call_ids.update(tc_id for tc_id in call_ids if tc_id)
        elif isinstance(msg, ToolMessage) and msg.tool_call_id not in visible_call_ids:
            continue
        cleaned.append(msg)

    return cleaned


def last_user_message(messages: List[BaseMessage]) -> Optional[HumanMessage]:
    for msg in reversed(messages):
        if isinstance(msg, HumanMessage):
            return msg
    return None


def select_window(messages: List[BaseMessage], size: int) -> List[BaseMessage]:
    """Take the last ``size`` messages as an agent's context window.

    The window never starts with an orphaned ToolMessage and never carries
    unanswered tool calls. When nothing is left, the latest user message is
    used on its own.
    """
    window = list(messages[-size:]) if size > 0 else []
    while window and isinstance(window[0], ToolMessage):
        window.pop(0)
    window = clean_message_history(window)

    if not window:
        user_msg = last_user_message(messages)
        if user_msg is not None:
            window = [user_msg]
    return window
