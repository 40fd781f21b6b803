"""Error taxonomy for multi-agent turns."""

from __future__ import annotations

import logging
from typing import Any, Optional

LOGGER = logging.getLogger(__name__)


class AgentsError(Exception):
    """Base exception for handoffAgent errors."""

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


class GuardrailExecutionError(AgentsError):
    """A guardrail raised while being evaluated."""

    def __init__(self, guardrail_name: str, error: Exception):
        super().__init__(
            f"Guardrail '{guardrail_name}' failed: {error}",
            user_message="Content check could not be completed",
        )
        self.guardrail_name = guardrail_name
        self.error = error


class InputGuardrailTripwireTriggered(AgentsError):
    """User input was blocked before dispatch."""

    def __init__(self, guardrail_name: str, output_info: Any = None):
        super().__init__(
            f"Input blocked by guardrail '{guardrail_name}'",
            user_message="Your message was blocked by a content policy",
        )
        self.guardrail_name = guardrail_name
        self.output_info = output_info


class OutputGuardrailTripwireTriggered(AgentsError):
    """Agent output was blocked after generation."""

    def __init__(self, guardrail_name: str, agent_name: str = None, output_info: Any = None):
        super().__init__(
            f"Output of agent '{agent_name}' blocked by guardrail '{guardrail_name}'",
            user_message="The response was blocked by a content policy",
        )
        self.guardrail_name = guardrail_name
        self.agent_name = agent_name
        self.output_info = output_info


class ToolPermissionDeniedError(AgentsError):
    """A tool call was rejected by the agent's permissions."""

    def __init__(self, tool_name: str, reason: str):
        super().__init__(
            f"Permission denied for tool '{tool_name}': {reason}",
            user_message=f"Tool {tool_name} is not allowed: {reason}",
        )
        self.tool_name = tool_name
        self.reason = reason


class ToolCallError(AgentsError):
    """Error during tool execution."""

    def __init__(self, tool_name: str, error: Exception):
        super().__init__(f"Tool '{tool_name}' failed: {error}")
        self.tool_name = tool_name
        self.error = error


class ModelInvocationError(AgentsError):
    """Error raised by the model runner."""

    def __init__(self, agent_name: str, error: Exception):
        super().__init__(
            f"Agent {agent_name} failed: {error}",
            user_message=handle_model_error(error),
        )
        self.agent_name = agent_name
        self.error = error


class MaxTurnsExceededError(AgentsError):
    """An agent exceeded its model step budget."""

    def __init__(self, agent_name: str, max_turns: int):
        super().__init__(f"Agent {agent_name} exceeded {max_turns} steps")
        self.agent_name = agent_name
        self.max_turns = max_turns


class SinkClosedError(AgentsError):
    """Write attempted after the terminal marker."""
    pass


def handle_model_error(error: Exception) -> str:
    """Convert model invocation errors to user-friendly messages.

    Args:
        error: Exception raised during model invocation

    Returns:
        User-friendly error message
    """
    error_str = str(error).lower()

    if "rate_limit" in error_str or "429" in error_str:
        return "Too many requests, please try again shortly"

    if "timeout" in error_str:
        return "The model timed out, please retry"

    if "context_length" in error_str or "token" in error_str:
        return "Conversation is too long, please start a new chat"

    if "invalid_api_key" in error_str or "authentication" in error_str:
        return "Invalid API key, please contact the administrator"

    if "quota" in error_str or "insufficient" in error_str:
        return "Model quota exhausted, please contact the administrator"

    return f"Model service unavailable: {error}"


def user_facing_message(error: BaseException) -> str:
    """Return the text placed in the terminal error chunk for a failed turn."""
    user_message: Optional[str] = getattr(error, "user_message", None)
    if user_message:
        return user_message
    return handle_model_error(error) if isinstance(error, Exception) else str(error)
