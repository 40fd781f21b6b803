"""Utilities for handoffAgent."""

from .errors import (
    AgentsError,
    GuardrailExecutionError,
    InputGuardrailTripwireTriggered,
    MaxTurnsExceededError,
    ModelInvocationError,
    OutputGuardrailTripwireTriggered,
    SinkClosedError,
    ToolCallError,
    ToolPermissionDeniedError,
    handle_model_error,
    user_facing_message,
)
from .logging_utils import (
    log_agent_response,
    log_error,
    log_handoff,
    log_routing_decision,
    log_tool_call,
    log_tool_result,
    log_user_message,
    setup_logging,
)
from .message_utils import clean_message_history, last_user_message, message_text, select_window
from .tracing import configure_observability, configure_tracing

__all__ = [
    "AgentsError",
    "GuardrailExecutionError",
    "InputGuardrailTripwireTriggered",
    "MaxTurnsExceededError",
    "ModelInvocationError",
    "OutputGuardrailTripwireTriggered",
    "SinkClosedError",
    "ToolCallError",
    "ToolPermissionDeniedError",
    "clean_message_history",
    "configure_observability",
    "configure_tracing",
    "handle_model_error",
    "last_user_message",
    "log_agent_response",
    "log_error",
    "log_handoff",
    "log_routing_decision",
    "log_tool_call",
    "log_tool_result",
    "log_user_message",
    "message_text",
    "select_window",
    "setup_logging",
    "user_facing_message",
]
