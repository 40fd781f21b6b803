"""Guardrails and tool permissions."""

from .guardrails import (
    GuardrailResult,
    InputGuardrail,
    OutputGuardrail,
    run_input_guardrails,
    run_output_guardrails,
)
from .permissions import PermissionDecision, ToolPermissions, ToolUsageTracker

__all__ = [
    "GuardrailResult",
    "InputGuardrail",
    "OutputGuardrail",
    "PermissionDecision",
    "ToolPermissions",
    "ToolUsageTracker",
    "run_input_guardrails",
    "run_output_guardrails",
]
