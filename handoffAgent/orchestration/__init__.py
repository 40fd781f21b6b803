"""Orchestration loop: routing, rounds, stream multiplexing and handoff transfer."""

from .builder import build_orchestration_graph, check_handoff
from .events import AgentEvent, emit_event
from .multiplexer import DrainResult, drain_stream
from .state import OrchestrationState
from .transfer import default_input_filter, transfer_handoff
from .workflow import TurnResult, Workflow

__all__ = [
    "AgentEvent",
    "DrainResult",
    "OrchestrationState",
    "TurnResult",
    "Workflow",
    "build_orchestration_graph",
    "check_handoff",
    "default_input_filter",
    "drain_stream",
    "emit_event",
    "transfer_handoff",
]
