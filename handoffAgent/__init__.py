"""Top-level package exports for handoffAgent."""

from .agents import Agent, AgentRegistry, ExecutionContext, HandoffInputData, handoff
from .agents.invoke import invoke_agent, stream_agent
from .guardrails import GuardrailResult, InputGuardrail, OutputGuardrail, ToolPermissions
from .memory import HistoryConfig, InMemoryProvider, MemoryConfig, SQLiteMemoryProvider, WorkingMemoryConfig
from .orchestration import AgentEvent, TurnResult, Workflow
from .runtime import LangChainModelRunner
from .streaming import StreamWriter
from .usage import UsageTrackingConfig, UsageTrackingEvent, configure_usage_tracking, reset_usage_tracking

__all__ = [
    "Agent",
    "AgentEvent",
    "AgentRegistry",
    "ExecutionContext",
    "GuardrailResult",
    "HandoffInputData",
    "HistoryConfig",
    "InMemoryProvider",
    "InputGuardrail",
    "LangChainModelRunner",
    "MemoryConfig",
    "OutputGuardrail",
    "SQLiteMemoryProvider",
    "StreamWriter",
    "ToolPermissions",
    "TurnResult",
    "UsageTrackingConfig",
    "UsageTrackingEvent",
    "WorkingMemoryConfig",
    "Workflow",
    "configure_usage_tracking",
    "handoff",
    "invoke_agent",
    "reset_usage_tracking",
    "stream_agent",
]
