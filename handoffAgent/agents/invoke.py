"""Per-invocation agent execution: prompt and tool assembly, generate and stream.

``invoke_agent`` / ``stream_agent`` run a single agent outside a workflow
(no routing, no handoff following). The workflow uses ``build_request`` to
prepare every round the same way.
"""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple, Union

from langchain_core.messages import BaseMessage, HumanMessage
from langchain_core.tools import BaseTool

from ..config.settings import Settings, get_settings
from ..memory.working_memory import (
    WORKING_MEMORY_TOOL_NAME,
    create_working_memory_tool,
    working_memory_instructions,
)
from ..runtime.interfaces import FinishEvent, GenerationResult, ModelRequest, ModelRunner, StepEvent
from ..usage.tracking import (
    TrackerLike,
    build_usage_event,
    compose_on_finish,
    resolve_tracker,
    schedule_usage_tracking,
)
from ..utils.logging_utils import log_prompt
from .context import ExecutionContext
from .handoff_tools import HANDOFF_TOOL_NAME, create_handoff_tool, handoff_prompt
from .registry import AgentRegistry
from .schema import Agent

LOGGER = logging.getLogger(__name__)

ContextLike = Union[ExecutionContext, Dict[str, Any], None]


def as_execution_context(context: ContextLike) -> ExecutionContext:
    if isinstance(context, ExecutionContext):
        return context
    return ExecutionContext.from_mapping(context)


# ========== System prompt ==========

@lru_cache(maxsize=256)
def _static_prompt(
    instructions: str,
    targets: Tuple[Tuple[str, Optional[str]], ...],
    working_memory_template: Optional[str],
    working_memory_enabled: bool,
) -> str:
    base = handoff_prompt(instructions, [_TargetView(n, d) for n, d in targets]) if targets else instructions
    if working_memory_enabled:
        base = f"{base}\n\n{working_memory_instructions(working_memory_template)}"
    return base


class _TargetView:
    """Name/description pair standing in for an Agent in the prompt catalog."""

    def __init__(self, name: str, handoff_description: Optional[str]):
        self.name = name
        self.handoff_description = handoff_description


def build_system_prompt(agent: Agent, targets: Sequence[Agent], context: Optional[ExecutionContext] = None) -> str:
    """Compose handoff instructions, agent instructions, working memory instructions and memory addition.

    The static part is cached when the agent's instructions are static and no
    memory addition is pending.
    """
    instructions = agent.resolve_instructions(context)
    memory_addition = (context.memory_addition if context is not None else None) or ""
    wm = agent.memory.working_memory if agent.memory is not None else None
    target_key = tuple((t.name, t.handoff_description) for t in targets)
    wm_enabled = bool(wm and wm.enabled)
    wm_template = wm.template if wm is not None else None

    if agent.has_static_instructions and not memory_addition:
        return _static_prompt(instructions, target_key, wm_template, wm_enabled)

    base = _static_prompt.__wrapped__(instructions, target_key, wm_template, wm_enabled)
    return base + memory_addition


# ========== Tools ==========

def build_tools(
    agent: Agent,
    targets: Sequence[Agent],
    context: Optional[ExecutionContext] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, BaseTool]:
    """Resolve the agent's tools and add the handoff and working memory tools."""
    tools = agent.resolve_tools(context)
    if targets:
        tools[HANDOFF_TOOL_NAME] = create_handoff_tool(targets)

    memory = agent.memory
    if memory is not None and memory.working_memory.enabled and context is not None:
        has_other_tools = any(name != HANDOFF_TOOL_NAME for name in tools)
        is_pure_orchestrator = bool(targets) and not has_other_tools
        if not is_pure_orchestrator:
            settings = settings or get_settings()
            scope = memory.working_memory.scope or settings.memory.working_memory_scope
            tools[WORKING_MEMORY_TOOL_NAME] = create_working_memory_tool(memory, context, scope)
    return tools


def build_request(
    agent: Agent,
    messages: List[BaseMessage],
    context: Optional[ExecutionContext],
    registry: AgentRegistry,
    settings: Optional[Settings] = None,
    max_steps: Optional[int] = None,
    on_step_finish: Optional[Callable[[StepEvent], Any]] = None,
) -> ModelRequest:
    settings = settings or get_settings()
    targets = registry.handoff_targets(agent)
    system_prompt = build_system_prompt(agent, targets, context)
    log_prompt(LOGGER, agent.name, system_prompt, settings.observability.log_preview_length)

    return ModelRequest(
        agent_name=agent.name,
        system_prompt=system_prompt,
        messages=list(messages),
        tools=build_tools(agent, targets, context, settings),
        model=agent.model,
        max_steps=max_steps or agent.max_turns or settings.orchestration.max_steps,
        temperature=agent.temperature,
        model_settings=dict(agent.model_settings),
        context=context,
        permissions=agent.permissions,
        on_step_finish=on_step_finish,
    )


def _initial_messages(prompt: Optional[str], messages: Optional[List[BaseMessage]]) -> List[BaseMessage]:
    if prompt is None and not messages:
        raise ValueError("Either prompt or messages is required")
    result = list(messages or [])
    if prompt is not None:
        result.append(HumanMessage(content=prompt))
    return result


def _default_runner() -> ModelRunner:
    from ..runtime.runner import LangChainModelRunner
    return LangChainModelRunner()


# ========== Standalone calls ==========

async def invoke_agent(
    agent: Agent,
    prompt: Optional[str] = None,
    messages: Optional[List[BaseMessage]] = None,
    context: ContextLike = None,
    runner: Optional[ModelRunner] = None,
    registry: Optional[AgentRegistry] = None,
    tracker: Optional[TrackerLike] = None,
    max_steps: Optional[int] = None,
) -> GenerationResult:
    """Run one agent to completion and return its result.

    The usage event carries ``duration`` in milliseconds and is delivered in
    the background so tracking never delays the caller.
    """
    exec_context = as_execution_context(context)
    registry = registry or AgentRegistry([agent])
    runner = runner or _default_runner()
    request = build_request(agent, _initial_messages(prompt, messages), exec_context, registry, max_steps=max_steps)

    started = time.perf_counter()
    result = await runner.generate(request)
    duration = (time.perf_counter() - started) * 1000

    config = resolve_tracker(tracker)
    if config is not None:
        event = build_usage_event(
            agent.name,
            "generate",
            exec_context,
            usage=result.usage,
            provider_metadata=result.provider_metadata,
            finish_reason=result.finish_reason,
            duration=duration,
        )
        schedule_usage_tracking(event, config)
    return result


def stream_request(
    agent: Agent,
    request: ModelRequest,
    runner: ModelRunner,
    context: Optional[ExecutionContext],
    on_finish: Optional[Callable[[FinishEvent], Any]] = None,
    tracker: Optional[TrackerLike] = None,
) -> AsyncIterator[Dict[str, Any]]:
    """Start streaming a prepared request with usage tracking composed into ``on_finish``."""

    def build_event(event: FinishEvent):
        return build_usage_event(
            agent.name,
            "stream",
            context,
            usage=event.usage,
            provider_metadata=event.provider_metadata,
            finish_reason=event.finish_reason,
        )

    composed = compose_on_finish(on_finish, build_event, resolve_tracker(tracker))
    return runner.stream(request, composed)


def stream_agent(
    agent: Agent,
    prompt: Optional[str] = None,
    messages: Optional[List[BaseMessage]] = None,
    context: ContextLike = None,
    runner: Optional[ModelRunner] = None,
    registry: Optional[AgentRegistry] = None,
    on_finish: Optional[Callable[[FinishEvent], Any]] = None,
    tracker: Optional[TrackerLike] = None,
    max_steps: Optional[int] = None,
) -> AsyncIterator[Dict[str, Any]]:
    """Stream one agent's chunks.

    ``on_finish`` and the usage tracker run concurrently once the stream
    ends; a tracker failure never reaches the caller.
    """
    exec_context = as_execution_context(context)
    registry = registry or AgentRegistry([agent])
    runner = runner or _default_runner()
    request = build_request(agent, _initial_messages(prompt, messages), exec_context, registry, max_steps=max_steps)
    return stream_request(agent, request, runner, exec_context, on_finish=on_finish, tracker=tracker)
