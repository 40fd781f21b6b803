"""LangChain-backed model runner.

Runs the usual tool loop on top of any LangChain chat model: call the model
with bound tools, execute requested tools (after permission checks), feed
``ToolMessage`` results back, and repeat until the model answers without
tools or ``max_steps`` is reached. A handoff tool result ends the loop
immediately since control is moving to another agent.
"""

from __future__ import annotations

import inspect
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    BaseMessage,
    SystemMessage,
    ToolMessage,
    message_chunk_to_message,
)

from ..agents.handoff_tools import is_handoff_result
from ..guardrails.permissions import ToolUsageTracker
from ..streaming import chunks
from ..utils.errors import MaxTurnsExceededError, ModelInvocationError, ToolPermissionDeniedError
from ..utils.logging_utils import log_tool_call, log_tool_result
from .interfaces import FinishEvent, GenerationResult, ModelRequest, OnFinish, StepEvent, merge_usage
from .model_resolver import ModelResolver, resolve_model

LOGGER = logging.getLogger(__name__)


def content_text(content: Any) -> str:
    """Plain text of a message content (string or list of content blocks)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


def _tool_content(output: Any) -> str:
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(output)


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


@dataclass
class ToolOutcome:
    tool_call_id: str
    tool_name: str
    output: Any
    message: ToolMessage
    error: Optional[str] = None

    def as_result(self) -> Dict[str, Any]:
        return {
            "tool_call_id": self.tool_call_id,
            "tool_name": self.tool_name,
            "output": self.output,
            "error": self.error,
        }


class LangChainModelRunner:
    """``ModelRunner`` implementation over LangChain chat models.

    Args:
        resolver: Turns model ids into chat models (defaults to settings-based ChatOpenAI)
        raise_on_max_steps: Raise ``MaxTurnsExceededError`` instead of stopping quietly
            when the model still requests tools after ``max_steps``
    """

    def __init__(self, resolver: Optional[ModelResolver] = None, raise_on_max_steps: bool = False):
        self.resolver = resolver
        self.raise_on_max_steps = raise_on_max_steps

    # ========== Model binding ==========

    def _bind(self, request: ModelRequest):
        model = resolve_model(request.model, self.resolver)
        runnable = model.bind_tools(list(request.tools.values())) if request.tools else model
        bind_kwargs = dict(request.model_settings)
        if request.temperature is not None:
            bind_kwargs["temperature"] = request.temperature
        if bind_kwargs:
            runnable = runnable.bind(**bind_kwargs)
        return runnable

    @staticmethod
    def _conversation(request: ModelRequest) -> List[BaseMessage]:
        messages: List[BaseMessage] = []
        if request.system_prompt:
            messages.append(SystemMessage(content=request.system_prompt))
        messages.extend(request.messages)
        return messages

    # ========== Tool execution ==========

    async def _execute_tool(self, request: ModelRequest, call: Dict[str, Any]) -> ToolOutcome:
        name = call.get("name") or ""
        args = call.get("args") or {}
        call_id = call.get("id") or f"call_{uuid.uuid4().hex[:12]}"

        def failed(error_text: str) -> ToolOutcome:
            log_tool_result(LOGGER, name, error_text, success=False)
            return ToolOutcome(
                tool_call_id=call_id,
                tool_name=name,
                output=None,
                message=ToolMessage(content=f"Error: {error_text}", tool_call_id=call_id, name=name, status="error"),
                error=error_text,
            )

        tool = request.tools.get(name)
        if tool is None:
            return failed(f"Unknown tool: {name}")

        usage = ToolUsageTracker(request.context.tool_usage if request.context is not None else None)
        if request.permissions is not None:
            decision = request.permissions.check(name, args, usage.counts)
            if not decision.allowed:
                LOGGER.warning(f"[{request.agent_name}] tool {name} denied: {decision.reason}")
                if request.permissions.raise_on_denied:
                    raise ToolPermissionDeniedError(name, decision.reason)
                return failed(f"Permission denied: {decision.reason}")

        usage.record(name)
        log_tool_call(LOGGER, name, args)
        try:
            output = await tool.ainvoke(args)
        except Exception as e:  # reported back to the model as an error tool message
            return failed(f"{type(e).__name__}: {e}")

        log_tool_result(LOGGER, name, output)
        return ToolOutcome(
            tool_call_id=call_id,
            tool_name=name,
            output=output,
            message=ToolMessage(content=_tool_content(output), tool_call_id=call_id, name=name),
        )

    def _max_steps_reached(self, request: ModelRequest) -> None:
        LOGGER.warning(f"[{request.agent_name}] stopped after {request.max_steps} steps with pending tool calls")
        if self.raise_on_max_steps:
            raise MaxTurnsExceededError(request.agent_name, request.max_steps)

    # ========== generate ==========

    async def generate(self, request: ModelRequest) -> GenerationResult:
        bound = self._bind(request)
        conversation = self._conversation(request)
        start_index = len(conversation)
        result = GenerationResult()

        for step_no in range(1, request.max_steps + 1):
            try:
                response = await bound.ainvoke(conversation)
            except Exception as e:
                raise ModelInvocationError(request.agent_name, e) from e

            conversation.append(response)
            step_usage = dict(response.usage_metadata) if getattr(response, "usage_metadata", None) else None
            result.usage = merge_usage(result.usage, step_usage)
            result.provider_metadata = dict(response.response_metadata or {})
            result.finish_reason = result.provider_metadata.get("finish_reason")
            result.text = content_text(response.content)

            step = StepEvent(step=step_no, text=result.text, tool_calls=list(response.tool_calls), usage=step_usage,
                             finish_reason=result.finish_reason)
            result.tool_calls.extend(response.tool_calls)

            handed_off = False
            for call in response.tool_calls:
                outcome = await self._execute_tool(request, call)
                conversation.append(outcome.message)
                step.tool_results.append(outcome.as_result())
                result.tool_results.append(outcome.as_result())
                handed_off = handed_off or is_handoff_result(outcome.output)

            result.steps.append(step)
            if request.on_step_finish is not None:
                await _maybe_await(request.on_step_finish(step))

            if not response.tool_calls or handed_off:
                break
        else:
            self._max_steps_reached(request)

        result.messages = conversation[start_index:]
        return result

    # ========== stream ==========

    async def stream(self, request: ModelRequest, on_finish: Optional[OnFinish] = None) -> AsyncIterator[Dict[str, Any]]:
        bound = self._bind(request)
        conversation = self._conversation(request)
        finish = FinishEvent()
        texts: List[str] = []

        for step_no in range(1, request.max_steps + 1):
            aggregate: Optional[AIMessageChunk] = None
            ids_by_index: Dict[Any, str] = {}
            started: set = set()

            try:
                async for piece in bound.astream(conversation):
                    aggregate = piece if aggregate is None else aggregate + piece

                    text = content_text(piece.content)
                    if text:
                        texts.append(text)
                        yield chunks.text_delta(text)

                    for tc in getattr(piece, "tool_call_chunks", None) or []:
                        index = tc.get("index")
                        if tc.get("id"):
                            ids_by_index[index] = tc["id"]
                        call_id = ids_by_index.get(index)
                        if call_id is None:
                            continue
                        if call_id not in started and tc.get("name"):
                            started.add(call_id)
                            yield chunks.tool_input_start(call_id, tc["name"])
                        if tc.get("args") and call_id in started:
                            yield chunks.tool_input_delta(call_id, tc["args"])
            except Exception as e:
                raise ModelInvocationError(request.agent_name, e) from e

            response: AIMessage = message_chunk_to_message(aggregate) if aggregate is not None else AIMessage(content="")
            conversation.append(response)

            step_usage = dict(response.usage_metadata) if getattr(response, "usage_metadata", None) else None
            finish.usage = merge_usage(finish.usage, step_usage)
            finish.provider_metadata = dict(response.response_metadata or {})
            finish.finish_reason = finish.provider_metadata.get("finish_reason")

            step = StepEvent(step=step_no, text=content_text(response.content), tool_calls=list(response.tool_calls),
                             usage=step_usage, finish_reason=finish.finish_reason)

            handed_off = False
            for call in response.tool_calls:
                call_id = call.get("id") or f"call_{uuid.uuid4().hex[:12]}"
                call = {**call, "id": call_id}
                if call_id not in started:
                    started.add(call_id)
                    yield chunks.tool_input_start(call_id, call["name"])
                yield chunks.tool_input_available(call_id, call["name"], call.get("args") or {})

                outcome = await self._execute_tool(request, call)
                conversation.append(outcome.message)
                step.tool_results.append(outcome.as_result())
                if outcome.error is not None:
                    yield chunks.tool_output_error(call_id, outcome.error)
                else:
                    yield chunks.tool_output_available(call_id, outcome.output)
                    handed_off = handed_off or is_handoff_result(outcome.output)

            finish.steps.append(step)
            if request.on_step_finish is not None:
                await _maybe_await(request.on_step_finish(step))

            if not response.tool_calls or handed_off:
                break
        else:
            self._max_steps_reached(request)

        finish.text = "".join(texts)
        if on_finish is not None:
            await _maybe_await(on_finish(finish))
