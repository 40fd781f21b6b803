"""Tests for the LangChain-backed model runner using a scripted chat model."""

import json
from typing import Any, List

import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage, ToolMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from langchain_core.tools import tool
from pydantic import Field

from handoffAgent.agents.handoff_tools import HANDOFF_TOOL_NAME, create_handoff_tool
from handoffAgent.agents.schema import Agent
from handoffAgent.guardrails.permissions import ToolPermissions
from handoffAgent.runtime.interfaces import ModelRequest
from handoffAgent.runtime.runner import LangChainModelRunner, content_text
from handoffAgent.streaming import chunks
from handoffAgent.utils.errors import MaxTurnsExceededError, ModelInvocationError, ToolPermissionDeniedError

USAGE = {"input_tokens": 10, "output_tokens": 5, "total_tokens": 15}


class ScriptedChatModel(BaseChatModel):
    """Replays AI messages in order; the last one repeats."""

    responses: List[Any]
    seen: List[List[BaseMessage]] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def bind_tools(self, tools, **kwargs):
        return self

    def _next(self, messages):
        self.seen.append(list(messages))
        response = self.responses[min(len(self.seen), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        message = self._next(messages)
        return ChatResult(generations=[ChatGeneration(message=message)])

    def _stream(self, messages, stop=None, run_manager=None, **kwargs):
        message = self._next(messages)
        words = message.content.split(" ") if message.content else []
        for i, word in enumerate(words):
            yield ChatGenerationChunk(message=AIMessageChunk(content=word if i == 0 else f" {word}"))
        if message.tool_calls:
            yield ChatGenerationChunk(message=AIMessageChunk(
                content="",
                tool_call_chunks=[
                    {"name": call["name"], "args": json.dumps(call["args"]), "id": call["id"], "index": i}
                    for i, call in enumerate(message.tool_calls)
                ],
            ))
        yield ChatGenerationChunk(message=AIMessageChunk(
            content="",
            usage_metadata=message.usage_metadata,
            response_metadata={"finish_reason": "tool_calls" if message.tool_calls else "stop"},
        ))


def answer(text):
    return AIMessage(content=text, usage_metadata=dict(USAGE), response_metadata={"finish_reason": "stop"})


def call(name, args, call_id="call_1"):
    return AIMessage(
        content="",
        tool_calls=[{"name": name, "args": args, "id": call_id}],
        usage_metadata=dict(USAGE),
        response_metadata={"finish_reason": "tool_calls"},
    )


@tool
def get_invoice(invoice_id: str) -> dict:
    """Fetch one invoice."""
    return {"id": invoice_id, "status": "paid"}


@tool
def delete_invoice(invoice_id: str) -> str:
    """Delete an invoice."""
    return "deleted"


def request(model, tools=(), max_steps=4, **kwargs):
    return ModelRequest(
        agent_name="billing",
        system_prompt="You handle invoices.",
        messages=[],
        tools={t.name: t for t in tools},
        model=model,
        max_steps=max_steps,
        **kwargs,
    )


async def collect(runner, req):
    finished = []
    received = [chunk async for chunk in runner.stream(req, finished.append)]
    return received, finished


class TestStream:
    """Chunk protocol produced by the tool loop."""

    @pytest.mark.asyncio
    async def test_text_only(self):
        model = ScriptedChatModel(responses=[answer("Invoice is paid")])

        received, finished = await collect(LangChainModelRunner(), request(model))

        assert [c["delta"] for c in received] == ["Invoice", " is", " paid"]
        assert finished[0].text == "Invoice is paid"
        assert finished[0].usage["total_tokens"] == 15
        assert finished[0].finish_reason == "stop"
        assert model.seen[0][0].content == "You handle invoices."

    @pytest.mark.asyncio
    async def test_tool_loop(self):
        """Should run the tool, report it in chunks and call the model again."""
        model = ScriptedChatModel(responses=[call("get_invoice", {"invoice_id": "INV-1"}), answer("Paid")])
        steps = []

        received, finished = await collect(
            LangChainModelRunner(), request(model, [get_invoice], on_step_finish=steps.append)
        )

        assert [c["type"] for c in received] == [
            chunks.TOOL_INPUT_START,
            chunks.TOOL_INPUT_DELTA,
            chunks.TOOL_INPUT_AVAILABLE,
            chunks.TOOL_OUTPUT_AVAILABLE,
            chunks.TEXT_DELTA,
        ]
        assert received[3]["output"] == {"id": "INV-1", "status": "paid"}
        assert isinstance(model.seen[1][-1], ToolMessage)
        assert [s.step for s in steps] == [1, 2]
        assert finished[0].usage["total_tokens"] == 30

    @pytest.mark.asyncio
    async def test_handoff_ends_loop(self):
        """Should stop after the handoff tool result without another model call."""
        handoff_tool = create_handoff_tool([Agent(name="refunds")])
        model = ScriptedChatModel(
            responses=[call(HANDOFF_TOOL_NAME, {"target_agent": "refunds", "reason": "refund"}), answer("never")]
        )

        received, _ = await collect(LangChainModelRunner(), request(model, [handoff_tool]))

        assert len(model.seen) == 1
        assert received[-1]["output"] == {"type": "handoff", "target_agent": "refunds", "reason": "refund"}

    @pytest.mark.asyncio
    async def test_denied_tool_is_reported_to_model(self):
        model = ScriptedChatModel(responses=[call("delete_invoice", {"invoice_id": "INV-1"}), answer("Cannot delete")])
        permissions = ToolPermissions(denied_tools=["delete_invoice"])

        received, _ = await collect(
            LangChainModelRunner(), request(model, [delete_invoice], permissions=permissions)
        )

        errors = [c for c in received if c["type"] == chunks.TOOL_OUTPUT_ERROR]
        assert errors[0]["error_text"] == "Permission denied: delete_invoice is denied"
        assert model.seen[1][-1].content.startswith("Error: Permission denied")

    @pytest.mark.asyncio
    async def test_denied_tool_can_fail_the_round(self):
        model = ScriptedChatModel(responses=[call("delete_invoice", {"invoice_id": "INV-1"})])
        permissions = ToolPermissions(denied_tools=["delete_invoice"], raise_on_denied=True)

        with pytest.raises(ToolPermissionDeniedError):
            await collect(LangChainModelRunner(), request(model, [delete_invoice], permissions=permissions))

    @pytest.mark.asyncio
    async def test_model_error_is_wrapped(self):
        model = ScriptedChatModel(responses=[RuntimeError("429 rate_limit")])

        with pytest.raises(ModelInvocationError) as exc_info:
            await collect(LangChainModelRunner(), request(model))

        assert exc_info.value.user_message == "Too many requests, please try again shortly"


class TestGenerate:
    @pytest.mark.asyncio
    async def test_tool_loop_and_usage(self):
        model = ScriptedChatModel(responses=[call("get_invoice", {"invoice_id": "INV-2"}), answer("Paid")])

        result = await LangChainModelRunner().generate(request(model, [get_invoice]))

        assert result.text == "Paid"
        assert result.usage == {"input_tokens": 20, "output_tokens": 10, "total_tokens": 30}
        assert result.tool_results[0]["output"] == {"id": "INV-2", "status": "paid"}
        assert len(result.steps) == 2
        assert [type(m) for m in result.messages] == [AIMessage, ToolMessage, AIMessage]

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        model = ScriptedChatModel(responses=[call("missing", {}), answer("ok")])

        result = await LangChainModelRunner().generate(request(model))

        assert result.tool_results[0]["error"] == "Unknown tool: missing"

    @pytest.mark.asyncio
    async def test_max_steps(self):
        """Should stop quietly by default and raise when configured."""
        model = ScriptedChatModel(responses=[call("get_invoice", {"invoice_id": "INV-3"})])

        result = await LangChainModelRunner().generate(request(model, [get_invoice], max_steps=2))
        assert len(result.steps) == 2

        with pytest.raises(MaxTurnsExceededError):
            await LangChainModelRunner(raise_on_max_steps=True).generate(request(model, [get_invoice], max_steps=1))


def test_content_text():
    assert content_text([{"type": "text", "text": "a"}, "b", {"type": "tool_use"}]) == "ab"
    assert content_text(None) == ""
