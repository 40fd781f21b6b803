"""Tests for error messages, status chunks and logging setup."""

import logging

import pytest

from handoffAgent.agents.context import ExecutionContext
from handoffAgent.orchestration.events import AgentEvent, emit_event
from handoffAgent.streaming import StreamWriter, chunks
from handoffAgent.streaming.status import write_agent_handoff, write_agent_status, write_rate_limit
from handoffAgent.utils.errors import (
    AgentsError,
    ModelInvocationError,
    ToolPermissionDeniedError,
    handle_model_error,
    user_facing_message,
)
from handoffAgent.utils.logging_utils import setup_logging


class TestErrorMessages:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Error 429: slow down", "Too many requests, please try again shortly"),
            ("Request timeout", "The model timed out, please retry"),
            ("context_length_exceeded", "Conversation is too long, please start a new chat"),
            ("invalid_api_key", "Invalid API key, please contact the administrator"),
            ("insufficient_quota", "Model quota exhausted, please contact the administrator"),
        ],
    )
    def test_known_provider_errors(self, text, expected):
        assert handle_model_error(RuntimeError(text)) == expected

    def test_unknown_error(self):
        assert handle_model_error(RuntimeError("boom")) == "Model service unavailable: boom"

    def test_user_facing_message(self):
        assert user_facing_message(AgentsError("internal", user_message="shown")) == "shown"
        assert user_facing_message(ModelInvocationError("a", RuntimeError("rate_limit"))) == (
            "Too many requests, please try again shortly"
        )
        assert user_facing_message(ValueError("boom")) == "Model service unavailable: boom"

    def test_permission_error_fields(self):
        error = ToolPermissionDeniedError("delete_invoice", "is denied")
        assert error.tool_name == "delete_invoice"
        assert "delete_invoice" in error.user_message


class TestStatusChunks:
    def test_status_and_handoff_are_transient(self):
        writer = StreamWriter()
        write_agent_status(writer, "triage", "routing")
        write_agent_handoff(writer, "triage", "billing", "invoice", "pattern-match")
        write_rate_limit(writer, limit=10, remaining=3)

        status, handoff, rate = writer.history
        assert status == {
            "type": chunks.DATA_AGENT_STATUS,
            "data": {"agent": "triage", "status": "routing"},
            "transient": True,
        }
        assert handoff["data"] == {
            "from": "triage",
            "to": "billing",
            "reason": "invoice",
            "routing_strategy": "pattern-match",
        }
        assert handoff["transient"] is True
        assert rate == {"type": chunks.DATA_RATE_LIMIT, "data": {"limit": 10, "remaining": 3, "reset": None}}


class TestEvents:
    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self):
        seen = []

        async def async_handler(event):
            seen.append(event.type)

        await emit_event(seen.append, AgentEvent(type="agent-start", agent="a", round=1))
        await emit_event(async_handler, AgentEvent(type="agent-finish", agent="a", round=1))
        await emit_event(None, AgentEvent(type="agent-complete"))

        assert seen[0].type == "agent-start"
        assert seen[1] == "agent-finish"


class TestContext:
    def test_from_mapping_and_snapshot(self):
        context = ExecutionContext.from_mapping({"session_id": "s", "tenant": "acme"}, user_id="u")
        context.handoff_chain.append("triage")

        assert context["tenant"] == "acme"
        assert context.get("chat_id", "none") == "none"
        assert context.memory_chat_id == "s"
        assert context.snapshot() == {"tenant": "acme", "session_id": "s", "user_id": "u", "handoff_chain": ["triage"]}

    def test_set(self):
        context = ExecutionContext()
        context.set("chat_id", "c")
        context.set("locale", "zh")
        assert context.chat_id == "c"
        assert context.fields == {"locale": "zh"}

    def test_begin_turn_resets_engine_state(self):
        context = ExecutionContext(session_id="s", fields={"tenant": "acme"})
        previous_chain = context.handoff_chain
        previous_chain.append("triage")
        context.memory_addition = "note"
        context.tool_usage["get_invoice"] = 2
        context.run_context.current_agent = "billing"
        context.run_context.round = 3

        context.begin_turn()

        assert context.handoff_chain == []
        assert previous_chain == ["triage"]
        assert context.memory_addition is None
        assert context.tool_usage == {}
        assert context.run_context.current_agent is None
        assert context.run_context.round == 0
        assert context.run_context.handoff_chain is context.handoff_chain
        assert context.session_id == "s"
        assert context.fields == {"tenant": "acme"}


class TestLogging:
    def test_setup_logging_writes_file(self, tmp_path):
        logger = setup_logging(level=logging.INFO, log_dir=str(tmp_path / "logs"))
        try:
            assert not logger.propagate
            assert len(logger.handlers) == 2
            assert list((tmp_path / "logs").glob("handoffagent_*.log"))
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers = []
            logger.propagate = True

    def test_setup_logging_without_file(self):
        logger = setup_logging(log_dir=None)
        try:
            assert len(logger.handlers) == 1
        finally:
            logger.handlers = []
            logger.propagate = True
