"""Workflow turns with memory, guardrails, events and tool permissions."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from fakes import ScriptedRunner, handoff_round, text_round
from handoffAgent import (
    Agent,
    GuardrailResult,
    HistoryConfig,
    InMemoryProvider,
    InputGuardrail,
    MemoryConfig,
    OutputGuardrail,
    SQLiteMemoryProvider,
    WorkingMemoryConfig,
    Workflow,
)
from handoffAgent.memory import ChatsConfig, WORKING_MEMORY_TOOL_NAME
from handoffAgent.streaming import chunks
from handoffAgent.utils.errors import InputGuardrailTripwireTriggered, OutputGuardrailTripwireTriggered

pytestmark = pytest.mark.integration


def memory_config(provider, history=True, working_memory=False, chats=True):
    return MemoryConfig(
        provider=provider,
        history=HistoryConfig(enabled=history),
        working_memory=WorkingMemoryConfig(enabled=working_memory),
        chats=ChatsConfig(enabled=chats),
    )


class TestConversationMemory:
    """History load before the first round and save after the loop."""

    @pytest.mark.asyncio
    async def test_history_is_loaded_and_saved(self, settings):
        """Should replay earlier turns and persist the new exchange."""
        provider = InMemoryProvider()
        agent = Agent(name="solo", memory=memory_config(provider))
        runner = ScriptedRunner({"solo": [text_round("first answer"), text_round("second answer")]})
        workflow = Workflow(agent, runner=runner, settings=settings)
        context = {"chat_id": "chat-1", "user_id": "u-1"}

        await workflow.run("first question", context=dict(context))
        result = await workflow.run("second question", context=dict(context))

        window = runner.requests[1].messages
        assert [m.content for m in window] == ["first question", "first answer", "second question"]
        assert [type(m) for m in result.messages] == [HumanMessage, AIMessage, HumanMessage, AIMessage]

        stored = await provider.get_messages("chat-1")
        assert [m.content for m in stored] == ["first question", "first answer", "second question", "second answer"]

        chat = await provider.get_chat("chat-1")
        assert chat.message_count == 4
        assert chat.user_id == "u-1"
        assert chat.title == "first question"

    @pytest.mark.asyncio
    async def test_history_limit(self, settings):
        """Should load at most the configured number of messages."""
        provider = InMemoryProvider()
        for i in range(6):
            await provider.save_message("chat-1", "user" if i % 2 == 0 else "assistant", f"m{i}")
        agent = Agent(
            name="solo",
            memory=MemoryConfig(provider=provider, history=HistoryConfig(enabled=True, limit=2)),
        )
        runner = ScriptedRunner({"solo": [text_round("ok")]})
        workflow = Workflow(agent, runner=runner, settings=settings)

        await workflow.run("new", context={"chat_id": "chat-1"})

        assert [m.content for m in runner.requests[0].messages] == ["m4", "m5", "new"]

    @pytest.mark.asyncio
    async def test_handoff_turn_saves_only_final_text(self, settings):
        """Should persist the specialist's answer, not the handing-off agent's text."""
        provider = InMemoryProvider()
        billing = Agent(name="billing")
        triage = Agent(name="triage", handoffs=[billing], memory=memory_config(provider))
        runner = ScriptedRunner({
            "triage": [handoff_round("billing", text="Transferring...")],
            "billing": [text_round("Paid in full.")],
        })
        workflow = Workflow(triage, runner=runner, settings=settings)

        await workflow.run("status?", context={"chat_id": "c"})

        stored = await provider.get_messages("c")
        assert [(type(m), m.content) for m in stored] == [(HumanMessage, "status?"), (AIMessage, "Paid in full.")]

    @pytest.mark.asyncio
    async def test_failed_turn_saves_user_message(self, settings):
        """Should save the user message when a round fails and skip empty assistant text."""
        provider = InMemoryProvider()
        agent = Agent(name="solo", memory=memory_config(provider))
        runner = ScriptedRunner({"solo": [RuntimeError("boom")]})
        workflow = Workflow(agent, runner=runner, settings=settings)

        result = await workflow.run("hello", context={"chat_id": "c"})

        assert result.error is not None
        assert [m.content for m in await provider.get_messages("c")] == ["hello"]
        assert result.chunks[-1]["type"] == chunks.ERROR

    @pytest.mark.asyncio
    async def test_save_failure_is_logged(self, settings, mocker):
        """Should finish the turn normally when saving fails."""
        provider = InMemoryProvider()
        mocker.patch.object(provider, "save_message", side_effect=RuntimeError("disk full"))
        agent = Agent(name="solo", memory=memory_config(provider, chats=False))
        runner = ScriptedRunner({"solo": [text_round("ok")]})
        workflow = Workflow(agent, runner=runner, settings=settings)

        result = await workflow.run("hello", context={"chat_id": "c"})

        assert result.ok
        assert result.chunks[-1] == chunks.finish()

    @pytest.mark.asyncio
    async def test_sqlite_provider_round_trip(self, settings, tmp_path):
        """Should persist a turn through the SQLite provider."""
        provider = SQLiteMemoryProvider(str(tmp_path / "turns.db"))
        agent = Agent(name="solo", memory=memory_config(provider))
        runner = ScriptedRunner({"solo": [text_round("stored answer")]})
        workflow = Workflow(agent, runner=runner, settings=settings)

        await workflow.run("stored question", context={"session_id": "sess-1"})

        stored = await provider.get_messages("sess-1")
        assert [m.content for m in stored] == ["stored question", "stored answer"]
        assert (await provider.get_chat("sess-1")).message_count == 2


class TestWorkingMemory:
    """Working memory reaches the system prompt and the update tool."""

    @pytest.mark.asyncio
    async def test_working_memory_in_prompt(self, settings):
        """Should append stored working memory to every agent's system prompt."""
        provider = InMemoryProvider()
        await provider.update_working_memory("c", "u", "chat", "- Name: Ada")
        billing = Agent(name="billing", instructions="Invoices.")
        triage = Agent(
            name="triage",
            instructions="Route.",
            handoffs=[billing],
            memory=memory_config(provider, working_memory=True),
        )
        runner = ScriptedRunner({
            "triage": [handoff_round("billing")],
            "billing": [text_round("ok")],
        })
        workflow = Workflow(triage, runner=runner, settings=settings)

        await workflow.run("hi", context={"chat_id": "c", "user_id": "u"})

        for request in runner.requests:
            assert request.system_prompt.endswith("## What you remember about the user\n- Name: Ada")

    @pytest.mark.asyncio
    async def test_pure_orchestrator_has_no_memory_tool(self, settings):
        """Should give the update tool only to agents that do work."""
        provider = InMemoryProvider()
        billing = Agent(name="billing")
        wm_memory = memory_config(provider, working_memory=True)
        triage = Agent(name="triage", handoffs=[billing], memory=wm_memory)
        solo = Agent(name="solo", memory=wm_memory)
        runner = ScriptedRunner({"triage": [text_round("hi")], "solo": [text_round("hi")]})

        await Workflow(triage, runner=runner, settings=settings).run("x", context={"chat_id": "c"})
        await Workflow(solo, runner=runner, settings=settings).run("x", context={"chat_id": "c"})

        assert WORKING_MEMORY_TOOL_NAME not in runner.calls("triage")[0].tools
        assert WORKING_MEMORY_TOOL_NAME in runner.calls("solo")[0].tools

    @pytest.mark.asyncio
    async def test_memory_tool_updates_provider(self, settings):
        """Should store the content passed to update_working_memory."""
        provider = InMemoryProvider()
        agent = Agent(name="solo", memory=memory_config(provider, working_memory=True))
        runner = ScriptedRunner({"solo": [text_round("noted")]})
        workflow = Workflow(agent, runner=runner, settings=settings)
        await workflow.run("I am Ada", context={"chat_id": "c", "user_id": "u"})

        memory_tool = runner.requests[0].tools[WORKING_MEMORY_TOOL_NAME]
        assert await memory_tool.ainvoke({"content": "- Name: Ada"}) == "success"

        stored = await provider.get_working_memory("c", "u", "chat")
        assert stored.content == "- Name: Ada"


class TestGuardrails:
    """Input and output guardrails around a turn."""

    @pytest.mark.asyncio
    async def test_input_block(self, settings):
        """Should end the turn with a typed error before any agent runs."""

        def no_secrets(text, context):
            return GuardrailResult.block({"matched": "password"}) if "password" in text else None

        agent = Agent(name="solo", input_guardrails=[InputGuardrail("no_secrets", no_secrets)])
        runner = ScriptedRunner({"solo": [text_round("never")]})
        workflow = Workflow(agent, runner=runner, settings=settings)

        result = await workflow.run("my password is hunter2")

        assert isinstance(result.error, InputGuardrailTripwireTriggered)
        assert runner.requests == []
        assert [c["type"] for c in result.chunks] == [chunks.ERROR]

    @pytest.mark.asyncio
    async def test_input_modify(self, settings):
        """Should send the modified input to the agent."""

        async def redact(text, context):
            return GuardrailResult.modify(text.replace("hunter2", "[redacted]"))

        agent = Agent(name="solo", input_guardrails=[InputGuardrail("redact", redact)])
        runner = ScriptedRunner({"solo": [text_round("ok")]})
        workflow = Workflow(agent, runner=runner, settings=settings)

        await workflow.run("token hunter2")

        assert runner.requests[0].messages[-1].content == "token [redacted]"

    @pytest.mark.asyncio
    async def test_output_modify_substitutes_committed_text(self, settings):
        """Should commit the modified output."""
        guard = OutputGuardrail("polite", lambda text, ctx: GuardrailResult.modify(text.upper()))
        agent = Agent(name="solo", output_guardrails=[guard])
        runner = ScriptedRunner({"solo": [text_round("fine")]})
        workflow = Workflow(agent, runner=runner, settings=settings)

        result = await workflow.run("hi")

        assert result.messages[-1].content == "FINE"
        assert result.text == "FINE"

    @pytest.mark.asyncio
    async def test_output_block(self, settings):
        """Should fail the turn with an output tripwire."""
        guard = OutputGuardrail("never", lambda text, ctx: GuardrailResult.block())
        agent = Agent(name="solo", output_guardrails=[guard])
        runner = ScriptedRunner({"solo": [text_round("text")]})
        workflow = Workflow(agent, runner=runner, settings=settings)

        result = await workflow.run("hi")

        assert isinstance(result.error, OutputGuardrailTripwireTriggered)
        assert result.chunks[-1]["type"] == chunks.ERROR
        assert [type(m) for m in result.messages] == [HumanMessage]


class TestAgentEvents:
    """Lifecycle events in order."""

    @pytest.mark.asyncio
    async def test_event_sequence_for_handoff(self, settings):
        """Should report start, step, finish, handoff and complete events."""
        billing = Agent(name="billing")
        triage = Agent(name="triage", handoffs=[billing])
        runner = ScriptedRunner({
            "triage": [handoff_round("billing")],
            "billing": [text_round("ok")],
        })
        events = []

        async def on_event(event):
            events.append((event.type, event.agent or event.to_agent, event.round))

        workflow = Workflow(triage, runner=runner, settings=settings, on_event=on_event)
        await workflow.run("hi")

        assert events == [
            ("agent-start", "triage", 1),
            ("agent-step", "triage", 1),
            ("agent-finish", "triage", 1),
            ("agent-handoff", "billing", None),
            ("agent-start", "billing", 2),
            ("agent-step", "billing", 2),
            ("agent-finish", "billing", 2),
            ("agent-complete", "billing", 2),
        ]
