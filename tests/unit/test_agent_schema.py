"""Tests for agent definitions, the registry and prompt/tool assembly."""

import pytest
from langchain_core.tools import tool

from handoffAgent.agents.context import ExecutionContext
from handoffAgent.agents.handoff_tools import (
    HANDOFF_PROMPT_PREFIX,
    HANDOFF_TOOL_NAME,
    create_handoff_tool,
    is_handoff_result,
)
from handoffAgent.agents.invoke import build_request, build_system_prompt, build_tools
from handoffAgent.agents.registry import AgentRegistry
from handoffAgent.agents.schema import Agent, Derived, Handoff, Static, handoff
from handoffAgent.memory import InMemoryProvider, MemoryConfig, WORKING_MEMORY_TOOL_NAME, WorkingMemoryConfig


@tool
def get_invoice(invoice_id: str) -> str:
    """Fetch one invoice."""
    return invoice_id


class TestAgentDefinition:
    """Normalization done at construction."""

    def test_static_and_derived_values(self):
        static = Agent(name="a", instructions="Be brief.", tools=[get_invoice])
        derived = Agent(
            name="b",
            instructions=lambda ctx: f"Tenant {ctx.get('tenant')}",
            tools=lambda ctx: {"get_invoice": get_invoice} if ctx.get("tenant") else {},
        )
        context = ExecutionContext(fields={"tenant": "acme"})

        assert isinstance(static.instructions, Static)
        assert isinstance(derived.instructions, Derived)
        assert static.resolve_tools() == {"get_invoice": get_invoice}
        assert derived.resolve_instructions(context) == "Tenant acme"
        assert list(derived.resolve_tools(context)) == ["get_invoice"]
        assert derived.resolve_tools(ExecutionContext()) == {}

    def test_handoff_entries(self):
        """Should accept agents, names and configured edges."""
        billing = Agent(name="billing")
        audit = []
        triage = Agent(name="triage", handoffs=[billing, "support", handoff(Agent(name="refunds"), on_handoff=audit.append)])

        assert triage.handoff_names == ["billing", "support", "refunds"]
        assert [a.name for a in triage.linked_agents] == ["billing", "refunds"]
        assert triage.get_handoff("refunds").on_handoff == audit.append
        assert triage.get_handoff("missing") is None

    def test_single_pattern_becomes_tuple(self):
        assert Agent(name="a", match_on="invoice").match_on == ("invoice",)

    @pytest.mark.parametrize("kwargs", [{"name": ""}, {"name": "a", "max_turns": 0}, {"name": "a", "last_messages": 0}])
    def test_invalid_fields(self, kwargs):
        with pytest.raises(ValueError):
            Agent(**kwargs)

    def test_rejects_unknown_handoff_entry(self):
        with pytest.raises(TypeError):
            Agent(name="a", handoffs=[42])

    def test_clone(self):
        agent = Agent(name="a", instructions="x", handoffs=["b"])
        copy = agent.clone(name="c")
        assert copy.name == "c"
        assert copy.handoff_names == ["b"]
        assert copy.resolve_instructions() == "x"


class TestAgentRegistry:
    def test_registers_linked_agents(self):
        billing = Agent(name="billing")
        triage = Agent(name="triage", handoffs=[billing])
        registry = AgentRegistry([triage])

        assert registry.names() == ["triage", "billing"]
        assert registry.handoff_targets(triage) == [billing]

    def test_duplicate_names(self):
        """Should reject two different agents with the same name."""
        registry = AgentRegistry([Agent(name="a")])
        with pytest.raises(ValueError, match="Duplicate agent name: a"):
            registry.register(Agent(name="a", instructions="other"))

    def test_mutual_handoffs_by_name(self):
        a = Agent(name="a", handoffs=["b"])
        b = Agent(name="b", handoffs=["a"])
        registry = AgentRegistry([a, b])

        assert registry.handoff_targets(a) == [b]
        assert registry.validate() == []

    def test_unknown_targets(self):
        a = Agent(name="a", handoffs=["ghost", "a"])
        registry = AgentRegistry([a])

        assert registry.handoff_targets(a) == [a]
        assert registry.validate() == ["a → ghost: unknown agent", "a hands off to itself"]
        with pytest.raises(KeyError):
            registry.require("ghost")

    def test_edge_falls_back_to_entry_agent(self):
        def keep_all(data):
            return data

        refunds = Agent(name="refunds")
        billing = Agent(name="billing")
        triage = Agent(name="triage", handoffs=[billing, handoff(refunds, input_filter=keep_all)])
        registry = AgentRegistry([triage])

        assert registry.edge(billing, "refunds") is None
        assert registry.edge(billing, "refunds", fallback=triage).input_filter is keep_all
        assert registry.edge(triage, "billing") == Handoff(target="billing")


class TestHandoffTool:
    def test_tool_returns_instruction(self):
        tool_ = create_handoff_tool([Agent(name="billing", handoff_description="Invoices")])

        result = tool_.invoke({"target_agent": "billing", "reason": "invoice", "context": "C-7"})

        assert result == {"type": "handoff", "target_agent": "billing", "reason": "invoice", "context": "C-7"}
        assert "- billing: Invoices" in tool_.description
        assert is_handoff_result(result)

    def test_is_handoff_result(self):
        assert not is_handoff_result({"type": "handoff", "target_agent": ""})
        assert not is_handoff_result({"type": "other", "target_agent": "a"})
        assert not is_handoff_result("handoff")


class TestPromptAndTools:
    """System prompt and tool set of one round."""

    def test_prompt_for_orchestrator(self):
        billing = Agent(name="billing", handoff_description="Invoices and payments")
        triage = Agent(name="triage", instructions="Route requests.", handoffs=[billing])

        prompt = build_system_prompt(triage, [billing])

        assert prompt.startswith(HANDOFF_PROMPT_PREFIX)
        assert "- billing: Invoices and payments" in prompt
        assert prompt.endswith("Route requests.")

    def test_specialist_prompt_is_plain(self):
        assert build_system_prompt(Agent(name="a", instructions="Answer."), []) == "Answer."

    def test_static_prompt_is_cached(self):
        agent = Agent(name="a", instructions="Cached instructions.")
        assert build_system_prompt(agent, []) is build_system_prompt(agent, [])

    def test_memory_addition_is_appended(self):
        context = ExecutionContext()
        context.memory_addition = "\n\n## What you remember about the user\n- Name: Ada"
        prompt = build_system_prompt(Agent(name="a", instructions="Answer."), [], context)
        assert prompt == "Answer." + context.memory_addition

    def test_tools_include_handoff_and_memory(self, settings):
        billing = Agent(name="billing")
        memory = MemoryConfig(provider=InMemoryProvider(), working_memory=WorkingMemoryConfig(enabled=True))
        agent = Agent(name="a", tools=[get_invoice], handoffs=[billing], memory=memory)

        tools = build_tools(agent, [billing], ExecutionContext(chat_id="c"), settings)

        assert set(tools) == {"get_invoice", HANDOFF_TOOL_NAME, WORKING_MEMORY_TOOL_NAME}

    def test_request_step_budget(self, settings):
        agent = Agent(name="a", max_turns=2)
        registry = AgentRegistry([agent])

        assert build_request(agent, [], None, registry, settings).max_steps == 2
        assert build_request(agent.clone(max_turns=None), [], None, AgentRegistry(), settings).max_steps == 4
