"""Multi-agent workflow: one user turn across triage and specialist agents.

A ``Workflow`` owns the compiled orchestration graph and the agent
registry. Each call to ``run`` executes one turn:

1. before_stream hook and input guardrails
2. Memory load (history, working memory, chat record) in parallel
3. Routing (explicit → tool choice → pattern → model-driven)
4. Agent rounds until no handoff, a cycle, the round limit or an unknown target
5. Memory save and the single terminal marker on the output sink
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.runnables import RunnableConfig

from ..agents.context import ExecutionContext
from ..agents.invoke import ContextLike, as_execution_context, build_request, stream_request
from ..agents.registry import AgentRegistry
from ..agents.schema import Agent
from ..config.settings import Settings, get_settings
from ..guardrails.guardrails import run_input_guardrails, run_output_guardrails
from ..memory.provider import ChatSession
from ..memory.working_memory import format_working_memory
from ..routing.resolver import RoutingDecision, resolve_route
from ..runtime.interfaces import ModelRunner, StepEvent
from ..streaming.chunks import Chunk
from ..streaming.status import write_agent_handoff, write_agent_status
from ..streaming.writer import StreamWriter
from ..usage.tracking import TrackerLike
from ..utils.errors import user_facing_message
from ..utils.logging_utils import (
    log_agent_response,
    log_error,
    log_handoff,
    log_round_entry,
    log_round_exit,
    log_user_message,
)
from ..utils.message_utils import select_window
from .builder import build_orchestration_graph, check_handoff, recursion_limit
from .events import AgentEvent, OnEvent, emit_event
from .multiplexer import drain_stream
from .state import OrchestrationState
from .transfer import transfer_handoff

LOGGER = logging.getLogger(__name__)

BeforeStream = Callable[[StreamWriter, ExecutionContext], Any]

CANCELLED_MESSAGE = "cancelled"


@dataclass
class TurnResult:
    """Outcome of one turn.

    Attributes:
        text: Committed assistant text of the turn
        messages: Conversation messages after the turn
        final_agent: Agent that ran the last round
        rounds: Number of agent rounds executed
        handoff_chain: Agents that handed off during the turn
        routing: How the first agent was chosen
        done_reason: Why the loop ended
        chunks: Everything written to the output sink
        error: Exception that ended the turn, if any
    """

    text: str = ""
    messages: List[BaseMessage] = field(default_factory=list)
    final_agent: Optional[str] = None
    rounds: int = 0
    handoff_chain: List[str] = field(default_factory=list)
    routing: Optional[RoutingDecision] = None
    done_reason: Optional[str] = None
    chunks: List[Chunk] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _Turn:
    """Turn-scoped objects shared by the graph nodes through the run config."""

    user_text: str
    context: ExecutionContext
    writer: StreamWriter
    messages: List[BaseMessage] = field(default_factory=list)
    agent_choice: Optional[str] = None
    tool_choice: Optional[str] = None
    routing: Optional[RoutingDecision] = None
    committed: List[str] = field(default_factory=list)
    final_agent: Optional[str] = None
    rounds: int = 0
    existing_chat: Optional[ChatSession] = None
    memory_loaded: bool = False


def _turn(config: RunnableConfig) -> _Turn:
    return config["configurable"]["turn"]


class Workflow:
    """Run a triage agent and its specialists as one cooperative turn.

    Args:
        triage: Entry agent; its memory config drives history and working memory
        agents: Extra agents to register (handoff targets are registered automatically)
        runner: Model runner used for every round (defaults to LangChainModelRunner)
        settings: Settings (defaults to get_settings())
        tracker: Usage tracker for this workflow, takes precedence over the global one
        on_event: Lifecycle event callback (sync or async)
        before_stream: Called with (writer, context) before anything runs;
            returning False ends the turn with a plain finish
        max_rounds: Round limit per turn (defaults to settings)
        routing_strategy: "auto" enables pattern routing, "manual" disables it
    """

    def __init__(
        self,
        triage: Agent,
        agents: Iterable[Agent] = (),
        runner: Optional[ModelRunner] = None,
        settings: Optional[Settings] = None,
        tracker: Optional[TrackerLike] = None,
        on_event: Optional[OnEvent] = None,
        before_stream: Optional[BeforeStream] = None,
        max_rounds: Optional[int] = None,
        routing_strategy: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        orchestration = self.settings.orchestration

        self.triage = triage
        self.registry = AgentRegistry([triage, *agents])
        for problem in self.registry.validate():
            LOGGER.warning(f"[Workflow] {problem}")

        if runner is None:
            from ..runtime.runner import LangChainModelRunner
            runner = LangChainModelRunner()
        self.runner = runner
        self.tracker = tracker
        self.on_event = on_event
        self.before_stream = before_stream
        self.max_rounds = max_rounds or orchestration.max_rounds
        self.routing_strategy = routing_strategy or orchestration.routing_strategy

        self.app = build_orchestration_graph(
            registry=self.registry,
            route_node=self._route_node,
            execute_node=self._execute_node,
            transfer_node=self._transfer_node,
        )
        LOGGER.info(
            f"[Workflow] Built with triage={triage.name}, agents={self.registry.names()}, "
            f"max_rounds={self.max_rounds}, routing={self.routing_strategy}"
        )

    # ========== Public API ==========

    async def run(
        self,
        message: str,
        context: ContextLike = None,
        writer: Optional[StreamWriter] = None,
        agent_choice: Optional[str] = None,
        tool_choice: Optional[str] = None,
    ) -> TurnResult:
        """Run one turn and return its result.

        Errors never escape: the sink receives one terminal ``error`` chunk and
        the exception is returned in ``TurnResult.error``. Cancellation is the
        exception; it closes the sink with a ``cancelled`` error and re-raises.
        """
        exec_context = as_execution_context(context)
        exec_context.begin_turn()
        writer = writer or StreamWriter()
        exec_context.writer = writer
        turn = _Turn(
            user_text=message,
            context=exec_context,
            writer=writer,
            agent_choice=agent_choice,
            tool_choice=tool_choice,
        )
        result = TurnResult(messages=turn.messages, handoff_chain=exec_context.handoff_chain)

        try:
            # ========== Step 1: before_stream hook ==========
            if self.before_stream is not None:
                proceed = self.before_stream(writer, exec_context)
                if inspect.isawaitable(proceed):
                    proceed = await proceed
                if proceed is False:
                    LOGGER.info("[Workflow] before_stream declined the turn")
                    writer.close()
                    result.chunks = writer.history
                    return result

            # ========== Step 2: Input guardrails ==========
            log_user_message(LOGGER, message)
            turn.user_text = await run_input_guardrails(self.triage.input_guardrails, message, exec_context)

            # ========== Step 3: Memory + conversation seed ==========
            history = await self._load_memory(turn)
            turn.messages.extend(history)
            turn.messages.append(HumanMessage(content=turn.user_text))
            turn.memory_loaded = True

            # ========== Step 4: Rounds ==========
            write_agent_status(writer, self.triage.name, "routing")
            final_state = await self.app.ainvoke(
                self._initial_state(),
                config={
                    "configurable": {"turn": turn},
                    "recursion_limit": recursion_limit(self.max_rounds),
                },
            )
            _, result.done_reason = check_handoff(final_state, self.registry)
            LOGGER.info(f"[Workflow] Turn done after {turn.rounds} round(s): {result.done_reason}")

            await emit_event(
                self.on_event,
                AgentEvent(type="agent-complete", agent=turn.final_agent, round=turn.rounds),
            )

            # ========== Step 5: Persist + terminal marker ==========
            await self._save_memory(turn)
            writer.close()

        except asyncio.CancelledError:
            LOGGER.info("[Workflow] Turn cancelled")
            writer.close(CANCELLED_MESSAGE)
            raise

        except Exception as e:
            log_error(LOGGER, e, "workflow turn")
            result.error = e
            try:
                await emit_event(
                    self.on_event,
                    AgentEvent(type="agent-error", agent=turn.final_agent, round=turn.rounds, error=e),
                )
            except Exception as event_error:
                log_error(LOGGER, event_error, "on_event(agent-error)")
            if turn.memory_loaded:
                await self._save_memory(turn)
            writer.close(user_facing_message(e))

        result.text = "\n\n".join(turn.committed)
        result.final_agent = turn.final_agent
        result.rounds = turn.rounds
        result.routing = turn.routing
        result.chunks = writer.history
        return result

    async def stream_turn(
        self,
        message: str,
        context: ContextLike = None,
        agent_choice: Optional[str] = None,
        tool_choice: Optional[str] = None,
    ) -> AsyncIterator[Chunk]:
        """Yield the turn's chunks as they are produced.

        Closing the iterator early cancels the running turn.
        """
        writer = StreamWriter(keep_history=False)
        task = asyncio.create_task(
            self.run(message, context, writer=writer, agent_choice=agent_choice, tool_choice=tool_choice)
        )
        try:
            async for chunk in writer:
                yield chunk
            await task
        finally:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    LOGGER.debug("[Workflow] Streaming consumer left, turn task cancelled")

    # ========== Graph nodes ==========

    def _initial_state(self) -> OrchestrationState:
        return OrchestrationState(
            current_agent=self.triage.name,
            routing_strategy="none",
            round=0,
            max_rounds=self.max_rounds,
            used_specialists=[],
            handoff=None,
            tool_results={},
            done_reason=None,
        )

    async def _route_node(self, state: OrchestrationState, config: RunnableConfig) -> Dict[str, Any]:
        """Pick the first agent; a direct route reports triage as finished after zero rounds."""
        turn = _turn(config)
        targets = self.registry.handoff_targets(self.triage)
        decision = resolve_route(
            self.triage,
            targets,
            turn.user_text,
            agent_choice=turn.agent_choice,
            tool_choice=turn.tool_choice,
            strategy=self.routing_strategy,
            context=turn.context,
        )
        turn.routing = decision

        used: List[str] = []
        if decision.agent is not self.triage:
            write_agent_status(turn.writer, self.triage.name, "completing")
            await emit_event(self.on_event, AgentEvent(type="agent-finish", agent=self.triage.name, round=0))
            write_agent_handoff(turn.writer, self.triage.name, decision.agent.name, decision.reason, decision.strategy)
            await emit_event(
                self.on_event,
                AgentEvent(
                    type="agent-handoff",
                    from_agent=self.triage.name,
                    to_agent=decision.agent.name,
                    reason=decision.reason,
                ),
            )
            used.append(decision.agent.name)

        return {
            "current_agent": decision.agent.name,
            "routing_strategy": decision.strategy,
            "used_specialists": used,
        }

    async def _execute_node(self, state: OrchestrationState, config: RunnableConfig) -> Dict[str, Any]:
        """Run one round of the current agent through the multiplexer."""
        turn = _turn(config)
        agent = self.registry.require(state["current_agent"])
        round_no = state.get("round", 0) + 1
        turn.rounds = round_no
        turn.final_agent = agent.name

        run_context = turn.context.run_context
        run_context.current_agent = agent.name
        run_context.round = round_no

        write_agent_status(turn.writer, agent.name, "executing")
        window = select_window(turn.messages, self._window_size(agent))
        log_round_entry(LOGGER, agent.name, round_no, state.get("max_rounds", self.max_rounds), window)
        await emit_event(self.on_event, AgentEvent(type="agent-start", agent=agent.name, round=round_no))

        async def on_step_finish(step: StepEvent) -> None:
            await emit_event(
                self.on_event,
                AgentEvent(type="agent-step", agent=agent.name, round=round_no, step=step),
            )

        request = build_request(
            agent,
            window,
            turn.context,
            self.registry,
            self.settings,
            on_step_finish=on_step_finish,
        )
        stream = stream_request(agent, request, self.runner, turn.context, tracker=self.tracker)
        drained = await drain_stream(stream, turn.writer, agent.name)
        log_round_exit(LOGGER, agent.name, drained.text, drained.handoff, drained.tool_names)

        if drained.handoff is None and drained.text:
            text = await run_output_guardrails(agent.output_guardrails, drained.text, agent.name, turn.context)
            turn.messages.append(AIMessage(content=text))
            turn.committed.append(text)
            log_agent_response(LOGGER, agent.name, text)

        await emit_event(self.on_event, AgentEvent(type="agent-finish", agent=agent.name, round=round_no))
        return {
            "round": round_no,
            "handoff": drained.handoff,
            "tool_results": drained.tool_results,
        }

    async def _transfer_node(self, state: OrchestrationState, config: RunnableConfig) -> Dict[str, Any]:
        """Follow an accepted handoff: rewrite history and switch agents."""
        turn = _turn(config)
        current = self.registry.require(state["current_agent"])
        handoff = state["handoff"]
        target = handoff["target_agent"]
        reason = handoff.get("reason") or ""

        edge = self.registry.edge(current, target, fallback=self.triage)
        await transfer_handoff(
            turn.messages,
            state.get("tool_results") or {},
            handoff,
            current.name,
            turn.context.run_context,
            edge=edge,
            keep_recent=self.settings.orchestration.handoff_keep_recent,
        )

        log_handoff(LOGGER, current.name, target, reason, "llm")
        write_agent_handoff(turn.writer, current.name, target, reason, "llm")
        await emit_event(
            self.on_event,
            AgentEvent(type="agent-handoff", from_agent=current.name, to_agent=target, reason=reason),
        )

        return {
            "current_agent": target,
            "used_specialists": [*state.get("used_specialists", []), target],
            "handoff": None,
            "tool_results": {},
        }

    def _window_size(self, agent: Agent) -> int:
        if agent.last_messages:
            return agent.last_messages
        orchestration = self.settings.orchestration
        if self.registry.handoff_targets(agent):
            return orchestration.orchestrator_last_messages
        return orchestration.specialist_last_messages

    # ========== Memory ==========

    async def _load_memory(self, turn: _Turn) -> List[BaseMessage]:
        """Load history, working memory and the chat record in parallel.

        Load failures are logged and the turn continues without that piece.
        """
        memory = self.triage.memory
        if memory is None or not memory.enabled:
            return []

        provider = memory.provider
        ctx = turn.context
        chat_id = ctx.memory_chat_id
        memory_settings = self.settings.memory

        async def load_history() -> List[BaseMessage]:
            if not memory.history.enabled or not chat_id:
                return []
            limit = memory.history.limit or memory_settings.history_limit
            try:
                return list(await provider.get_messages(chat_id, limit))
            except Exception as e:
                log_error(LOGGER, e, f"load history of chat {chat_id}")
                return []

        async def load_working_memory() -> str:
            if not memory.working_memory.enabled:
                return ""
            scope = memory.working_memory.scope or memory_settings.working_memory_scope
            try:
                stored = await provider.get_working_memory(chat_id, ctx.user_id, scope)
            except Exception as e:
                log_error(LOGGER, e, "load working memory")
                return ""
            return format_working_memory(stored)

        async def load_chat() -> Optional[ChatSession]:
            if not memory.chats.enabled or not chat_id:
                return None
            try:
                return await provider.get_chat(chat_id)
            except Exception as e:
                log_error(LOGGER, e, f"load chat {chat_id}")
                return None

        history, addition, chat = await asyncio.gather(load_history(), load_working_memory(), load_chat())
        ctx.memory_addition = addition or None
        turn.existing_chat = chat
        LOGGER.info(
            f"[Memory] chat={chat_id}, history={len(history)}, "
            f"working_memory={'yes' if addition else 'no'}"
        )
        return history

    async def _save_memory(self, turn: _Turn) -> None:
        """Persist the user message and committed assistant text, then the chat record."""
        memory = self.triage.memory
        if memory is None or not memory.enabled:
            return

        provider = memory.provider
        ctx = turn.context
        chat_id = ctx.memory_chat_id
        if not chat_id:
            LOGGER.warning("[Memory] No chat id in context, skipping save")
            return

        saved = 0
        if memory.history.enabled:
            assistant_text = "\n\n".join(turn.committed)
            try:
                await provider.save_message(chat_id, "user", turn.user_text, ctx.user_id)
                saved += 1
                if assistant_text:
                    await provider.save_message(chat_id, "assistant", assistant_text, ctx.user_id)
                    saved += 1
            except Exception as e:
                log_error(LOGGER, e, f"save messages of chat {chat_id}")

        if memory.chats.enabled:
            existing = turn.existing_chat
            chat = ChatSession(
                chat_id=chat_id,
                user_id=ctx.user_id or (existing.user_id if existing else None),
                title=existing.title if existing else _default_title(turn.user_text),
                message_count=(existing.message_count if existing else 0) + saved,
            )
            if existing is not None:
                chat.created_at = existing.created_at
            try:
                await provider.save_chat(chat)
            except Exception as e:
                log_error(LOGGER, e, f"save chat {chat_id}")


def _default_title(text: str, limit: int = 50) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."
