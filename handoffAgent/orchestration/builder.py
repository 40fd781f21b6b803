"""Factory for assembling the orchestration state machine.

    START → route → execute ─┬─→ END
                      ↑      │
                      └─ transfer ←┘  (handoff accepted)

``route`` picks the first agent, ``execute`` runs one agent round through
the stream multiplexer, ``transfer`` rewrites the conversation for the
next agent. The conditional edge after ``execute`` ends the turn when no
handoff happened, the target was already used, the round limit is reached
or the target is unknown.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Literal, Tuple

from langgraph.graph import END, START, StateGraph

from ..agents.registry import AgentRegistry
from ..utils.logging_utils import log_routing_decision
from .state import OrchestrationState

LOGGER = logging.getLogger(__name__)

Node = Callable[..., Awaitable[Dict[str, Any]]]


def check_handoff(state: OrchestrationState, registry: AgentRegistry) -> Tuple[Literal["transfer", "end"], str]:
    """Decide whether the handoff of the last round is followed.

    Returns:
        (decision, reason)
    """
    handoff = state.get("handoff")
    if not handoff:
        return "end", "completed"

    target = handoff.get("target_agent")
    if target in state.get("used_specialists", []):
        return "end", f"cycle: {target} already handled this turn"
    if state.get("round", 0) >= state.get("max_rounds", 1):
        return "end", f"max rounds reached ({state.get('round')}/{state.get('max_rounds')})"
    if target not in registry:
        return "end", f"unknown agent: {target}"
    return "transfer", f"handoff to {target}"


def build_handoff_route(registry: AgentRegistry) -> Callable[[OrchestrationState], str]:
    def handoff_route(state: OrchestrationState) -> Literal["transfer", "end"]:
        decision, reason = check_handoff(state, registry)
        log_routing_decision(LOGGER, state.get("current_agent", "execute"), decision, reason)
        return decision

    return handoff_route


def build_orchestration_graph(
    *,
    registry: AgentRegistry,
    route_node: Node,
    execute_node: Node,
    transfer_node: Node,
):
    """Compose and compile the orchestration graph.

    Nodes receive ``(state, config)``; turn-scoped objects travel in
    ``config["configurable"]["turn"]`` so the compiled graph can be shared
    across turns.
    """
    graph = StateGraph(OrchestrationState)

    graph.add_node("route", route_node)
    graph.add_node("execute", execute_node)
    graph.add_node("transfer", transfer_node)

    graph.add_edge(START, "route")
    graph.add_edge("route", "execute")
    graph.add_conditional_edges(
        "execute",
        build_handoff_route(registry),
        {
            "transfer": "transfer",
            "end": END,
        },
    )
    graph.add_edge("transfer", "execute")

    return graph.compile()


def recursion_limit(max_rounds: int) -> int:
    """Graph step budget: one route step plus execute/transfer pairs, with headroom."""
    return 2 * max_rounds + 5
