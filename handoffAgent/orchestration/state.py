"""State definition for the orchestration graph."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict


class OrchestrationState(TypedDict, total=False):
    """Control state of one turn.

    Conversation messages, the execution context and the output writer are
    turn objects held outside the graph and mutated in place; the graph only
    carries what decides the next transition.
    """

    # ========== Routing ==========
    current_agent: str
    routing_strategy: str

    # ========== Rounds ==========
    round: int
    max_rounds: int
    used_specialists: List[str]

    # ========== Last round ==========
    handoff: Optional[Dict[str, Any]]
    tool_results: Dict[str, Any]
    done_reason: Optional[str]
