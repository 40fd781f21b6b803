"""Routing resolver - pick the first agent of a turn.

Rules, first match wins:
1. Explicit choice: the caller names an agent that is a handoff target of triage
2. Tool choice: the caller names a tool; the target whose tools include it is picked
3. Pattern match (strategy "auto"): ``match_on`` predicates and patterns
4. No match: triage runs and may hand off itself ("model-driven"), or simply
   answers when it has no handoff targets ("none")
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Literal, Optional, Sequence, Tuple

from ..agents.schema import Agent, MatchPattern
from ..utils.logging_utils import log_routing_decision

if TYPE_CHECKING:
    from ..agents.context import ExecutionContext

LOGGER = logging.getLogger(__name__)

RoutingStrategy = Literal["explicit", "tool-choice", "pattern-match", "model-driven", "none"]

PREDICATE_SCORE = 100
REGEX_SCORE = 2

_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True)
class RoutingDecision:
    """Outcome of routing one turn.

    Attributes:
        agent: Agent that runs the first round
        strategy: Rule that selected it
        reason: Human-readable explanation
        score: Pattern score (pattern-match only)
    """

    agent: Agent
    strategy: RoutingStrategy
    reason: str = ""
    score: int = 0

    @property
    def is_direct(self) -> bool:
        """True when a specialist was picked without asking the triage model."""
        return self.strategy in ("explicit", "tool-choice", "pattern-match")


def normalize_input(text: str) -> str:
    """Lowercase, strip digits and trim whitespace."""
    return _DIGITS.sub("", (text or "").lower()).strip()


def normalize_patterns(patterns: Iterable[MatchPattern]) -> List[MatchPattern]:
    """Normalize string patterns like the input; keep compiled regexes as-is."""
    normalized: List[MatchPattern] = []
    for pattern in patterns:
        if isinstance(pattern, re.Pattern):
            normalized.append(pattern)
        else:
            normalized.append(normalize_input(str(pattern)))
    return normalized


def score_agent(agent: Agent, input_text: str) -> int:
    """Score how well ``agent.match_on`` matches ``input_text``.

    A predicate (called with the raw input) returning true scores
    ``PREDICATE_SCORE``. String patterns and the input are normalized alike:
    a contained string pattern scores its word count, a matching regex
    scores ``REGEX_SCORE``, and scores of several patterns add up.
    """
    match_on = agent.match_on
    if match_on is None:
        return 0

    if callable(match_on):
        try:
            return PREDICATE_SCORE if match_on(input_text) else 0
        except Exception as e:  # a broken predicate is a routing miss
            LOGGER.warning(f"match_on predicate of {agent.name} failed: {e}")
            return 0

    text = normalize_input(input_text)
    score = 0
    for pattern in normalize_patterns(match_on):
        if isinstance(pattern, re.Pattern):
            if pattern.search(text):
                score += REGEX_SCORE
        elif pattern and pattern in text:
            score += len(pattern.split())
    return score


def _match_pattern(targets: Sequence[Agent], input_text: str) -> Optional[Tuple[Agent, int]]:
    best: Optional[Tuple[Agent, int]] = None
    for agent in targets:
        score = score_agent(agent, input_text)
        if score >= PREDICATE_SCORE and callable(agent.match_on):
            return agent, score
        if score > 0 and (best is None or score > best[1]):
            best = (agent, score)
    return best


def resolve_route(
    triage: Agent,
    targets: Sequence[Agent],
    input_text: str,
    agent_choice: Optional[str] = None,
    tool_choice: Optional[str] = None,
    strategy: str = "auto",
    context: Optional["ExecutionContext"] = None,
) -> RoutingDecision:
    """Choose the first agent of a turn.

    Args:
        triage: Entry agent of the workflow
        targets: Triage's resolved handoff targets
        input_text: Latest user message text
        agent_choice: Agent name explicitly requested by the caller
        tool_choice: Tool name explicitly requested by the caller
        strategy: "auto" enables pattern matching
        context: Execution context used to resolve dynamic tool sets

    Returns:
        RoutingDecision
    """
    if agent_choice:
        for agent in targets:
            if agent.name == agent_choice:
                decision = RoutingDecision(agent, "explicit", f"Caller selected {agent.name}")
                log_routing_decision(LOGGER, triage.name, agent.name, decision.reason)
                return decision
        LOGGER.info(f"Explicit agent choice '{agent_choice}' is not a handoff target of {triage.name}, ignored")

    if tool_choice:
        for agent in targets:
            if tool_choice in agent.resolve_tools(context):
                decision = RoutingDecision(agent, "tool-choice", f"{agent.name} provides tool {tool_choice}")
                log_routing_decision(LOGGER, triage.name, agent.name, decision.reason)
                return decision
        LOGGER.info(f"No handoff target of {triage.name} provides tool '{tool_choice}', ignored")

    if strategy == "auto" and targets:
        best = _match_pattern(targets, input_text)
        if best is not None:
            agent, score = best
            decision = RoutingDecision(agent, "pattern-match", f"Matched routing patterns (score {score})", score)
            log_routing_decision(LOGGER, triage.name, agent.name, decision.reason)
            return decision

    if targets:
        decision = RoutingDecision(triage, "model-driven", "No direct route, triage decides")
    else:
        decision = RoutingDecision(triage, "none", "Triage has no handoff targets")
    log_routing_decision(LOGGER, triage.name, triage.name, decision.reason)
    return decision


def matching_agents(targets: Sequence[Agent], input_text: str) -> List[Tuple[str, int]]:
    """Scores of every target for an input, highest first (debugging aid)."""
    scored = [(agent.name, score_agent(agent, input_text)) for agent in targets]
    return sorted((s for s in scored if s[1] > 0), key=lambda item: -item[1])
