"""Agent Registry - resolves handoff edges (agent names) to agents."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .schema import Agent, Handoff

LOGGER = logging.getLogger(__name__)


class AgentRegistry:
    """Name → Agent table for one workflow.

    The handoff graph is an adjacency list of names stored on each Agent;
    the registry turns names into agents when routing and at transfer time,
    so agents can reference each other in any order (including cycles).
    """

    def __init__(self, agents: Iterable[Agent] = ()):
        self._agents: Dict[str, Agent] = {}
        for agent in agents:
            self.register(agent)

    # ========== Registration Methods ==========

    def register(self, agent: Agent) -> Agent:
        """Register an agent and every agent object linked through its handoffs.

        Raises:
            ValueError: Another agent with the same name is already registered
        """
        pending: List[Agent] = [agent]
        while pending:
            current = pending.pop()
            existing = self._agents.get(current.name)
            if existing is current:
                continue
            if existing is not None:
                raise ValueError(f"Duplicate agent name: {current.name}")
            self._agents[current.name] = current
            LOGGER.debug(f"Registered agent: {current.name} (handoffs: {current.handoff_names})")
            pending.extend(current.linked_agents)
        return agent

    # ========== Query Methods ==========

    def get(self, name: str) -> Optional[Agent]:
        return self._agents.get(name)

    def require(self, name: str) -> Agent:
        """Get an agent by name.

        Raises:
            KeyError: Unknown agent
        """
        if name not in self._agents:
            raise KeyError(f"Agent not registered: {name}")
        return self._agents[name]

    def __contains__(self, name: str) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def names(self) -> List[str]:
        return list(self._agents)

    def handoff_targets(self, agent: Agent) -> List[Agent]:
        """Resolve an agent's handoff edges, skipping unknown names."""
        targets = []
        for edge in agent.handoffs:
            target = self._agents.get(edge.target)
            if target is None:
                LOGGER.warning(f"Agent {agent.name} hands off to unknown agent: {edge.target}")
                continue
            targets.append(target)
        return targets

    def edge(self, source: Agent, target_name: str, fallback: Optional[Agent] = None) -> Optional[Handoff]:
        """Find the handoff edge configuration for ``source → target_name``.

        When ``source`` has no edge to the target, the ``fallback`` agent's
        edge is used (the entry agent typically carries the configured edges).
        """
        found = source.get_handoff(target_name)
        if found is None and fallback is not None and fallback is not source:
            found = fallback.get_handoff(target_name)
        return found

    def validate(self) -> List[str]:
        """Return human-readable problems with the handoff graph."""
        problems = []
        for agent in self._agents.values():
            for edge in agent.handoffs:
                if edge.target not in self._agents:
                    problems.append(f"{agent.name} → {edge.target}: unknown agent")
                elif edge.target == agent.name:
                    problems.append(f"{agent.name} hands off to itself")
        return problems
