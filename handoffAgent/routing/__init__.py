"""Routing of the first agent of a turn."""

from .resolver import RoutingDecision, matching_agents, normalize_input, resolve_route, score_agent

__all__ = ["RoutingDecision", "matching_agents", "normalize_input", "resolve_route", "score_agent"]
