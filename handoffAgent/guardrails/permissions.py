"""Tool permission checks run before every tool execution."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import yaml

LOGGER = logging.getLogger(__name__)


@dataclass
class PermissionDecision:
    """工具权限检查结果"""

    allowed: bool
    reason: str = ""
    risk_level: str = "low"  # low, medium, high, critical


ALLOWED = PermissionDecision(allowed=True)

PermissionChecker = Callable[[Dict[str, Any]], PermissionDecision]

_RISK_LEVELS_ORDER = ["critical", "high", "medium", "low"]


@dataclass
class ToolPermissions:
    """Allow/deny rules for an agent's tool calls.

    Checks, highest priority first:
    1. Custom checkers registered per tool
    2. Deny list, then allow list (when an allow list is given, other tools are denied)
    3. Per-turn call limits (``max_calls``)
    4. Global argument risk patterns (regex over argument values)
    5. Tool-specific argument patterns

    Attributes:
        allowed_tools: Only these tools may run (None = any)
        denied_tools: These tools never run
        max_calls: ``{tool_name: limit}`` per turn
        risk_patterns: ``{risk_level: [regex, ...]}`` applied to every tool
        tool_patterns: ``{tool_name: [regex, ...]}``
        raise_on_denied: Fail the turn instead of reporting the denial to the model
    """

    allowed_tools: Optional[List[str]] = None
    denied_tools: List[str] = field(default_factory=list)
    max_calls: Dict[str, int] = field(default_factory=dict)
    risk_patterns: Dict[str, List[str]] = field(default_factory=dict)
    tool_patterns: Dict[str, List[str]] = field(default_factory=dict)
    raise_on_denied: bool = False
    custom_checkers: Dict[str, PermissionChecker] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "ToolPermissions":
        """Load permission rules from a YAML file.

        Expected layout::

            allowed_tools: [list_invoices, get_invoice]
            denied_tools: [delete_invoice]
            max_calls: {list_invoices: 3}
            raise_on_denied: false
            global:
              risk_patterns:
                high: ["(?i)drop\\s+table"]
            tools:
              get_invoice:
                patterns: ["INV-0+\\b"]
        """
        path = Path(config_path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        tools_config = data.get("tools", {}) or {}
        return cls(
            allowed_tools=data.get("allowed_tools"),
            denied_tools=list(data.get("denied_tools", []) or []),
            max_calls=dict(data.get("max_calls", {}) or {}),
            risk_patterns=dict((data.get("global", {}) or {}).get("risk_patterns", {}) or {}),
            tool_patterns={
                name: list(conf.get("patterns", []) or [])
                for name, conf in tools_config.items()
                if (conf or {}).get("enabled", True)
            },
            raise_on_denied=bool(data.get("raise_on_denied", False)),
        )

    def register_checker(self, tool_name: str, checker: PermissionChecker) -> None:
        """注册工具自定义权限检查函数"""
        self.custom_checkers[tool_name] = checker

    def check(self, tool_name: str, args: Dict[str, Any], usage: Optional[Dict[str, int]] = None) -> PermissionDecision:
        """Decide whether ``tool_name`` may run with ``args``.

        Args:
            tool_name: Tool about to run
            args: Parsed tool arguments
            usage: Calls made so far this turn, by tool name
        """
        if tool_name in self.custom_checkers:
            return self.custom_checkers[tool_name](args)

        if tool_name in self.denied_tools:
            return PermissionDecision(False, f"{tool_name} is denied", "high")

        if self.allowed_tools is not None and tool_name not in self.allowed_tools:
            return PermissionDecision(False, f"{tool_name} is not in the allowed tools", "medium")

        limit = self.max_calls.get(tool_name)
        if limit is not None and (usage or {}).get(tool_name, 0) >= limit:
            return PermissionDecision(False, f"{tool_name} call limit reached ({limit})", "medium")

        args_str = _args_text(args)

        for risk_level in _RISK_LEVELS_ORDER:
            for pattern in self.risk_patterns.get(risk_level, []):
                if re.search(pattern, args_str, re.IGNORECASE):
                    return PermissionDecision(False, f"matches {risk_level} risk pattern: {pattern}", risk_level)

        for pattern in self.tool_patterns.get(tool_name, []):
            if re.search(pattern, args_str, re.IGNORECASE):
                return PermissionDecision(False, f"matches tool pattern: {pattern}", "medium")

        return ALLOWED


def _args_text(args: Dict[str, Any]) -> str:
    return " ".join(str(v) for v in (args or {}).values())


class ToolUsageTracker:
    """Count tool calls within one turn."""

    def __init__(self, counts: Optional[Dict[str, int]] = None):
        self.counts: Dict[str, int] = counts if counts is not None else {}

    def record(self, tool_name: str) -> int:
        self.counts[tool_name] = self.counts.get(tool_name, 0) + 1
        return self.counts[tool_name]

    def get(self, tool_name: str) -> int:
        return self.counts.get(tool_name, 0)

    def reset(self, tool_names: Iterable[str] = ()) -> None:
        names = list(tool_names)
        if not names:
            self.counts.clear()
        for name in names:
            self.counts.pop(name, None)
