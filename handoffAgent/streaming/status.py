"""Status and data-part helpers written alongside agent output."""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

from .chunks import DATA_AGENT_HANDOFF, DATA_AGENT_STATUS, DATA_RATE_LIMIT, data_part
from .writer import StreamWriter

LOGGER = logging.getLogger(__name__)

AgentStatus = Literal["routing", "executing", "completing"]


def write_data_part(writer: StreamWriter, data_type: str, data: Any, transient: bool = False) -> None:
    writer.write(data_part(data_type, data, transient=transient))


def write_agent_status(writer: StreamWriter, agent_name: str, status: AgentStatus) -> None:
    """Emit a transient ``data-agent-status`` chunk for UI progress indicators."""
    write_data_part(writer, DATA_AGENT_STATUS, {"agent": agent_name, "status": status}, transient=True)


def write_agent_handoff(
    writer: StreamWriter,
    from_agent: str,
    to_agent: str,
    reason: Optional[str],
    routing_strategy: str,
) -> None:
    payload: Dict[str, Any] = {
        "from": from_agent,
        "to": to_agent,
        "reason": reason,
        "routing_strategy": routing_strategy,
    }
    write_data_part(writer, DATA_AGENT_HANDOFF, payload, transient=True)


def write_rate_limit(writer: StreamWriter, limit: int, remaining: int, reset: Optional[str] = None) -> None:
    write_data_part(writer, DATA_RATE_LIMIT, {"limit": limit, "remaining": remaining, "reset": reset})
