"""Stream multiplexer - drain one agent's chunk stream into the turn's sink.

Chunks of the reserved handoff tool are internal: they are identified by
mapping ``tool_call_id`` to the tool name announced in ``tool-input-start``
and never reach the consumer. Everything else is forwarded unchanged and
in arrival order. The stream is always drained to its end so the runner's
finish callback (usage tracking) fires.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from ..agents.handoff_tools import HANDOFF_TOOL_NAME, is_handoff_result
from ..streaming import chunks
from ..streaming.writer import StreamWriter

LOGGER = logging.getLogger(__name__)


@dataclass
class DrainResult:
    """What one round produced.

    Attributes:
        text: Concatenated text deltas
        handoff: Handoff instruction captured from the handoff tool, if any
        tool_results: Tool outputs by tool name (last write wins), by call id
            for calls never announced with tool-input-start
        tool_names: Tools called, in call order
        forwarded: Number of chunks written to the sink
    """

    text: str = ""
    handoff: Optional[Dict[str, Any]] = None
    tool_results: Dict[str, Any] = field(default_factory=dict)
    tool_names: List[str] = field(default_factory=list)
    forwarded: int = 0


async def drain_stream(
    stream: AsyncIterator[Dict[str, Any]],
    writer: StreamWriter,
    agent_name: str = "",
) -> DrainResult:
    """Forward ``stream`` into ``writer`` and collect text, tool results and the handoff."""
    result = DrainResult()
    texts: List[str] = []
    tool_names_by_id: Dict[str, str] = {}

    async for chunk in stream:
        if not chunks.is_chunk(chunk):
            LOGGER.warning(f"[{agent_name}] skipping malformed chunk: {chunk!r}")
            continue

        chunk_type = chunk["type"]
        call_id = chunk.get("tool_call_id")

        if chunk_type == chunks.TOOL_INPUT_START and call_id is not None:
            tool_name = chunk.get("tool_name")
            tool_names_by_id[call_id] = tool_name
            result.tool_names.append(tool_name)

        tool_name = tool_names_by_id.get(call_id) if call_id is not None else None
        internal = tool_name == HANDOFF_TOOL_NAME

        if chunk_type == chunks.TEXT_DELTA:
            texts.append(chunk.get("delta") or "")
        elif chunk_type == chunks.TOOL_OUTPUT_AVAILABLE and tool_name:
            output = chunk.get("output")
            result.tool_results[tool_name] = output
            if internal and is_handoff_result(output):
                result.handoff = output
                LOGGER.debug(f"[{agent_name}] captured handoff → {output.get('target_agent')}")
        elif chunk_type == chunks.TOOL_OUTPUT_AVAILABLE and call_id is not None:
            # No tool-input-start announced this call, keep the output under its call id
            LOGGER.debug(f"[{agent_name}] tool output for unannounced call {call_id}")
            result.tool_results[call_id] = chunk.get("output")

        if internal:
            continue

        if chunks.is_terminal(chunk):
            # The turn owns the single terminal marker
            LOGGER.debug(f"[{agent_name}] dropping agent-level {chunk_type} chunk")
            continue

        try:
            writer.write(chunk)
            result.forwarded += 1
        except Exception as e:
            LOGGER.warning(f"[{agent_name}] failed to write {chunk_type} chunk: {e}")

    result.text = "".join(texts)
    return result
