"""Stream chunk constructors and predicates.

Chunks are plain dicts with a ``type`` key, so they serialize to JSON lines
without conversion. Tool chunks carry ``tool_call_id``; custom data parts
use a ``data-`` type prefix and may be ``transient`` (not persisted by UIs).
"""

from __future__ import annotations

from typing import Any, Dict, Optional

Chunk = Dict[str, Any]

# ========== Chunk types ==========

TEXT_DELTA = "text-delta"
TOOL_INPUT_START = "tool-input-start"
TOOL_INPUT_DELTA = "tool-input-delta"
TOOL_INPUT_AVAILABLE = "tool-input-available"
TOOL_OUTPUT_AVAILABLE = "tool-output-available"
TOOL_OUTPUT_ERROR = "tool-output-error"
ERROR = "error"
FINISH = "finish"

DATA_AGENT_STATUS = "data-agent-status"
DATA_AGENT_HANDOFF = "data-agent-handoff"
DATA_RATE_LIMIT = "data-rate-limit"

TERMINAL_TYPES = frozenset({ERROR, FINISH})


def text_delta(delta: str) -> Chunk:
    return {"type": TEXT_DELTA, "delta": delta}


def tool_input_start(tool_call_id: str, tool_name: str) -> Chunk:
    return {"type": TOOL_INPUT_START, "tool_call_id": tool_call_id, "tool_name": tool_name}


def tool_input_delta(tool_call_id: str, input_text_delta: str) -> Chunk:
    return {"type": TOOL_INPUT_DELTA, "tool_call_id": tool_call_id, "input_text_delta": input_text_delta}


def tool_input_available(tool_call_id: str, tool_name: str, input: Dict[str, Any]) -> Chunk:
    return {
        "type": TOOL_INPUT_AVAILABLE,
        "tool_call_id": tool_call_id,
        "tool_name": tool_name,
        "input": input,
    }


def tool_output_available(tool_call_id: str, output: Any) -> Chunk:
    return {"type": TOOL_OUTPUT_AVAILABLE, "tool_call_id": tool_call_id, "output": output}


def tool_output_error(tool_call_id: str, error_text: str) -> Chunk:
    return {"type": TOOL_OUTPUT_ERROR, "tool_call_id": tool_call_id, "error_text": error_text}


def error(error_text: str) -> Chunk:
    return {"type": ERROR, "error_text": error_text}


def finish(finish_reason: Optional[str] = None) -> Chunk:
    chunk: Chunk = {"type": FINISH}
    if finish_reason:
        chunk["finish_reason"] = finish_reason
    return chunk


def data_part(data_type: str, data: Any, transient: bool = False, part_id: Optional[str] = None) -> Chunk:
    """Build a custom ``data-*`` chunk.

    Args:
        data_type: Chunk type, ``data-`` is prefixed when missing
        data: JSON-compatible payload
        transient: Whether consumers should treat the part as ephemeral
        part_id: Optional id so later parts can replace earlier ones
    """
    if not data_type.startswith("data-"):
        data_type = f"data-{data_type}"
    chunk: Chunk = {"type": data_type, "data": data}
    if part_id:
        chunk["id"] = part_id
    if transient:
        chunk["transient"] = True
    return chunk


# ========== Predicates ==========

def is_chunk(value: Any) -> bool:
    """A well-formed chunk is a dict with a string ``type``."""
    return isinstance(value, dict) and isinstance(value.get("type"), str)


def is_terminal(chunk: Chunk) -> bool:
    return chunk.get("type") in TERMINAL_TYPES
