"""Stream chunks and the per-turn output sink."""

from . import chunks
from .chunks import Chunk, is_chunk, is_terminal
from .status import write_agent_handoff, write_agent_status, write_data_part, write_rate_limit
from .writer import StreamWriter

__all__ = [
    "Chunk",
    "StreamWriter",
    "chunks",
    "is_chunk",
    "is_terminal",
    "write_agent_handoff",
    "write_agent_status",
    "write_data_part",
    "write_rate_limit",
]
