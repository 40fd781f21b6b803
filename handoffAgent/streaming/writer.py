"""Append-only output sink for one turn."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List, Optional

from ..utils.errors import SinkClosedError
from .chunks import Chunk, error as error_chunk, finish as finish_chunk, is_chunk, is_terminal

LOGGER = logging.getLogger(__name__)

_CLOSED = object()


class StreamWriter:
    """Ordered chunk channel with exactly one terminal marker.

    The producer side calls ``write()``; the consumer iterates with
    ``async for``. Once ``finish`` or ``error`` has been written the sink is
    closed and any further ``write()`` raises ``SinkClosedError``.

    Args:
        keep_history: Retain every written chunk in ``history`` (useful for
            non-streaming callers and tests)
    """

    def __init__(self, keep_history: bool = True):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._keep_history = keep_history
        self.history: List[Chunk] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, chunk: Chunk) -> None:
        """Append a chunk; a terminal chunk closes the sink."""
        if self._closed:
            raise SinkClosedError(f"Cannot write '{chunk.get('type') if isinstance(chunk, dict) else chunk}' after terminal marker")
        if not is_chunk(chunk):
            raise ValueError(f"Malformed chunk: {chunk!r}")

        self._queue.put_nowait(chunk)
        if self._keep_history:
            self.history.append(chunk)

        if is_terminal(chunk):
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def finish(self, finish_reason: Optional[str] = None) -> None:
        self.write(finish_chunk(finish_reason))

    def fail(self, error_text: str) -> None:
        self.write(error_chunk(error_text))

    def close(self, error_text: Optional[str] = None) -> bool:
        """Write the terminal marker if it has not been written yet.

        Returns:
            True if this call closed the sink
        """
        if self._closed:
            return False
        if error_text is None:
            self.finish()
        else:
            self.fail(error_text)
        return True

    async def __aiter__(self) -> AsyncIterator[Chunk]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    # ========== Helpers for tests and non-streaming callers ==========

    def chunks_of_type(self, chunk_type: str) -> List[Chunk]:
        return [c for c in self.history if c.get("type") == chunk_type]

    def text(self) -> str:
        return "".join(c.get("delta", "") for c in self.chunks_of_type("text-delta"))
