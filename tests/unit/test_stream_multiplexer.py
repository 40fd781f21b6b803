"""Unit tests for the stream multiplexer."""

import pytest

from fakes import handoff_round, text_round, tool_round
from handoffAgent.orchestration.multiplexer import drain_stream
from handoffAgent.streaming import StreamWriter, chunks


async def as_stream(items):
    for item in items:
        yield item


class TestDrainStream:
    """Partitioning of internal and user-visible chunks."""

    @pytest.mark.asyncio
    async def test_text_is_forwarded_and_accumulated(self):
        """Should forward text deltas and join them."""
        writer = StreamWriter()
        result = await drain_stream(as_stream(text_round("Hel", "lo")), writer, "a")

        assert result.text == "Hello"
        assert result.handoff is None
        assert writer.history == text_round("Hel", "lo")
        assert result.forwarded == 2

    @pytest.mark.asyncio
    async def test_handoff_chunks_are_internal(self):
        """Should hide every chunk of the handoff tool call and capture the instruction."""
        writer = StreamWriter()
        stream = handoff_round("billing", reason="invoice", context="C-7", text="One sec")

        result = await drain_stream(as_stream(stream), writer, "triage")

        assert result.handoff == {
            "type": "handoff",
            "target_agent": "billing",
            "reason": "invoice",
            "context": "C-7",
        }
        assert writer.history == text_round("One sec")
        assert result.text == "One sec"

    @pytest.mark.asyncio
    async def test_trailing_chunks_after_handoff_are_drained(self):
        """Should keep forwarding after the handoff result arrives."""
        writer = StreamWriter()
        stream = handoff_round("billing", trailing_text="tail")

        result = await drain_stream(as_stream(stream), writer, "triage")

        assert result.handoff["target_agent"] == "billing"
        assert writer.history == text_round("tail")
        assert result.text == "tail"

    @pytest.mark.asyncio
    async def test_tool_results_by_name_last_write_wins(self):
        """Should record tool outputs by tool name, last one winning."""
        writer = StreamWriter()
        stream = (
            tool_round("search", {"q": "a"}, ["first"], call_id="c1")
            + tool_round("search", {"q": "b"}, ["second"], call_id="c2")
            + tool_round("lookup", {"id": 1}, {"id": 1}, call_id="c3")
        )

        result = await drain_stream(as_stream(stream), writer, "a")

        assert result.tool_results == {"search": ["second"], "lookup": {"id": 1}}
        assert result.tool_names == ["search", "search", "lookup"]
        assert writer.history == stream

    @pytest.mark.asyncio
    async def test_unannounced_tool_output_kept_by_call_id(self, caplog):
        """Should keep an output whose call never had a tool-input-start, keyed by call id."""
        writer = StreamWriter()
        orphan = chunks.tool_output_available("c9", {"status": "paid"})

        with caplog.at_level("DEBUG", logger="handoffAgent.orchestration.multiplexer"):
            result = await drain_stream(as_stream([orphan] + text_round("ok")), writer, "a")

        assert result.tool_results == {"c9": {"status": "paid"}}
        assert result.tool_names == []
        assert result.handoff is None
        assert writer.history[0] == orphan
        assert "unannounced call c9" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_chunk_is_skipped(self):
        """Should log and skip a malformed chunk without aborting."""
        writer = StreamWriter()
        stream = [chunks.text_delta("a"), "garbage", {"no_type": True}, chunks.text_delta("b")]

        result = await drain_stream(as_stream(stream), writer, "a")

        assert result.text == "ab"
        assert writer.history == [chunks.text_delta("a"), chunks.text_delta("b")]

    @pytest.mark.asyncio
    async def test_unwritable_chunk_is_skipped(self, mocker):
        """Should keep draining when the sink rejects a chunk."""
        writer = StreamWriter()
        original_write = writer.write
        calls = []

        def flaky_write(chunk):
            calls.append(chunk)
            if len(calls) == 1:
                raise RuntimeError("socket hiccup")
            original_write(chunk)

        mocker.patch.object(writer, "write", side_effect=flaky_write)

        result = await drain_stream(as_stream(text_round("a", "b", "c")), writer, "a")

        assert result.text == "abc"
        assert result.forwarded == 2
        assert writer.history == text_round("b", "c")

    @pytest.mark.asyncio
    async def test_agent_level_terminal_chunks_are_not_forwarded(self):
        """Should leave the terminal marker to the turn."""
        writer = StreamWriter()
        stream = text_round("a") + [chunks.finish("stop")]

        await drain_stream(as_stream(stream), writer, "a")

        assert not writer.closed
        assert writer.history == text_round("a")

    @pytest.mark.asyncio
    async def test_non_handoff_output_of_handoff_tool_is_ignored(self):
        """Should only capture results shaped like a handoff instruction."""
        writer = StreamWriter()
        stream = [
            chunks.tool_input_start("h1", "handoff_to_agent"),
            chunks.tool_output_available("h1", "not an instruction"),
        ]

        result = await drain_stream(as_stream(stream), writer, "a")

        assert result.handoff is None
        assert writer.history == []
