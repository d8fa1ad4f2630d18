"""
Tests for append-only accumulation of streaming chat-completion deltas.
"""

import json

import pytest

from wpwriter.llm.streaming.parser import ChunkAccumulator


def delta(content) -> str:
    return json.dumps({"choices": [{"delta": {"content": content}}]})


class TestChunkAccumulator:
    """Payload handling of the ChunkAccumulator."""

    def test_content_is_appended(self):
        """Each delta extends the accumulated content."""
        accumulator = ChunkAccumulator()
        first = accumulator.process_data(delta("Hel"))
        second = accumulator.process_data(delta("lo"))

        assert first.content == "Hel"
        assert first.accumulated_content == "Hel"
        assert second.content == "lo"
        assert second.accumulated_content == "Hello"
        assert accumulator.content == "Hello"

    def test_done_sentinel_ignored(self):
        """[DONE] produces no chunk and is counted as a completion marker."""
        accumulator = ChunkAccumulator()
        assert accumulator.process_data("[DONE]") is None
        assert accumulator.process_data(" [DONE] ") is None
        assert accumulator.get_statistics()["done_markers"] == 2
        assert accumulator.get_statistics()["error_chunks"] == 0

    def test_malformed_json_skipped(self):
        """Non-JSON payloads are counted and skipped; later deltas still apply."""
        accumulator = ChunkAccumulator()
        accumulator.process_data(delta("a"))
        assert accumulator.process_data("{broken") is None
        chunk = accumulator.process_data(delta("b"))

        assert chunk.accumulated_content == "ab"
        assert accumulator.get_statistics()["error_chunks"] == 1

    @pytest.mark.parametrize("payload", ["", "   ", "\n"])
    def test_empty_payload_skipped(self, payload):
        """Empty data fields are neither parse errors nor counted payloads."""
        accumulator = ChunkAccumulator()
        assert accumulator.process_data(payload) is None
        assert accumulator.get_statistics() == {
            "total_payloads": 0,
            "content_chunks": 0,
            "error_chunks": 0,
            "done_markers": 0,
        }

    @pytest.mark.parametrize(
        "payload",
        [
            "[]",
            "42",
            '"text"',
            "{}",
            '{"choices": []}',
            '{"choices": "nope"}',
            '{"choices": [null]}',
            '{"choices": [{}]}',
            '{"choices": [{"delta": null}]}',
            '{"choices": [{"delta": {}}]}',
            '{"choices": [{"delta": {"role": "assistant"}}]}',
            '{"choices": [{"delta": {"content": null}}]}',
            '{"choices": [{"delta": {"content": ""}}]}',
            '{"choices": [{"delta": {"content": 7}}]}',
        ],
    )
    def test_unexpected_shapes_skipped(self, payload):
        """Shapes without a string content delta are silently skipped."""
        accumulator = ChunkAccumulator()
        assert accumulator.process_data(payload) is None
        assert accumulator.content == ""
        assert accumulator.get_statistics()["error_chunks"] == 0

    def test_accumulation_is_append_only(self):
        """Every snapshot is a prefix-extension of the previous one."""
        accumulator = ChunkAccumulator()
        snapshots = []
        for piece in ["The ", "quick ", "", "brown ", "fox"]:
            chunk = accumulator.process_data(delta(piece))
            if chunk:
                snapshots.append(chunk.accumulated_content)

        for previous, current in zip(snapshots, snapshots[1:]):
            assert current.startswith(previous)
            assert len(current) > len(previous)
        assert snapshots[-1] == "The quick brown fox"

    def test_statistics_and_reset(self):
        """Counters track payloads and reset clears everything."""
        accumulator = ChunkAccumulator()
        accumulator.process_data(delta("x"))
        accumulator.process_data("not json")
        accumulator.process_data("[DONE]")

        assert accumulator.get_statistics() == {
            "total_payloads": 3,
            "content_chunks": 1,
            "error_chunks": 1,
            "done_markers": 1,
        }
        assert accumulator.state.streaming_duration >= 0.0

        accumulator.reset()
        assert accumulator.content == ""
        assert accumulator.get_statistics()["total_payloads"] == 0
