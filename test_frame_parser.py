"""
Tests for the incremental SSE frame parser.

Frames must come out identical no matter how the stream is chunked.
"""

import pytest

from wpwriter.llm.streaming.models import EventFrame
from wpwriter.llm.streaming.parser import SSEFrameParser, split_batched_payload

STREAM = (
    ": keep-alive comment\n"
    'data: {"choices":[{"delta":{"content":"Hel"}}]}\n'
    "\n"
    "event: message\n"
    "id: 42\n"
    'data: {"choices":[{"delta":{"content":"lo"}}]}\n'
    "\n"
    "data: first line\n"
    "data: second line\n"
    "\n"
    "retry: 3000\n"
    "\n"
    "data: [DONE]\n"
    "\n"
)


def parse(*fragments: str, flush: bool = True) -> list[EventFrame]:
    frames: list[EventFrame] = []
    parser = SSEFrameParser(on_event=frames.append)
    for fragment in fragments:
        parser.feed(fragment)
    if flush:
        parser.flush()
    return frames


class TestFraming:
    """Field handling and dispatch rules."""

    def test_single_chunk_stream(self):
        """Each blank-line terminated block becomes one frame, in order."""
        frames = parse(STREAM)
        assert [f.data for f in frames] == [
            '{"choices":[{"delta":{"content":"Hel"}}]}',
            '{"choices":[{"delta":{"content":"lo"}}]}',
            "first line\nsecond line",
            "[DONE]",
        ]

    def test_event_and_id_fields(self):
        """event and id apply to their own frame only."""
        frames = parse(STREAM)
        assert frames[0].event is None
        assert frames[1].event == "message"
        assert frames[1].id == "42"
        assert frames[2].event is None
        assert frames[2].id is None

    def test_retry_directive_reported(self):
        """Numeric retry values are reported; the frame without data is not emitted."""
        intervals: list[int] = []
        frames: list[EventFrame] = []
        parser = SSEFrameParser(on_event=frames.append, on_retry=intervals.append)
        parser.feed("retry: 1500\n\nretry: soon\n\ndata: x\n\n")
        assert intervals == [1500]
        assert [f.data for f in frames] == ["x"]

    def test_comments_and_unknown_fields_ignored(self):
        """Comment lines and unrecognized fields never raise or leak into data."""
        frames = parse(": ping\nfoo: bar\nnocolon\ndata: payload\n\n")
        assert frames == [EventFrame(data="payload")]

    def test_only_one_leading_space_stripped(self):
        """A single space after the colon is removed, the rest is kept."""
        frames = parse("data:no-space\ndata:  two-spaces\n\n")
        assert frames[0].data == "no-space\n two-spaces"

    def test_blank_line_without_data_emits_nothing(self):
        """Blank lines with no pending data are ignored."""
        assert parse("\n\n\nevent: lonely\n\n") == []

    def test_empty_data_field_is_a_frame(self):
        """A data field with an empty value still produces a frame."""
        assert parse("data:\n\n") == [EventFrame(data="")]

    def test_malformed_payload_passed_verbatim(self):
        """The parser never validates payload content."""
        frames = parse("data: {not json\n\n")
        assert frames[0].data == "{not json"

    @pytest.mark.parametrize("newline", ["\n", "\r\n", "\r"])
    def test_line_terminators(self, newline):
        """LF, CRLF and lone CR all terminate lines."""
        text = f"data: a{newline}data: b{newline}{newline}data: c{newline}{newline}"
        assert [f.data for f in parse(text)] == ["a\nb", "c"]

    def test_crlf_split_between_fragments(self):
        """A CR ending one fragment and its LF opening the next is one terminator."""
        frames = parse("data: a\r", "\n\r", "\ndata: b\r\n\r\n")
        assert [f.data for f in frames] == ["a", "b"]

    def test_leading_bom_stripped(self):
        """A byte-order mark before the first field is ignored."""
        assert parse("\ufeffdata: x\n\n") == [EventFrame(data="x")]


class TestChunkBoundaries:
    """Frames are independent of where the network splits the stream."""

    def test_every_two_way_split(self):
        """Splitting at any character position yields the same frames."""
        expected = parse(STREAM)
        for index in range(len(STREAM) + 1):
            assert parse(STREAM[:index], STREAM[index:]) == expected, index

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 11])
    def test_fixed_size_chunks(self, size):
        """Many small fragments yield the same frames as one large one."""
        fragments = [STREAM[i:i + size] for i in range(0, len(STREAM), size)]
        assert parse(*fragments) == parse(STREAM)

    def test_no_frame_before_terminator(self):
        """A frame is only emitted once its blank line arrives."""
        frames: list[EventFrame] = []
        parser = SSEFrameParser(on_event=frames.append)
        parser.feed('data: {"choices":[{"delta"')
        assert frames == []
        parser.feed(':{"content":"X"}}]}\n')
        assert frames == []
        parser.feed("\n")
        assert [f.data for f in frames] == ['{"choices":[{"delta":{"content":"X"}}]}']

    def test_unterminated_frame_discarded_on_flush(self):
        """An incomplete trailing frame at stream end is dropped, not guessed at."""
        frames = parse("data: complete\n\ndata: partial\n")
        assert [f.data for f in frames] == ["complete"]
        assert parse("data: no newline at all") == []

    def test_flush_clears_state(self):
        """After flush the parser starts from a clean slate."""
        frames: list[EventFrame] = []
        parser = SSEFrameParser(on_event=frames.append)
        parser.feed("data: stale\n")
        assert parser.has_pending
        parser.flush()
        assert not parser.has_pending
        parser.feed("\n")
        assert frames == []


class TestBatchedPayloads:
    """Splitting of backslash-space batched data fields."""

    def test_split_on_separator(self):
        first = '{"choices":[{"delta":{"content":"a"}}]}'
        second = '{"choices":[{"delta":{"content":"b"}}]}'
        assert split_batched_payload(f"{first}\\ {second}") == [first, second]

    def test_plain_payload_untouched(self):
        assert split_batched_payload('{"a": "b c"}') == ['{"a": "b c"}']

    def test_blank_pieces_dropped(self):
        assert split_batched_payload("x\\ \\ y\\ ") == ["x", "y"]
