"""Tests for the SSE / NDJSON event demultiplexer."""

from __future__ import annotations

import pytest

from lang_bridge.errors import StreamParseError
from lang_bridge.streaming.demux import EventDemultiplexer, demultiplex, process_lines


def _collect(raw: str) -> list[dict]:
    events: list[dict] = []
    process_lines(raw, events.append)
    return events


async def _chunks(*parts: str):
    for p in parts:
        yield p


class TestSSE:
    def test_data_lines(self):
        events = _collect('data: {"a": 1}\n\ndata: {"a": 2}\n\n')
        assert events == [{"a": 1}, {"a": 2}]

    def test_done_sentinel(self):
        events = _collect('data: {"a": 1}\n\ndata: [DONE]\n\n')
        assert events[-1] == {"finished": True}

    def test_event_name_attached_as_type(self):
        events = _collect('event: message_start\ndata: {"message": {}}\n\n')
        assert events == [{"message": {}, "type": "message_start"}]

    def test_existing_type_not_overwritten(self):
        events = _collect('event: ping\ndata: {"type": "content_block_delta"}\n\n')
        assert events[0]["type"] == "content_block_delta"

    def test_event_name_applies_only_to_next_data(self):
        events = _collect('event: first\ndata: {"x": 1}\n\ndata: {"x": 2}\n\n')
        assert events[0]["type"] == "first"
        assert "type" not in events[1]

    def test_done_resets_pending_event(self):
        events = _collect('event: stale\ndata: [DONE]\n\ndata: {"x": 1}\n\n')
        assert events == [{"finished": True}, {"x": 1}]

    def test_comments_and_crlf(self):
        events = _collect(': keep-alive\r\ndata: {"a": 1}\r\n\r\n')
        assert events == [{"a": 1}]

    def test_data_without_space(self):
        assert _collect('data:{"a":1}\n') == [{"a": 1}]

    def test_malformed_json_raises(self):
        with pytest.raises(StreamParseError) as exc_info:
            _collect('data: {"a": \n\n')
        assert 'data: {"a":' in exc_info.value.line

    def test_non_object_payload_raises(self):
        with pytest.raises(StreamParseError):
            _collect("data: [1, 2]\n\n")

    def test_trailing_line_without_newline_is_drained(self):
        assert _collect('data: {"a": 1}\n\ndata: {"a": 2}') == [{"a": 1}, {"a": 2}]


class TestChunkBoundaries:
    def test_line_split_across_chunks(self):
        events: list[dict] = []
        demux = EventDemultiplexer(events.append)
        demux.feed('data: {"text": "he')
        assert events == []
        demux.feed('llo"}\n\n')
        demux.close()
        assert events == [{"text": "hello"}]

    def test_event_name_survives_chunk_boundary(self):
        events: list[dict] = []
        demux = EventDemultiplexer(events.append)
        demux.feed("event: content_block_delta\n")
        demux.feed('data: {"index": 0}\n\n')
        demux.close()
        assert events == [{"index": 0, "type": "content_block_delta"}]

    def test_feed_after_close_rejected(self):
        demux = EventDemultiplexer(lambda e: None)
        demux.close()
        with pytest.raises(RuntimeError):
            demux.feed("data: {}\n")

    async def test_async_demultiplex(self):
        events: list[dict] = []
        await demultiplex(
            _chunks("da", 'ta: {"n": 1}\n', "\ndata: [DO", "NE]\n\n"),
            events.append,
        )
        assert events == [{"n": 1}, {"finished": True}]


class TestNDJSON:
    def test_mode_detected_from_brace(self):
        events: list[dict] = []
        demux = EventDemultiplexer(events.append)
        demux.feed('{"response": "a", "done": false}\n{"response": "b"')
        demux.feed(', "done": true}')
        demux.close()
        assert demux.mode == "ndjson"
        assert [e["response"] for e in events] == ["a", "b"]

    def test_leading_whitespace_before_brace(self):
        assert _collect('\n  {"a": 1}\n{"a": 2}\n') == [{"a": 1}, {"a": 2}]

    def test_sse_mode_reported(self):
        demux = EventDemultiplexer(lambda e: None)
        demux.feed("data: {}\n")
        assert demux.mode == "sse"

    def test_malformed_line_raises(self):
        with pytest.raises(StreamParseError):
            _collect('{"a": 1}\n{"a": \n')
