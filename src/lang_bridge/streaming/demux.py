"""Split a streamed HTTP body into protocol events.

Two framings are recognised, chosen once per stream from the first
non-blank character:

* ``{`` -- newline-delimited JSON, one object per line;
* anything else -- Server-Sent Events (``event:`` / ``data:`` lines).

``data: [DONE]`` becomes the synthetic event ``{"finished": True}``.
Malformed JSON raises :class:`~lang_bridge.errors.StreamParseError`;
nothing is silently dropped.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Callable

from lang_bridge.errors import StreamParseError

_logger = logging.getLogger(__name__)

EventCallback = Callable[[dict[str, Any]], None]

_DONE = "[DONE]"


class EventDemultiplexer:
    """Stateful line splitter for one response body.

    Create a fresh instance per request. ``feed`` accepts arbitrary text
    chunks; ``close`` drains a final line that arrived without a newline.
    """

    def __init__(self, on_event: EventCallback) -> None:
        self._on_event = on_event
        self._buffer = ""
        self._ndjson: bool | None = None
        self._pending_event: str | None = None
        self._closed = False

    @property
    def mode(self) -> str | None:
        if self._ndjson is None:
            return None
        return "ndjson" if self._ndjson else "sse"

    def feed(self, chunk: str) -> None:
        if self._closed:
            raise RuntimeError("feed() called after close()")
        if not chunk:
            return
        self._buffer += chunk
        if self._ndjson is None:
            head = self._buffer.lstrip()
            if not head:
                return
            self._ndjson = head.startswith("{")
            _logger.debug("Stream framing detected: %s", self.mode)

        while True:
            nl = self._buffer.find("\n")
            if nl < 0:
                break
            line = self._buffer[:nl]
            self._buffer = self._buffer[nl + 1:]
            self._process_line(line)

    def close(self) -> None:
        """Flush the trailing unterminated line, if any."""
        if self._closed:
            return
        self._closed = True
        rest, self._buffer = self._buffer, ""
        if rest.strip():
            if self._ndjson is None:
                self._ndjson = rest.lstrip().startswith("{")
            self._process_line(rest)

    # ------------------------------------------------------------------

    def _process_line(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.strip():
            return
        if self._ndjson:
            self._emit(self._parse(line.strip(), line))
            return

        if line.startswith(":"):
            return
        if line.startswith("event:"):
            self._pending_event = line[len("event:"):].strip() or None
            return
        if line.startswith("data:"):
            payload = line[len("data:"):].strip()
            if payload == _DONE:
                self._pending_event = None
                self._emit({"finished": True})
                return
            event = self._parse(payload, line)
            if (
                self._pending_event
                and isinstance(event, dict)
                and "type" not in event
            ):
                event["type"] = self._pending_event
            self._pending_event = None
            self._emit(event)
            return
        # id:, retry: and unknown fields carry nothing we use.
        _logger.debug("Ignoring SSE line: %r", line[:80])

    @staticmethod
    def _parse(payload: str, line: str) -> Any:
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise StreamParseError(
                f"Malformed JSON in stream: {e.msg}", line=line,
            ) from e

    def _emit(self, event: Any) -> None:
        if not isinstance(event, dict):
            raise StreamParseError(
                f"Expected a JSON object, got {type(event).__name__}",
                line=json.dumps(event),
            )
        self._on_event(event)


def process_lines(raw: str, on_event: EventCallback) -> None:
    """Demultiplex a complete body held in memory."""
    demux = EventDemultiplexer(on_event)
    demux.feed(raw)
    demux.close()


async def demultiplex(chunks: AsyncIterator[str], on_event: EventCallback) -> None:
    """Drive an :class:`EventDemultiplexer` from an async text iterator."""
    demux = EventDemultiplexer(on_event)
    async for chunk in chunks:
        demux.feed(chunk)
    demux.close()
