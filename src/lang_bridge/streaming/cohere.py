"""Handler for Cohere v2 chat stream events."""

from __future__ import annotations

import logging
from typing import Any

from lang_bridge.errors import ProviderStreamError
from lang_bridge.messages import MessageCollection
from lang_bridge.streaming.builder import AssistantMessageBuilder, PartialCallback

_logger = logging.getLogger(__name__)


def _message_delta(event: dict[str, Any]) -> dict[str, Any]:
    return (event.get("delta") or {}).get("message") or {}


class CohereStreamHandler:
    """Applies ``message-start`` ... ``message-end`` events."""

    def __init__(
        self,
        collection: MessageCollection,
        on_partial: PartialCallback | None = None,
    ) -> None:
        self.builder = AssistantMessageBuilder(collection)
        self._on_partial = on_partial

    def handle(self, event: dict[str, Any]) -> None:
        if event.get("finished"):
            self._finish()
            return

        kind = event.get("type")
        b = self.builder

        if kind == "message-start":
            b.update_meta(cohere_message_id=event.get("id"))
        elif kind == "content-delta":
            content = _message_delta(event).get("content") or {}
            if content.get("type") == "thinking" or "thinking" in content:
                b.append_reasoning(content.get("thinking") or content.get("text"))
            else:
                b.append_text(content.get("text"))
        elif kind == "tool-plan-delta":
            b.append_reasoning(_message_delta(event).get("tool_plan"))
        elif kind in ("tool-call-start", "tool-call-delta"):
            call = _message_delta(event).get("tool_calls") or {}
            key = b.resolve_tool_key(call.get("id"), event.get("index"))
            b.tool_call(key, call_id=call.get("id"))
            fn = call.get("function") or {}
            b.append_tool_name(key, fn.get("name"))
            b.append_tool_arguments(key, fn.get("arguments"))
        elif kind == "message-end":
            delta = event.get("delta") or {}
            b.update_meta(
                stop_reason=delta.get("finish_reason"),
                usage=delta.get("usage"),
            )
            self._finish()
            return
        elif kind == "error":
            raise ProviderStreamError(
                str(event.get("message") or event),
                body=str(event),
                provider="cohere",
            )
        else:
            _logger.debug("Ignoring Cohere event %r", kind)
            return

        self._notify()

    def _finish(self) -> None:
        if self.builder.finish():
            self._notify()

    def _notify(self) -> None:
        if self._on_partial is not None and self.builder.message is not None:
            self._on_partial(self.builder.message)
