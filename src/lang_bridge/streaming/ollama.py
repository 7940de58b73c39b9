"""Handler for Ollama NDJSON (``/api/chat`` and ``/api/generate``)."""

from __future__ import annotations

from typing import Any

from lang_bridge.errors import ProviderStreamError
from lang_bridge.messages import MessageCollection
from lang_bridge.streaming.builder import AssistantMessageBuilder, PartialCallback
from lang_bridge.streaming.thinking import ThinkTagSplitter


class OllamaStreamHandler:
    """Applies one JSON object per line until ``done`` is true.

    Local reasoning models usually inline ``<think>`` blocks in the
    content, so tag extraction is always on here. A separate
    ``message.thinking`` field (``think: true`` requests) goes straight
    to the reasoning channel.
    """

    def __init__(
        self,
        collection: MessageCollection,
        on_partial: PartialCallback | None = None,
    ) -> None:
        self.builder = AssistantMessageBuilder(collection)
        self._on_partial = on_partial
        self._splitter = ThinkTagSplitter()

    def handle(self, event: dict[str, Any]) -> None:
        if event.get("finished"):
            self._finish()
            return
        if "error" in event:
            raise ProviderStreamError(
                str(event["error"]), body=str(event), provider="ollama",
            )

        b = self.builder
        message = event.get("message") or {}
        b.append_reasoning(message.get("thinking") or event.get("thinking"))

        text = message.get("content")
        if not isinstance(text, str):
            text = event.get("response")
        if isinstance(text, str) and text:
            b.replace_split(*self._splitter.feed(text))

        for call in message.get("tool_calls") or []:
            fn = call.get("function") or {}
            key = b.resolve_tool_key(call.get("id"), fn.get("index"))
            b.tool_call(key, call_id=call.get("id"))
            b.append_tool_name(key, fn.get("name"))
            b.set_tool_arguments(key, fn.get("arguments") or {})

        if event.get("done"):
            usage = {
                k: event[k] for k in ("prompt_eval_count", "eval_count") if k in event
            }
            b.update_meta(
                stop_reason=event.get("done_reason"),
                usage=usage or None,
            )
            self._finish()
            return

        self._notify()

    def _finish(self) -> None:
        if self._splitter.raw:
            self.builder.replace_split(*self._splitter.finish())
        if self.builder.finish():
            self._notify()

    def _notify(self) -> None:
        if self._on_partial is not None and self.builder.message is not None:
            self._on_partial(self.builder.message)
