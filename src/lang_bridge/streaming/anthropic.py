"""Handler for Anthropic Messages API content-block events."""

from __future__ import annotations

import logging
from typing import Any

from lang_bridge.errors import ProviderStreamError
from lang_bridge.messages import MessageCollection
from lang_bridge.streaming.builder import AssistantMessageBuilder, PartialCallback

_logger = logging.getLogger(__name__)


class AnthropicStreamHandler:
    """Applies ``message_start`` / ``content_block_*`` / ``message_*`` events.

    Text and thinking deltas coalesce through the builder; only tool_use
    blocks need the block-index map, since their ``input_json_delta``
    fragments reference the block by index alone.
    """

    def __init__(
        self,
        collection: MessageCollection,
        on_partial: PartialCallback | None = None,
    ) -> None:
        self.builder = AssistantMessageBuilder(collection)
        self._on_partial = on_partial
        self._tool_blocks: dict[int, str] = {}

    def handle(self, event: dict[str, Any]) -> None:
        if event.get("finished"):
            self._finish()
            return

        kind = event.get("type")
        b = self.builder

        if kind == "message_start":
            message = event.get("message") or {}
            b.update_meta(
                anthropic_message_id=message.get("id"),
                usage=message.get("usage"),
            )
        elif kind == "content_block_start":
            self._start_block(event.get("index"), event.get("content_block") or {})
        elif kind == "content_block_delta":
            self._apply_delta(event.get("index"), event.get("delta") or {})
        elif kind == "message_delta":
            delta = event.get("delta") or {}
            b.update_meta(stop_reason=delta.get("stop_reason"))
            usage = event.get("usage")
            if isinstance(usage, dict):
                previous = b.ensure_message().meta.get("usage") or {}
                b.update_meta(usage={**previous, **usage})
        elif kind == "message_stop":
            self._finish()
            return
        elif kind == "error":
            error = event.get("error") or {}
            raise ProviderStreamError(
                error.get("message") or "Anthropic stream error",
                body=str(error),
                provider="anthropic",
            )
        elif kind in ("ping", "content_block_stop"):
            return

        self._notify()

    # ------------------------------------------------------------------

    def _start_block(self, index: Any, block: dict[str, Any]) -> None:
        b = self.builder
        kind = block.get("type")
        if kind == "text":
            b.ensure_message()
            b.append_text(block.get("text"))
        elif kind == "thinking":
            b.append_reasoning(block.get("thinking"))
        elif kind in ("tool_use", "server_tool_use"):
            key = b.resolve_tool_key(block.get("id"), index)
            if isinstance(index, int):
                self._tool_blocks[index] = key
            b.tool_call(key, call_id=block.get("id"))
            b.append_tool_name(key, block.get("name"))
            initial = block.get("input")
            if isinstance(initial, dict) and initial:
                b.set_tool_arguments(key, initial)
        else:
            _logger.debug("Ignoring content block of type %r", kind)

    def _apply_delta(self, index: Any, delta: dict[str, Any]) -> None:
        b = self.builder
        kind = delta.get("type")
        if kind == "text_delta":
            b.append_text(delta.get("text"))
        elif kind == "thinking_delta":
            b.append_reasoning(delta.get("thinking"))
        elif kind == "input_json_delta":
            key = self._tool_blocks.get(index) if isinstance(index, int) else None
            if key is None:
                _logger.warning("input_json_delta for unknown block %r", index)
                return
            b.append_tool_arguments(key, delta.get("partial_json"))
        elif kind == "signature_delta":
            b.update_meta(anthropic_thinking_signature=delta.get("signature"))

    def _finish(self) -> None:
        if self.builder.finish():
            self._notify()

    def _notify(self) -> None:
        if self._on_partial is not None and self.builder.message is not None:
            self._on_partial(self.builder.message)
