"""Handler for the OpenAI Responses API typed event stream."""

from __future__ import annotations

import logging
from typing import Any

from lang_bridge.errors import ProviderStreamError
from lang_bridge.messages import MessageCollection
from lang_bridge.streaming.builder import AssistantMessageBuilder, PartialCallback

_logger = logging.getLogger(__name__)

_TEXT_DELTAS = ("response.output_text.delta", "response.refusal.delta")
_REASONING_DELTAS = (
    "response.reasoning_summary_text.delta",
    "response.reasoning_text.delta",
)


class OpenAIResponsesStreamHandler:
    """Applies ``response.*`` events.

    Function calls are keyed by output item id (``fc_...``); the
    ``call_id`` the API expects back with the result is stored on the
    tool-request item. The response id is kept in ``meta`` under
    ``openai_response_id`` for ``previous_response_id`` continuation.
    """

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

        kind = event.get("type", "")
        b = self.builder

        if kind in ("response.created", "response.in_progress"):
            response = event.get("response") or {}
            b.update_meta(openai_response_id=response.get("id"))
        elif kind == "response.output_item.added":
            self._item_added(event.get("item") or {}, event.get("output_index"))
        elif kind == "response.output_item.done":
            self._item_done(event.get("item") or {}, event.get("output_index"))
        elif kind in _TEXT_DELTAS:
            b.append_text(event.get("delta"))
        elif kind in _REASONING_DELTAS:
            b.append_reasoning(event.get("delta"))
        elif kind == "response.function_call_arguments.delta":
            key = b.resolve_tool_key(event.get("item_id"), event.get("output_index"))
            b.append_tool_arguments(key, event.get("delta"))
        elif kind == "response.function_call_arguments.done":
            key = b.resolve_tool_key(event.get("item_id"), event.get("output_index"))
            b.set_tool_arguments(key, event.get("arguments"))
        elif kind in ("response.completed", "response.incomplete"):
            response = event.get("response") or {}
            b.update_meta(
                openai_response_id=response.get("id"),
                usage=response.get("usage"),
                stop_reason=(response.get("incomplete_details") or {}).get("reason"),
            )
            self._finish()
            return
        elif kind == "response.failed":
            response = event.get("response") or {}
            error = response.get("error") or {}
            raise ProviderStreamError(
                error.get("message") or "Response failed",
                body=str(error),
                provider="openai",
            )
        elif kind == "error":
            raise ProviderStreamError(
                event.get("message") or "OpenAI stream error",
                body=str(event),
                provider="openai",
            )
        else:
            return

        self._notify()

    # ------------------------------------------------------------------

    def _item_added(self, item: dict[str, Any], output_index: Any) -> None:
        b = self.builder
        kind = item.get("type")
        if kind == "function_call":
            key = b.resolve_tool_key(item.get("id") or item.get("call_id"), output_index)
            b.tool_call(key, call_id=item.get("call_id"))
            b.append_tool_name(key, item.get("name"))
            if item.get("arguments"):
                b.set_tool_arguments(key, item["arguments"])
        elif kind in ("message", "reasoning"):
            b.ensure_message()

    def _item_done(self, item: dict[str, Any], output_index: Any) -> None:
        b = self.builder
        kind = item.get("type")
        if kind == "function_call":
            key = b.resolve_tool_key(item.get("id") or item.get("call_id"), output_index)
            b.tool_call(key, call_id=item.get("call_id"))
            b.append_tool_name(key, item.get("name"))
            if item.get("arguments") is not None:
                b.set_tool_arguments(key, item["arguments"])
        elif kind == "image_generation_call":
            result = item.get("result")
            if result:
                fmt = item.get("output_format") or "png"
                b.add_image(base64=result, mime_type=f"image/{fmt}")
        elif kind == "reasoning":
            # Encrypted reasoning must be replayed verbatim on the next turn.
            if item.get("encrypted_content"):
                b.update_meta(openai_reasoning_item=item)

    def _finish(self) -> None:
        if self.builder.finish():
            self._notify()

    def _notify(self) -> None:
        if self._on_partial is not None and self.builder.message is not None:
            self._on_partial(self.builder.message)
