"""Handler for Gemini ``streamGenerateContent?alt=sse`` chunks."""

from __future__ import annotations

from typing import Any

from lang_bridge.errors import ProviderStreamError
from lang_bridge.messages import MessageCollection
from lang_bridge.streaming.builder import AssistantMessageBuilder, PartialCallback


class GoogleStreamHandler:
    """Applies ``candidates[0].content.parts`` chunks.

    Gemini sends each function call whole in a single part, so tool calls
    without an id take a fresh synthetic key each time. The stream has no
    terminal sentinel; the provider synthesises ``{"finished": True}``.
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
            if self.builder.finish():
                self._notify()
            return

        error = event.get("error")
        if isinstance(error, dict):
            raise ProviderStreamError(
                error.get("message") or "Gemini stream error",
                status_code=error.get("code") if isinstance(error.get("code"), int) else None,
                body=str(error),
                provider="google",
            )

        b = self.builder
        candidates = event.get("candidates") or []
        if candidates:
            candidate = candidates[0] or {}
            for part in (candidate.get("content") or {}).get("parts") or []:
                self._apply_part(part)
            if candidate.get("finishReason"):
                b.update_meta(stop_reason=candidate["finishReason"])
        if isinstance(event.get("usageMetadata"), dict):
            b.update_meta(usage=event["usageMetadata"])

        self._notify()

    def _apply_part(self, part: dict[str, Any]) -> None:
        b = self.builder
        if "text" in part:
            if part.get("thought"):
                b.append_reasoning(part["text"])
            else:
                b.append_text(part["text"])
        call = part.get("functionCall")
        if isinstance(call, dict):
            key = b.resolve_tool_key(call.get("id"))
            b.tool_call(key, call_id=call.get("id"))
            b.append_tool_name(key, call.get("name"))
            b.set_tool_arguments(key, call.get("args") or {})
        inline = part.get("inlineData")
        if isinstance(inline, dict):
            b.add_image(base64=inline.get("data"), mime_type=inline.get("mimeType"))
        file_data = part.get("fileData")
        if isinstance(file_data, dict):
            b.add_image(url=file_data.get("fileUri"), mime_type=file_data.get("mimeType"))

    def _notify(self) -> None:
        if self._on_partial is not None and self.builder.message is not None:
            self._on_partial(self.builder.message)
