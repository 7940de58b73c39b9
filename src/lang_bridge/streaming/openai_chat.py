"""Handler for chat-completions style deltas (OpenAI and compatible APIs).

Also used for Groq, DeepSeek, Mistral, xAI and OpenRouter, which all
stream ``choices[0].delta`` chunks.
"""

from __future__ import annotations

import logging
from typing import Any

from lang_bridge.errors import ProviderStreamError
from lang_bridge.messages import MessageCollection
from lang_bridge.streaming.builder import AssistantMessageBuilder, PartialCallback
from lang_bridge.streaming.thinking import ThinkTagSplitter

_logger = logging.getLogger(__name__)

# Key used for the legacy single ``function_call`` delta.
_LEGACY_FUNCTION_KEY = "function_call"


class OpenAIChatStreamHandler:
    """Applies ``chat.completion.chunk`` events to a collection.

    Parameters
    ----------
    collection:
        Conversation to grow in place.
    on_partial:
        Called once per event with the trailing assistant message.
    think_tags:
        Treat ``<think>...</think>`` in ``content`` as reasoning. Needed for
        open-weight reasoning models served behind compatible endpoints.
    """

    def __init__(
        self,
        collection: MessageCollection,
        on_partial: PartialCallback | None = None,
        *,
        think_tags: bool = False,
    ) -> None:
        self.builder = AssistantMessageBuilder(collection)
        self._on_partial = on_partial
        self._splitter = ThinkTagSplitter() if think_tags else None

    def handle(self, event: dict[str, Any]) -> None:
        if event.get("finished"):
            self._finish()
            return

        error = event.get("error")
        if isinstance(error, dict):
            raise ProviderStreamError(
                str(error.get("message") or error),
                status_code=error.get("code") if isinstance(error.get("code"), int) else None,
            )

        if isinstance(event.get("usage"), dict):
            self.builder.update_meta(usage=event["usage"])

        choices = event.get("choices")
        if isinstance(choices, list) and choices:
            choice = choices[0] or {}
            delta = choice.get("delta") or choice.get("message") or {}
            self._apply_delta(delta)
            if choice.get("finish_reason"):
                self.builder.update_meta(stop_reason=choice["finish_reason"])

        self._notify()

    # ------------------------------------------------------------------

    def _apply_delta(self, delta: dict[str, Any]) -> None:
        b = self.builder
        for key in ("reasoning_content", "reasoning"):
            b.append_reasoning(delta.get(key))

        content = delta.get("content")
        if isinstance(content, str):
            self._append_content_text(content)
        elif isinstance(content, list):
            for part in content:
                self._apply_content_part(part)

        for image in delta.get("images") or []:
            url = (image.get("image_url") or {}).get("url")
            b.add_image(url=url)

        for tc in delta.get("tool_calls") or []:
            key = b.resolve_tool_key(tc.get("id"), tc.get("index"))
            b.tool_call(key, call_id=tc.get("id"))
            fn = tc.get("function") or {}
            b.append_tool_name(key, fn.get("name"))
            args = fn.get("arguments")
            if isinstance(args, dict):
                b.set_tool_arguments(key, args)
            else:
                b.append_tool_arguments(key, args)

        legacy = delta.get("function_call")
        if isinstance(legacy, dict):
            b.tool_call(_LEGACY_FUNCTION_KEY)
            b.append_tool_name(_LEGACY_FUNCTION_KEY, legacy.get("name"))
            b.append_tool_arguments(_LEGACY_FUNCTION_KEY, legacy.get("arguments"))

    def _apply_content_part(self, part: Any) -> None:
        if isinstance(part, str):
            self._append_content_text(part)
            return
        if not isinstance(part, dict):
            return
        kind = part.get("type")
        if kind in ("text", "output_text"):
            self._append_content_text(part.get("text"))
        elif kind in ("reasoning", "thinking"):
            self.builder.append_reasoning(part.get("text") or part.get("thinking"))
        elif kind == "image_url":
            self.builder.add_image(url=(part.get("image_url") or {}).get("url"))
        else:
            _logger.debug("Ignoring content part of type %r", kind)

    def _append_content_text(self, text: Any) -> None:
        if not isinstance(text, str) or not text:
            return
        if self._splitter is None:
            self.builder.append_text(text)
        else:
            self.builder.replace_split(*self._splitter.feed(text))

    def _finish(self) -> None:
        if self._splitter is not None and self._splitter.raw:
            self.builder.replace_split(*self._splitter.finish())
        if self.builder.finish():
            self._notify()

    def _notify(self) -> None:
        if self._on_partial is not None and self.builder.message is not None:
            self._on_partial(self.builder.message)
