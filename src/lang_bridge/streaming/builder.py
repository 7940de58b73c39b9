"""Mutation primitives shared by every stream handler.

Handlers never touch ``Message.items`` directly; they go through an
:class:`AssistantMessageBuilder`, which guarantees that

* consecutive deltas of one kind coalesce into the trailing item,
* tool-call arguments are buffered per call and swapped in only when the
  buffer parses,
* finalisation happens at most once.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from lang_bridge.messages import Message, MessageCollection
from lang_bridge.types import ImageItem, ReasoningItem, TextItem, ToolRequestItem

_logger = logging.getLogger(__name__)

PartialCallback = Callable[[Message], None]


def _parse_arguments(buffer: str) -> dict[str, Any] | None:
    try:
        value = json.loads(buffer)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


class AssistantMessageBuilder:
    """Grows the trailing assistant message of a collection in place."""

    def __init__(self, collection: MessageCollection) -> None:
        self.collection = collection
        self.message: Message | None = None
        self._tool_items: dict[str, ToolRequestItem] = {}
        self._arg_buffers: dict[str, str] = {}
        self._index_keys: dict[int, str] = {}
        self._positional: set[str] = set()
        self._id_keys: dict[str, str] = {}
        self._synthetic = 0
        self._split_text: TextItem | None = None
        self._split_reasoning: ReasoningItem | None = None
        self._finalized = False

    # ------------------------------------------------------------------
    # Message
    # ------------------------------------------------------------------

    def ensure_message(self) -> Message:
        if self.message is None:
            self.message = Message("assistant", [])
            self.collection.append(self.message)
        return self.message

    def update_meta(self, **values: Any) -> None:
        msg = self.ensure_message()
        msg.meta.update({k: v for k, v in values.items() if v is not None})

    # ------------------------------------------------------------------
    # Text / reasoning / images
    # ------------------------------------------------------------------

    def append_text(self, delta: Any) -> bool:
        if not isinstance(delta, str) or not delta:
            return False
        msg = self.ensure_message()
        last = msg.items[-1] if msg.items else None
        if isinstance(last, TextItem):
            last.text += delta
        else:
            msg.items.append(TextItem(text=delta))
        return True

    def append_reasoning(self, delta: Any) -> bool:
        if not isinstance(delta, str) or not delta:
            return False
        msg = self.ensure_message()
        last = msg.items[-1] if msg.items else None
        if isinstance(last, ReasoningItem):
            last.text += delta
        else:
            msg.items.append(ReasoningItem(text=delta))
        return True

    def replace_split(self, thinking: str, visible: str) -> bool:
        """Overwrite the items produced by ``<think>`` extraction.

        The reasoning item is kept ahead of the text item it was split from.
        """
        changed = False
        if thinking or self._split_reasoning is not None:
            if self._split_reasoning is None:
                msg = self.ensure_message()
                self._split_reasoning = ReasoningItem()
                if self._split_text is not None:
                    msg.items.insert(msg.items.index(self._split_text), self._split_reasoning)
                else:
                    msg.items.append(self._split_reasoning)
            if self._split_reasoning.text != thinking:
                self._split_reasoning.text = thinking
                changed = True
        if visible or self._split_text is not None:
            if self._split_text is None:
                self._split_text = TextItem()
                self.ensure_message().items.append(self._split_text)
            if self._split_text.text != visible:
                self._split_text.text = visible
                changed = True
        return changed

    def add_image(
        self,
        *,
        url: str | None = None,
        base64: str | None = None,
        mime_type: str | None = None,
    ) -> bool:
        if url:
            self.ensure_message().items.append(ImageItem(url=url, mime_type=mime_type))
            return True
        if base64:
            self.ensure_message().items.append(
                ImageItem(base64=base64, mime_type=mime_type or "image/png"),
            )
            return True
        return False

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    def resolve_tool_key(self, call_id: Any = None, index: Any = None) -> str:
        """Identity key for a streamed tool call.

        Explicit id first. Otherwise the positional index, which resolves to
        whatever call was first announced at that index (so an id-bearing
        first chunk followed by id-less continuations lands on one call).
        Otherwise a synthetic counter, one new call per request.
        """
        has_id = isinstance(call_id, str) and bool(call_id)
        has_index = isinstance(index, int)
        if has_id:
            if call_id in self._id_keys:
                return self._id_keys[call_id]
            if has_index:
                mapped = self._index_keys.get(index)
                if mapped is not None and mapped in self._positional:
                    # First chunk had only an index; adopt the late id.
                    self._positional.discard(mapped)
                    item = self._tool_items.get(mapped)
                    if item is not None:
                        item.call_id = call_id
                    self._id_keys[call_id] = mapped
                    return mapped
                self._index_keys[index] = call_id
            self._id_keys[call_id] = call_id
            return call_id
        if has_index:
            key = self._index_keys.get(index)
            if key is None:
                key = f"call_{index}"
                self._index_keys[index] = key
                self._positional.add(key)
            return key
        key = f"tool_call_{self._synthetic}"
        self._synthetic += 1
        return key

    def tool_call(self, key: str, *, call_id: str | None = None) -> ToolRequestItem:
        """Find or create the tool-request item for *key*."""
        item = self._tool_items.get(key)
        if item is None:
            item = ToolRequestItem(call_id=call_id or key)
            self.ensure_message().items.append(item)
            self._tool_items[key] = item
        return item

    def append_tool_name(self, key: str, fragment: Any) -> bool:
        if not isinstance(fragment, str) or not fragment:
            return False
        item = self.tool_call(key)
        # Some servers resend the full name with every chunk.
        if item.name == fragment:
            return False
        item.name += fragment
        return True

    def append_tool_arguments(self, key: str, fragment: Any) -> bool:
        """Buffer an arguments-JSON fragment and re-parse the whole buffer.

        An incomplete buffer leaves the previous ``arguments`` untouched.
        """
        if not isinstance(fragment, str) or not fragment:
            return False
        item = self.tool_call(key)
        buffer = self._arg_buffers.get(key, "") + fragment
        self._arg_buffers[key] = buffer
        parsed = _parse_arguments(buffer)
        if parsed is not None:
            item.arguments = parsed
        return True

    def set_tool_arguments(self, key: str, arguments: Any) -> bool:
        """Replace arguments with a complete value (dict or JSON string)."""
        item = self.tool_call(key)
        if isinstance(arguments, dict):
            item.arguments = arguments
            self._arg_buffers.pop(key, None)
            return True
        if isinstance(arguments, str):
            self._arg_buffers[key] = arguments
            parsed = _parse_arguments(arguments)
            if parsed is not None:
                item.arguments = parsed
            return True
        return False

    # ------------------------------------------------------------------
    # Finalisation
    # ------------------------------------------------------------------

    @property
    def finalized(self) -> bool:
        return self._finalized

    def finalize(self) -> bool:
        """Settle buffered tool arguments. Returns False when already done."""
        if self._finalized:
            return False
        for key, buffer in self._arg_buffers.items():
            item = self._tool_items.get(key)
            if item is None:
                continue
            if not buffer.strip():
                item.arguments = {}
                continue
            parsed = _parse_arguments(buffer)
            if parsed is None:
                _logger.warning(
                    "Tool call %s (%s) ended with unparseable arguments; using {}",
                    item.call_id, item.name,
                )
                parsed = {}
            item.arguments = parsed
        self._arg_buffers.clear()
        self._finalized = True
        return True

    def finish(self) -> bool:
        """Finalize and flag the collection finished. False on a repeat."""
        first = self.finalize()
        self.collection.finished = True
        return first
