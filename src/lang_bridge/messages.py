"""Message and MessageCollection: the unified conversation model.

A :class:`MessageCollection` is owned by the caller and mutated in place
by stream handlers (the trailing assistant message grows while a stream
is live) and by the tool loop (tool-results messages are appended).
"""

from __future__ import annotations

import json
from typing import Any, Iterable

from lang_bridge.schema import extract_json
from lang_bridge.tools.base import ToolDefinition
from lang_bridge.types import (
    ImageInput,
    ImageItem,
    MessageItem,
    ReasoningItem,
    Role,
    TextItem,
    ToolRequestItem,
    ToolResultItem,
    item_from_dict,
    item_to_dict,
)

_ROLES = ("user", "assistant", "tool-results")


class Message:
    """One role-tagged message made of ordered items."""

    def __init__(
        self,
        role: Role,
        content: str | list[MessageItem] | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if role not in _ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        self.role: Role = role
        if content is None:
            self.items: list[MessageItem] = []
        elif isinstance(content, str):
            self.items = [TextItem(text=content)]
        else:
            self.items = list(content)
        self.meta: dict[str, Any] = dict(meta) if meta else {}

    @property
    def text(self) -> str:
        return "".join(i.text for i in self.items if isinstance(i, TextItem))

    @property
    def reasoning(self) -> str:
        return "".join(i.text for i in self.items if isinstance(i, ReasoningItem))

    @property
    def object(self) -> Any | None:
        text = self.text
        return extract_json(text) if text else None

    @property
    def tool_requests(self) -> list[ToolRequestItem]:
        return [i for i in self.items if isinstance(i, ToolRequestItem)]

    @property
    def tool_results(self) -> list[ToolResultItem]:
        return [i for i in self.items if isinstance(i, ToolResultItem)]

    @property
    def images(self) -> list[ImageItem]:
        return [i for i in self.items if isinstance(i, ImageItem)]

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "role": self.role,
            "items": [item_to_dict(i) for i in self.items],
        }
        if self.meta:
            out["meta"] = dict(self.meta)
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Message:
        items = raw.get("items")
        if items is None:
            # Accept the common {"role", "content": "..."} shorthand.
            content = raw.get("content", "")
            return cls(raw["role"], content, raw.get("meta"))
        return cls(raw["role"], [item_from_dict(i) for i in items], raw.get("meta"))

    def __repr__(self) -> str:
        return f"Message(role={self.role!r}, items={self.items!r}, meta={self.meta!r})"


class MessageCollection(list):
    """Ordered list of :class:`Message` plus conversation-level state.

    Parameters
    ----------
    initial:
        A prompt string, an iterable of messages (or their dict form), or
        another collection whose tools and instructions are shared.
    tools:
        Tool definitions the model may call.
    instructions:
        System prompt equivalent.
    """

    def __init__(
        self,
        initial: str | Iterable[Message | dict[str, Any]] | None = None,
        *,
        tools: list[ToolDefinition] | None = None,
        instructions: str | None = None,
    ) -> None:
        super().__init__()
        self.available_tools: list[ToolDefinition] | None = None
        self.instructions: str | None = None
        self.finished: bool = False
        # Validated structured output, set by ask_for_object.
        self.parsed: Any = None

        if isinstance(initial, str):
            self.add_user_message(initial)
        elif initial is not None:
            if isinstance(initial, MessageCollection):
                self.available_tools = initial.available_tools
                self.instructions = initial.instructions
            for m in initial:
                self.append(m if isinstance(m, Message) else Message.from_dict(m))

        if tools is not None:
            self.available_tools = tools
        if instructions is not None:
            self.instructions = instructions

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def last_assistant(self) -> Message | None:
        for msg in reversed(self):
            if msg.role == "assistant":
                return msg
        return None

    @property
    def answer(self) -> str:
        """Text of the last assistant message."""
        msg = self.last_assistant
        return msg.text if msg else ""

    @property
    def thinking(self) -> str:
        """Reasoning text of the last assistant message."""
        msg = self.last_assistant
        return msg.reasoning if msg else ""

    @property
    def object(self) -> Any | None:
        answer = self.answer
        return extract_json(answer) if answer else None

    @property
    def assistant_images(self) -> list[ImageItem]:
        return self._last_images("assistant")

    @property
    def user_images(self) -> list[ImageItem]:
        return self._last_images("user")

    def _last_images(self, role: Role) -> list[ImageItem]:
        for msg in reversed(self):
            if msg.role == role:
                return msg.images
        return []

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def add_user_message(self, text: str) -> MessageCollection:
        self.append(Message("user", text))
        return self

    def add_user_items(self, items: list[MessageItem]) -> MessageCollection:
        self.append(Message("user", items))
        return self

    def add_user_images(self, images: ImageInput | list[ImageInput]) -> MessageCollection:
        if isinstance(images, ImageInput):
            images = [images]
        return self.add_user_items([img.to_item() for img in images])

    def add_assistant_message(
        self, text: str, meta: dict[str, Any] | None = None,
    ) -> MessageCollection:
        self.append(Message("assistant", text, meta))
        return self

    def add_assistant_items(
        self, items: list[MessageItem], meta: dict[str, Any] | None = None,
    ) -> MessageCollection:
        self.append(Message("assistant", items, meta))
        return self

    def add_tool_results_message(self, items: list[ToolResultItem]) -> Message:
        msg = Message("tool-results", list(items))
        self.append(msg)
        return msg

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dicts(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self]

    @classmethod
    def from_dicts(cls, raw: list[dict[str, Any]], **kwargs: Any) -> MessageCollection:
        return cls([Message.from_dict(r) for r in raw], **kwargs)

    def __str__(self) -> str:
        return "\n\n".join(
            f"{m.role}: {json.dumps([item_to_dict(i) for i in m.items], indent=2, default=str)}"
            for m in self
        )
