"""Shared data types for lang_bridge."""

from __future__ import annotations

import base64 as _b64
from dataclasses import dataclass, field
from typing import Any, Literal, Union

Role = Literal["user", "assistant", "tool-results"]


# ---------------------------------------------------------------------------
# Message items
# ---------------------------------------------------------------------------

@dataclass
class TextItem:
    """Visible answer text. Grows by appending deltas."""

    text: str = ""
    type: str = field(default="text", init=False)


@dataclass
class ReasoningItem:
    """Vendor "thinking" text, kept apart from the visible answer."""

    text: str = ""
    type: str = field(default="reasoning", init=False)


@dataclass
class ImageItem:
    """An image; exactly one of ``url`` / ``base64`` is populated."""

    url: str | None = None
    base64: str | None = None
    mime_type: str | None = None
    width: int | None = None
    height: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    type: str = field(default="image", init=False)

    def __post_init__(self) -> None:
        if (self.url is None) == (self.base64 is None):
            raise ValueError("ImageItem needs exactly one of url or base64")

    @property
    def data_url(self) -> str:
        """The image as something a vendor ``image_url`` field accepts."""
        if self.url is not None:
            return self.url
        return f"data:{self.mime_type or 'image/png'};base64,{self.base64}"


@dataclass
class ToolRequestItem:
    """A model-requested function call.

    ``arguments`` starts as ``{}`` and is replaced wholesale whenever the
    streamed argument JSON parses.
    """

    call_id: str
    name: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)
    type: str = field(default="tool", init=False)


@dataclass
class ToolResultItem:
    """Outcome of executing a :class:`ToolRequestItem`."""

    call_id: str
    name: str
    result: Any = None
    is_error: bool = False
    type: str = field(default="tool-result", init=False)


MessageItem = Union[TextItem, ReasoningItem, ImageItem, ToolRequestItem, ToolResultItem]


def item_to_dict(item: MessageItem) -> dict[str, Any]:
    if isinstance(item, (TextItem, ReasoningItem)):
        return {"type": item.type, "text": item.text}
    if isinstance(item, ImageItem):
        out: dict[str, Any] = {"type": "image"}
        for key in ("url", "base64", "mime_type", "width", "height"):
            value = getattr(item, key)
            if value is not None:
                out[key] = value
        if item.metadata:
            out["metadata"] = dict(item.metadata)
        return out
    if isinstance(item, ToolRequestItem):
        return {
            "type": "tool",
            "call_id": item.call_id,
            "name": item.name,
            "arguments": item.arguments,
        }
    return {
        "type": "tool-result",
        "call_id": item.call_id,
        "name": item.name,
        "result": item.result,
        "is_error": item.is_error,
    }


def item_from_dict(raw: dict[str, Any]) -> MessageItem:
    kind = raw.get("type")
    if kind == "text":
        return TextItem(text=raw.get("text", ""))
    if kind == "reasoning":
        return ReasoningItem(text=raw.get("text", ""))
    if kind == "image":
        return ImageItem(
            url=raw.get("url"),
            base64=raw.get("base64"),
            mime_type=raw.get("mime_type"),
            width=raw.get("width"),
            height=raw.get("height"),
            metadata=raw.get("metadata", {}),
        )
    if kind == "tool":
        return ToolRequestItem(
            call_id=raw["call_id"],
            name=raw.get("name", ""),
            arguments=raw.get("arguments", {}),
        )
    if kind == "tool-result":
        return ToolResultItem(
            call_id=raw["call_id"],
            name=raw.get("name", ""),
            result=raw.get("result"),
            is_error=raw.get("is_error", False),
        )
    raise ValueError(f"Unknown message item type: {kind!r}")


# ---------------------------------------------------------------------------
# User image input
# ---------------------------------------------------------------------------

@dataclass
class ImageInput:
    """Caller-supplied image, converted to an :class:`ImageItem` on insert."""

    url: str | None = None
    base64: str | None = None
    data: bytes | None = None
    mime_type: str | None = None

    def to_item(self) -> ImageItem:
        if self.url is not None:
            return ImageItem(url=self.url)
        if self.base64 is not None:
            return ImageItem(base64=self.base64, mime_type=self.mime_type)
        if self.data is not None:
            encoded = _b64.b64encode(self.data).decode("ascii")
            return ImageItem(base64=encoded, mime_type=self.mime_type)
        raise ValueError("ImageInput needs one of url, base64 or data")


# ---------------------------------------------------------------------------
# Tool parameter shorthand
# ---------------------------------------------------------------------------

@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # string, integer, number, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None
