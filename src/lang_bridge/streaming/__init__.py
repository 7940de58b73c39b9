"""Streaming normalisation: demultiplexer plus one handler per wire format."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from lang_bridge.messages import MessageCollection
from lang_bridge.streaming.anthropic import AnthropicStreamHandler
from lang_bridge.streaming.builder import AssistantMessageBuilder, PartialCallback
from lang_bridge.streaming.cohere import CohereStreamHandler
from lang_bridge.streaming.demux import EventDemultiplexer, demultiplex, process_lines
from lang_bridge.streaming.google import GoogleStreamHandler
from lang_bridge.streaming.ollama import OllamaStreamHandler
from lang_bridge.streaming.openai_chat import OpenAIChatStreamHandler
from lang_bridge.streaming.openai_responses import OpenAIResponsesStreamHandler
from lang_bridge.streaming.thinking import ThinkTagSplitter, split_think_tags


class WireFormat(str, Enum):
    OPENAI_CHAT = "openai_chat"
    OPENAI_RESPONSES = "openai_responses"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    COHERE = "cohere"
    OLLAMA = "ollama"


class StreamHandler(Protocol):
    """What providers need from a handler: a builder and ``handle``."""

    builder: AssistantMessageBuilder

    def handle(self, event: dict[str, Any]) -> None: ...


_HANDLERS: dict[WireFormat, type] = {
    WireFormat.OPENAI_CHAT: OpenAIChatStreamHandler,
    WireFormat.OPENAI_RESPONSES: OpenAIResponsesStreamHandler,
    WireFormat.ANTHROPIC: AnthropicStreamHandler,
    WireFormat.GOOGLE: GoogleStreamHandler,
    WireFormat.COHERE: CohereStreamHandler,
    WireFormat.OLLAMA: OllamaStreamHandler,
}


def create_stream_handler(
    wire_format: WireFormat | str,
    collection: MessageCollection,
    on_partial: PartialCallback | None = None,
    **kwargs: Any,
) -> StreamHandler:
    """Instantiate the handler for *wire_format*.

    Extra keyword arguments go to the handler (e.g. ``think_tags=True``
    for :class:`OpenAIChatStreamHandler`).
    """
    try:
        cls = _HANDLERS[WireFormat(wire_format)]
    except ValueError:
        raise ValueError(
            f"Unknown wire format: {wire_format!r}. "
            f"Available: {', '.join(f.value for f in WireFormat)}"
        ) from None
    return cls(collection, on_partial, **kwargs)


__all__ = [
    "AnthropicStreamHandler",
    "AssistantMessageBuilder",
    "CohereStreamHandler",
    "EventDemultiplexer",
    "GoogleStreamHandler",
    "OllamaStreamHandler",
    "OpenAIChatStreamHandler",
    "OpenAIResponsesStreamHandler",
    "PartialCallback",
    "StreamHandler",
    "ThinkTagSplitter",
    "WireFormat",
    "create_stream_handler",
    "demultiplex",
    "process_lines",
    "split_think_tags",
]
