"""Ollama native ``/api/chat`` (NDJSON streaming)."""

from __future__ import annotations

import logging
from typing import Any

from lang_bridge.messages import MessageCollection
from lang_bridge.providers.base import (
    LangOptions,
    LanguageProvider,
    ProviderRequest,
    result_to_text,
)
from lang_bridge.schema import to_json_schema
from lang_bridge.streaming import WireFormat

_logger = logging.getLogger(__name__)


def ollama_messages(
    collection: MessageCollection, instructions: str | None,
) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    if instructions:
        out.append({"role": "system", "content": instructions})
    for msg in collection:
        if msg.role == "user":
            entry: dict[str, Any] = {"role": "user", "content": msg.text}
            images = [img.base64 for img in msg.images if img.base64 is not None]
            if len(images) < len(msg.images):
                _logger.warning("Ollama accepts base64 images only; skipping image URLs")
            if images:
                entry["images"] = images
            out.append(entry)
        elif msg.role == "assistant":
            entry = {"role": "assistant", "content": msg.text}
            if msg.tool_requests:
                entry["tool_calls"] = [
                    {"function": {"name": req.name, "arguments": req.arguments}}
                    for req in msg.tool_requests
                ]
            out.append(entry)
        else:
            for res in msg.tool_results:
                out.append({
                    "role": "tool",
                    "content": result_to_text(res.result),
                    "tool_name": res.name,
                })
    return out


class OllamaProvider(LanguageProvider):
    """Local models served by Ollama.

    Parameters
    ----------
    think:
        Send ``think`` so reasoning models stream a separate
        ``message.thinking`` channel. ``None`` leaves the server default,
        in which case inline ``<think>`` tags are still split out.
    """

    provider_id = "ollama"
    default_model = "llama2:latest"
    default_base_url = "http://localhost:11434"

    def __init__(self, *, think: bool | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        # Accept an OpenAI-style ".../v1" URL for the same server.
        self.base_url = self.base_url.removesuffix("/v1")
        self.think = think

    def build_request(
        self, collection: MessageCollection, options: LangOptions,
    ) -> ProviderRequest:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": ollama_messages(collection, self.instructions(collection, options)),
            "stream": True,
            "options": {"num_predict": self.output_tokens(collection, options)},
        }
        if collection.available_tools:
            body["tools"] = [t.to_openai_schema() for t in collection.available_tools]
        if options.schema is not None:
            body["format"] = to_json_schema(options.schema)
        if self.think is not None:
            body["think"] = self.think
        return ProviderRequest(
            url=f"{self.base_url}/api/chat",
            body=body,
            wire_format=WireFormat.OLLAMA,
        )
