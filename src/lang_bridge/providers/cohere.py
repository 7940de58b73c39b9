"""Cohere v2 chat."""

from __future__ import annotations

import json
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


def cohere_messages(
    collection: MessageCollection, instructions: str | None,
) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    if instructions:
        out.append({"role": "system", "content": instructions})
    for msg in collection:
        if msg.role == "user":
            if msg.images:
                content: Any = [{"type": "text", "text": msg.text}] if msg.text else []
                content.extend(
                    {"type": "image_url", "image_url": {"url": img.data_url}}
                    for img in msg.images
                )
            else:
                content = msg.text
            out.append({"role": "user", "content": content})
        elif msg.role == "assistant":
            entry: dict[str, Any] = {"role": "assistant"}
            if msg.tool_requests:
                if msg.reasoning:
                    entry["tool_plan"] = msg.reasoning
                entry["tool_calls"] = [
                    {
                        "id": req.call_id,
                        "type": "function",
                        "function": {"name": req.name, "arguments": json.dumps(req.arguments)},
                    }
                    for req in msg.tool_requests
                ]
            if msg.text:
                entry["content"] = msg.text
            out.append(entry)
        else:
            for res in msg.tool_results:
                out.append({
                    "role": "tool",
                    "tool_call_id": res.call_id,
                    "content": result_to_text(res.result),
                })
    return out


class CohereProvider(LanguageProvider):
    provider_id = "cohere"
    default_model = "command-r-plus-08-2024"
    default_base_url = "https://api.cohere.com/v2"

    def build_request(
        self, collection: MessageCollection, options: LangOptions,
    ) -> ProviderRequest:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": cohere_messages(collection, self.instructions(collection, options)),
            "stream": True,
            "max_tokens": self.output_tokens(collection, options),
        }
        if collection.available_tools:
            body["tools"] = [t.to_openai_schema() for t in collection.available_tools]
        elif options.schema is not None:
            # JSON mode cannot be combined with tools.
            body["response_format"] = {
                "type": "json_object",
                "json_schema": to_json_schema(options.schema),
            }
        return ProviderRequest(
            url=f"{self.base_url}/chat",
            body=body,
            wire_format=WireFormat.COHERE,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "text/event-stream",
            },
        )
