"""OpenAI via the Responses API."""

from __future__ import annotations

import json
import logging
from typing import Any

from lang_bridge.messages import MessageCollection
from lang_bridge.providers.base import (
    LangOptions,
    LanguageProvider,
    ProviderRequest,
    result_to_text,
)
from lang_bridge.schema import schema_name, to_json_schema
from lang_bridge.streaming import WireFormat

_logger = logging.getLogger(__name__)

RESPONSE_ID_KEY = "openai_response_id"


def _continuation_point(collection: MessageCollection) -> tuple[str | None, int]:
    """``(previous_response_id, first index still to send)``."""
    for i in range(len(collection) - 1, -1, -1):
        msg = collection[i]
        if msg.role == "assistant" and msg.meta.get(RESPONSE_ID_KEY):
            return msg.meta[RESPONSE_ID_KEY], i + 1
    return None, 0


def responses_input(collection: MessageCollection, start: int = 0) -> list[dict[str, Any]]:
    """Render ``collection[start:]`` as Responses ``input`` items."""
    out: list[dict[str, Any]] = []
    for msg in collection[start:]:
        if msg.role == "user":
            content: list[dict[str, Any]] = []
            if msg.text:
                content.append({"type": "input_text", "text": msg.text})
            for image in msg.images:
                content.append({"type": "input_image", "image_url": image.data_url})
            out.append({"role": "user", "content": content})
        elif msg.role == "assistant":
            if msg.text:
                out.append({
                    "role": "assistant",
                    "content": [{"type": "output_text", "text": msg.text}],
                })
            for req in msg.tool_requests:
                out.append({
                    "type": "function_call",
                    "call_id": req.call_id,
                    "name": req.name,
                    "arguments": json.dumps(req.arguments),
                })
        else:
            for res in msg.tool_results:
                out.append({
                    "type": "function_call_output",
                    "call_id": res.call_id,
                    "output": result_to_text(res.result),
                })
    return out


class OpenAIProvider(LanguageProvider):
    """OpenAI Responses API.

    Multi-turn exchanges continue server-side: when an earlier assistant
    message carries a response id, only the messages after it are sent,
    with ``previous_response_id``.

    Parameters
    ----------
    reasoning_effort:
        ``"low"``/``"medium"``/``"high"`` for reasoning models; summaries
        are requested so they stream into the reasoning channel.
    builtin_tools:
        Hosted tools such as ``{"type": "web_search"}`` or
        ``{"type": "image_generation"}``, sent alongside function tools.
    """

    provider_id = "openai"
    default_model = "gpt-4o"
    default_base_url = "https://api.openai.com/v1"

    def __init__(
        self,
        *,
        reasoning_effort: str | None = None,
        builtin_tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.reasoning_effort = reasoning_effort
        self.builtin_tools = list(builtin_tools or [])

    def build_request(
        self, collection: MessageCollection, options: LangOptions,
    ) -> ProviderRequest:
        previous_id, start = _continuation_point(collection)
        body: dict[str, Any] = {
            "model": self.model,
            "input": responses_input(collection, start),
            "stream": True,
            "store": True,
            "max_output_tokens": self.output_tokens(collection, options),
        }
        if previous_id:
            body["previous_response_id"] = previous_id

        # Schema goes through text.format, so only plain instructions here.
        instructions = collection.instructions or self.system_prompt
        if instructions:
            body["instructions"] = instructions

        tools = [t.to_responses_schema() for t in collection.available_tools or []]
        tools.extend(self.builtin_tools)
        if tools:
            body["tools"] = tools

        if options.schema is not None:
            body["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": schema_name(options.schema),
                    "schema": to_json_schema(options.schema),
                    "strict": False,
                },
            }

        if self.reasoning_effort and (self.can("reason") or self.model_info is None):
            body["reasoning"] = {"effort": self.reasoning_effort, "summary": "auto"}

        return ProviderRequest(
            url=f"{self.base_url}/responses",
            body=body,
            wire_format=WireFormat.OPENAI_RESPONSES,
            headers={"Authorization": f"Bearer {self.api_key}"} if self.api_key else {},
        )
