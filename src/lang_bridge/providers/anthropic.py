"""Anthropic Messages API."""

from __future__ import annotations

import logging
from typing import Any

from lang_bridge.messages import Message, MessageCollection
from lang_bridge.providers.base import (
    LangOptions,
    LanguageProvider,
    ProviderRequest,
    result_to_text,
)
from lang_bridge.streaming import WireFormat

_logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
_MIN_THINKING_BUDGET = 1000


def _image_block(image: Any) -> dict[str, Any]:
    if image.url is not None:
        return {"type": "image", "source": {"type": "url", "url": image.url}}
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": image.mime_type or "image/png",
            "data": image.base64,
        },
    }


def _content_blocks(msg: Message) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    if msg.role == "user":
        for image in msg.images:
            blocks.append(_image_block(image))
        if msg.text:
            blocks.append({"type": "text", "text": msg.text})
    elif msg.role == "assistant":
        signature = msg.meta.get("anthropic_thinking_signature")
        if signature and msg.reasoning:
            blocks.append({
                "type": "thinking", "thinking": msg.reasoning, "signature": signature,
            })
        if msg.text:
            blocks.append({"type": "text", "text": msg.text})
        for req in msg.tool_requests:
            blocks.append({
                "type": "tool_use", "id": req.call_id, "name": req.name,
                "input": req.arguments,
            })
    else:
        for res in msg.tool_results:
            blocks.append({
                "type": "tool_result",
                "tool_use_id": res.call_id,
                "content": result_to_text(res.result),
                "is_error": res.is_error,
            })
    return blocks


def anthropic_messages(collection: MessageCollection) -> list[dict[str, Any]]:
    """Render messages, merging consecutive same-role turns.

    Tool results travel as ``user`` turns, and the API requires roles to
    alternate.
    """
    out: list[dict[str, Any]] = []
    for msg in collection:
        role = "assistant" if msg.role == "assistant" else "user"
        blocks = _content_blocks(msg)
        if not blocks:
            continue
        if out and out[-1]["role"] == role:
            out[-1]["content"].extend(blocks)
        else:
            out.append({"role": role, "content": blocks})
    return out


class AnthropicProvider(LanguageProvider):
    """Claude models.

    Parameters
    ----------
    extended_thinking:
        Enable extended thinking on models that reason. The budget is 75%
        of the output allowance, capped at 75% of the model's reasoning
        allowance when the catalog has one, and at least 1000 tokens.
        ``max_tokens`` is raised to leave 1000 tokens for the answer.
    """

    provider_id = "anthropic"
    default_model = "claude-sonnet-4-20250514"
    default_base_url = "https://api.anthropic.com/v1"

    def __init__(self, *, extended_thinking: bool = False, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.extended_thinking = extended_thinking

    def build_request(
        self, collection: MessageCollection, options: LangOptions,
    ) -> ProviderRequest:
        max_tokens = self.output_tokens(collection, options)
        body: dict[str, Any] = {
            "model": self.model,
            "messages": anthropic_messages(collection),
            "stream": True,
            "max_tokens": max_tokens,
        }
        system = self.instructions(collection, options)
        if system:
            body["system"] = system
        if collection.available_tools:
            body["tools"] = [t.to_anthropic_schema() for t in collection.available_tools]

        if self.extended_thinking and (self.can("reason") or self.model_info is None):
            budget = int(max_tokens * 0.75)
            info = self.model_info
            if info is not None and info.reasoning_max_output:
                budget = min(budget, int(info.reasoning_max_output * 0.75))
            budget = max(_MIN_THINKING_BUDGET, budget)
            body["max_tokens"] = max(max_tokens, budget + _MIN_THINKING_BUDGET)
            body["thinking"] = {"type": "enabled", "budget_tokens": budget}

        return ProviderRequest(
            url=f"{self.base_url}/messages",
            body=body,
            wire_format=WireFormat.ANTHROPIC,
            headers={
                "x-api-key": self.api_key or "",
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )
