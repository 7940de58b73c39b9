"""Chat-completions providers: a generic OpenAI-compatible facade and the
vendors that speak the same protocol with small deviations."""

from __future__ import annotations

import json
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


def _user_content(msg: Message) -> str | list[dict[str, Any]]:
    if not msg.images:
        return msg.text
    parts: list[dict[str, Any]] = []
    if msg.text:
        parts.append({"type": "text", "text": msg.text})
    for image in msg.images:
        parts.append({"type": "image_url", "image_url": {"url": image.data_url}})
    return parts


def chat_messages(
    collection: MessageCollection, instructions: str | None,
) -> list[dict[str, Any]]:
    """Render a collection as chat-completions ``messages``."""
    out: list[dict[str, Any]] = []
    if instructions:
        out.append({"role": "system", "content": instructions})
    for msg in collection:
        if msg.role == "user":
            out.append({"role": "user", "content": _user_content(msg)})
        elif msg.role == "assistant":
            entry: dict[str, Any] = {"role": "assistant", "content": msg.text or None}
            if msg.tool_requests:
                entry["tool_calls"] = [
                    {
                        "id": req.call_id,
                        "type": "function",
                        "function": {
                            "name": req.name,
                            "arguments": json.dumps(req.arguments),
                        },
                    }
                    for req in msg.tool_requests
                ]
            elif entry["content"] is None:
                entry["content"] = ""
            out.append(entry)
        else:
            for res in msg.tool_results:
                out.append({
                    "role": "tool",
                    "tool_call_id": res.call_id,
                    "content": result_to_text(res.result),
                })
    return out


class OpenAILikeProvider(LanguageProvider):
    """Any endpoint implementing ``POST {base_url}/chat/completions``.

    Parameters
    ----------
    think_tags:
        Split ``<think>`` blocks out of the content stream (for reasoning
        models served by vLLM, LM Studio and similar).
    json_mode:
        Send ``response_format: json_object`` when a schema is requested.
    reasoning_effort:
        Passed through as ``reasoning_effort`` when set.
    """

    provider_id = "openai_like"
    default_model = "gpt-4o"
    default_base_url = "https://api.openai.com/v1"

    def __init__(
        self,
        *,
        think_tags: bool = False,
        json_mode: bool = True,
        reasoning_effort: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.think_tags = think_tags
        self.json_mode = json_mode
        self.reasoning_effort = reasoning_effort

    @property
    def request_model(self) -> str:
        return self.model

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    def supports_tools(self) -> bool:
        return True

    def build_request(
        self, collection: MessageCollection, options: LangOptions,
    ) -> ProviderRequest:
        messages = chat_messages(collection, self.instructions(collection, options))
        body: dict[str, Any] = {
            "model": self.request_model,
            "messages": messages,
            "stream": True,
            "max_tokens": self.output_tokens(collection, options),
        }
        if collection.available_tools and self.supports_tools():
            body["tools"] = [t.to_openai_schema() for t in collection.available_tools]
        if options.schema is not None and self.json_mode:
            body["response_format"] = {"type": "json_object"}
        if self.reasoning_effort:
            body["reasoning_effort"] = self.reasoning_effort
        return ProviderRequest(
            url=f"{self.base_url}/chat/completions",
            body=self.transform_body(body),
            wire_format=WireFormat.OPENAI_CHAT,
            headers=self.auth_headers(),
            handler_options={"think_tags": self.think_tags},
        )

    def transform_body(self, body: dict[str, Any]) -> dict[str, Any]:
        """Last-chance vendor adjustments to the request body."""
        return body


# ---------------------------------------------------------------------------
# Vendors on the chat-completions protocol
# ---------------------------------------------------------------------------

class GroqProvider(OpenAILikeProvider):
    """Groq. GPT-OSS models need the ``openai/`` prefix on the wire."""

    provider_id = "groq"
    default_model = "llama3-70b-8192"
    default_base_url = "https://api.groq.com/openai/v1"

    def __init__(self, *, include_reasoning: bool | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.include_reasoning = include_reasoning

    @property
    def is_gpt_oss(self) -> bool:
        return "gpt-oss" in self.model.lower()

    @property
    def request_model(self) -> str:
        if self.is_gpt_oss and not self.model.startswith("openai/"):
            return f"openai/{self.model}"
        return self.model

    def transform_body(self, body: dict[str, Any]) -> dict[str, Any]:
        # include_reasoning defaults to true server-side.
        if self.is_gpt_oss and self.include_reasoning is False:
            body["include_reasoning"] = False
        return body


class DeepSeekProvider(OpenAILikeProvider):
    """DeepSeek. The reasoner streams ``reasoning_content`` and rejects
    tools and JSON mode."""

    provider_id = "deepseek"
    default_model = "deepseek-chat"
    default_base_url = "https://api.deepseek.com/v1"

    @property
    def is_reasoner(self) -> bool:
        return self.can("reason") or "reasoner" in self.model.lower()

    def supports_tools(self) -> bool:
        return not self.is_reasoner

    def transform_body(self, body: dict[str, Any]) -> dict[str, Any]:
        if self.is_reasoner:
            body.pop("response_format", None)
        return body


class MistralProvider(OpenAILikeProvider):
    provider_id = "mistral"
    default_model = "mistral-large-latest"
    default_base_url = "https://api.mistral.ai/v1"


class XAIProvider(OpenAILikeProvider):
    provider_id = "xai"
    default_model = "grok-2"
    default_base_url = "https://api.x.ai/v1"


class OpenRouterProvider(OpenAILikeProvider):
    """OpenRouter. ``site_url`` / ``app_name`` become attribution headers."""

    provider_id = "openrouter"
    default_model = "openai/gpt-3.5-turbo"
    default_base_url = "https://openrouter.ai/api/v1"

    def __init__(
        self,
        *,
        site_url: str | None = None,
        app_name: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.site_url = site_url
        self.app_name = app_name

    def auth_headers(self) -> dict[str, str]:
        headers = super().auth_headers()
        if self.site_url:
            headers["HTTP-Referer"] = self.site_url
        if self.app_name:
            headers["X-Title"] = self.app_name
        return headers
