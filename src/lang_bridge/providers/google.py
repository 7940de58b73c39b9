"""Google Gemini via ``streamGenerateContent``."""

from __future__ import annotations

from typing import Any

from lang_bridge.messages import Message, MessageCollection
from lang_bridge.providers.base import LangOptions, LanguageProvider, ProviderRequest
from lang_bridge.streaming import WireFormat


def _parts(msg: Message) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = []
    if msg.role == "tool-results":
        for res in msg.tool_results:
            response = res.result if isinstance(res.result, dict) else {"result": res.result}
            parts.append({"functionResponse": {"name": res.name, "response": response}})
        return parts
    if msg.text:
        parts.append({"text": msg.text})
    for image in msg.images:
        if image.base64 is not None:
            parts.append({
                "inlineData": {"mimeType": image.mime_type or "image/png", "data": image.base64},
            })
        else:
            parts.append({
                "fileData": {"mimeType": image.mime_type or "image/png", "fileUri": image.url},
            })
    for req in msg.tool_requests:
        parts.append({"functionCall": {"name": req.name, "args": req.arguments}})
    return parts


def google_contents(collection: MessageCollection) -> list[dict[str, Any]]:
    contents: list[dict[str, Any]] = []
    for msg in collection:
        parts = _parts(msg)
        if not parts:
            continue
        role = "model" if msg.role == "assistant" else "user"
        contents.append({"role": role, "parts": parts})
    return contents


class GoogleProvider(LanguageProvider):
    """Gemini models. The API key goes in the ``x-goog-api-key`` header."""

    provider_id = "google"
    default_model = "gemini-2.0-flash"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def build_request(
        self, collection: MessageCollection, options: LangOptions,
    ) -> ProviderRequest:
        generation: dict[str, Any] = {
            "maxOutputTokens": self.output_tokens(collection, options),
        }
        if options.schema is not None:
            generation["responseMimeType"] = "application/json"
        if self.can("reason"):
            generation["thinkingConfig"] = {"includeThoughts": True}

        body: dict[str, Any] = {
            "contents": google_contents(collection),
            "generationConfig": generation,
        }
        system = self.instructions(collection, options)
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        if collection.available_tools:
            body["tools"] = [{
                "functionDeclarations": [
                    t.to_google_declaration() for t in collection.available_tools
                ],
            }]

        return ProviderRequest(
            url=f"{self.base_url}/models/{self.model}:streamGenerateContent?alt=sse",
            body=body,
            wire_format=WireFormat.GOOGLE,
            headers={"x-goog-api-key": self.api_key} if self.api_key else {},
        )
