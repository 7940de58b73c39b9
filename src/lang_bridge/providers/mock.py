"""Offline provider: canned chat-completions SSE through the real pipeline."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Union

import httpx

from lang_bridge.providers.openai_chat import OpenAILikeProvider
from lang_bridge.transport import Transport

_logger = logging.getLogger(__name__)

ResponseText = Union[str, Callable[[], str]]


def sse_body(events: list[dict[str, Any]]) -> str:
    """Frame *events* as an SSE body ending in ``[DONE]``."""
    return "".join(f"data: {json.dumps(e)}\n\n" for e in events) + "data: [DONE]\n\n"


def text_events(text: str, chunk_size: int = 16) -> list[dict[str, Any]]:
    return [
        {"choices": [{"delta": {"content": text[i:i + chunk_size]}}]}
        for i in range(0, len(text), chunk_size)
    ]


class MockOpenAILikeProvider(OpenAILikeProvider):
    """Answers from memory, but via httpx, the demultiplexer and the
    chat-completions handler, like any other provider.

    Parameters
    ----------
    response_text:
        Answer text, or a callable producing it per request.
    response_object:
        JSON answer used when the request asks for structured output.
    scripted:
        Event lists served in order, one per request, before falling back
        to ``response_text`` (useful for tool-call rounds).
    chunk_size:
        Characters per streamed content delta.
    """

    provider_id = "mock"
    default_model = "gpt-4o-mini"
    default_base_url = "http://mock.local"

    def __init__(
        self,
        *,
        response_text: ResponseText = "Hello from MockOpenAI",
        response_object: Any = None,
        scripted: list[list[dict[str, Any]]] | None = None,
        chunk_size: int = 16,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("transport", Transport(
            transport=httpx.MockTransport(self._respond), max_retries=1,
        ))
        super().__init__(**kwargs)
        self.response_text = response_text
        self.response_object = response_object
        self.scripted = list(scripted or [])
        self.chunk_size = chunk_size
        # Request bodies received, oldest first.
        self.requests: list[dict[str, Any]] = []

    def _respond(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.requests.append(body)
        if self.scripted:
            events = self.scripted.pop(0)
        else:
            events = text_events(self._answer(body), self.chunk_size)
        _logger.debug("Mock serving %d events", len(events))
        return httpx.Response(
            200,
            text=sse_body(events),
            headers={"content-type": "text/event-stream"},
        )

    def _answer(self, body: dict[str, Any]) -> str:
        if "response_format" in body and self.response_object is not None:
            return json.dumps(self.response_object)
        if callable(self.response_text):
            return self.response_text()
        return self.response_text
