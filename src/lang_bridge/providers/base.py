"""LanguageProvider: the unified request surface every vendor facade shares.

Subclasses only translate. ``build_request`` turns a collection into a
vendor URL, headers and body and names the wire format; everything else
(transport, demultiplexing, the stream handler, the tool loop and
structured-output retries) runs here.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable

import httpx

from lang_bridge.errors import (
    AuthenticationError,
    InvalidRequestError,
    SchemaValidationError,
)
from lang_bridge.messages import Message, MessageCollection
from lang_bridge.models import ModelCatalog, ModelInfo
from lang_bridge.schema import schema_instruction, validate_against_schema
from lang_bridge.streaming import WireFormat, create_stream_handler, demultiplex
from lang_bridge.tokens import compute_max_output
from lang_bridge.tools.base import ToolDefinition
from lang_bridge.tools.loop import run_tool_loop
from lang_bridge.tools.registry import ToolRegistry
from lang_bridge.transport import NotOkDecision, Transport, iter_text

_logger = logging.getLogger(__name__)

_DEFAULT_SCHEMA_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Request options
# ---------------------------------------------------------------------------

@dataclass
class LangOptions:
    """Per-call options.

    Parameters
    ----------
    on_result:
        Called with the trailing assistant message after every stream
        event, and with each tool-results message the loop appends.
    tools:
        Tools for this call; replaces the collection's ``available_tools``.
    schema:
        Pydantic model class or JSON-Schema dict for structured output.
    signal:
        Set this event to cancel the call.
    max_tool_rounds:
        Cap on follow-up model calls in the tool loop. Overrides the provider's
        ``max_tool_rounds``; zero means no follow-up calls.
    execute_tools:
        Run requested tools locally (default). When ``False`` the tool
        requests are left in the collection for the caller.
    registry:
        Resolves tool requests in place of ``tools``. When ``tools`` is
        not given the registry's tools are also advertised to the model.
    max_tokens:
        Caller's output-token ceiling.
    provider_body, provider_headers:
        Merged last into the vendor request.
    """

    on_result: Callable[[Message], None] | None = None
    tools: list[ToolDefinition] | None = None
    schema: Any = None
    signal: asyncio.Event | None = None
    max_tool_rounds: int | None = None
    execute_tools: bool = True
    registry: ToolRegistry | None = None
    max_tokens: int | None = None
    provider_body: dict[str, Any] = field(default_factory=dict)
    provider_headers: dict[str, str] = field(default_factory=dict)


@dataclass
class ProviderRequest:
    """What ``build_request`` produces."""

    url: str
    body: dict[str, Any]
    wire_format: WireFormat
    headers: dict[str, str] = field(default_factory=dict)
    handler_options: dict[str, Any] = field(default_factory=dict)


def result_to_text(result: Any) -> str:
    """Tool results travel as text on most wire formats."""
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


def _correction_message(errors: list[str]) -> str:
    return (
        "Your previous response did not match the required JSON schema:\n"
        + "\n".join(f"- {e}" for e in errors[:10])
        + "\nReply again with only the corrected JSON."
    )


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------

class LanguageProvider(ABC):
    """Base facade.

    Parameters
    ----------
    model:
        Vendor model id; ``default_model`` when omitted.
    api_key, base_url:
        Credentials and endpoint; ``default_base_url`` when omitted.
    system_prompt:
        Used as the collection's instructions when it has none.
    max_tokens:
        Default output-token ceiling.
    headers, extra_body:
        Merged into every request.
    transport:
        Shared :class:`~lang_bridge.transport.Transport`; one is created
        if omitted.
    catalog:
        Model capability lookup. Unknown models degrade to defaults.
    schema_attempts:
        Attempts ``ask_for_object`` makes before giving up.
    max_tool_rounds:
        Default cap on follow-up calls in the tool loop; ``None`` uses
        the loop's own default.
    """

    provider_id: str = ""
    default_model: str = ""
    default_base_url: str = ""
    # Whether the vendor expects a follow-up call after tool results.
    continues_after_tools: bool = True

    def __init__(
        self,
        *,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        headers: dict[str, str] | None = None,
        extra_body: dict[str, Any] | None = None,
        transport: Transport | None = None,
        catalog: ModelCatalog | None = None,
        schema_attempts: int = _DEFAULT_SCHEMA_ATTEMPTS,
        max_tool_rounds: int | None = None,
    ) -> None:
        self.model = model or self.default_model
        self.api_key = api_key
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self.headers = dict(headers or {})
        self.extra_body = dict(extra_body or {})
        self.transport = transport or Transport()
        self.catalog = catalog if catalog is not None else ModelCatalog()
        self.schema_attempts = max(1, schema_attempts)
        self.max_tool_rounds = max_tool_rounds

    @property
    def name(self) -> str:
        return self.provider_id or type(self).__name__

    @property
    def model_info(self) -> ModelInfo | None:
        return self.catalog.lookup(self.model)

    def can(self, capability: str) -> bool:
        info = self.model_info
        return info is not None and info.can(capability)

    async def aclose(self) -> None:
        await self.transport.aclose()

    # ------------------------------------------------------------------
    # Hooks for subclasses
    # ------------------------------------------------------------------

    @abstractmethod
    def build_request(
        self, collection: MessageCollection, options: LangOptions,
    ) -> ProviderRequest:
        """Translate *collection* into a vendor request."""

    def on_not_ok_response(
        self, response: httpx.Response, decision: NotOkDecision,
    ) -> NotOkDecision:
        """Classify a failed response (its body has already been read)."""
        status = response.status_code
        if status == 401:
            decision.retry = False
            raise AuthenticationError(
                f"Authentication failed ({self.name}): API key is invalid. "
                "Please check your API key and try again.",
                status_code=status,
                body=response.text,
                provider=self.name,
            )
        if status in (400, 422):
            decision.retry = False
            raise InvalidRequestError(
                response.text,
                status_code=status,
                body=response.text,
                provider=self.name,
            )
        return decision

    def output_tokens(
        self, messages: Iterable[Any], options: LangOptions,
    ) -> int:
        caller = options.max_tokens if options.max_tokens is not None else self.max_tokens
        return compute_max_output(self.model_info, messages, caller)

    def instructions(
        self, collection: MessageCollection, options: LangOptions,
    ) -> str | None:
        """System text: collection instructions plus any schema prompt."""
        parts = [collection.instructions or self.system_prompt or ""]
        if options.schema is not None:
            parts.append(schema_instruction(options.schema))
        text = "\n\n".join(p for p in parts if p)
        return text or None

    # ------------------------------------------------------------------
    # Unified surface
    # ------------------------------------------------------------------

    async def send(
        self,
        collection: MessageCollection,
        options: LangOptions | None = None,
    ) -> MessageCollection:
        """One streamed model round; appends the assistant reply in place."""
        options = options or LangOptions()
        collection.finished = False
        request = self.build_request(collection, options)

        headers = {
            "Content-Type": "application/json",
            **request.headers,
            **self.headers,
            **options.provider_headers,
        }
        body = {**request.body, **self.extra_body, **options.provider_body}
        handler = create_stream_handler(
            request.wire_format, collection, options.on_result,
            **request.handler_options,
        )

        _logger.debug("%s: POST %s (model=%s)", self.name, request.url, self.model)
        async with self.transport.stream(
            request.url,
            headers=headers,
            json=body,
            on_not_ok_response=self.on_not_ok_response,
            signal=options.signal,
        ) as response:
            await demultiplex(iter_text(response, options.signal), handler.handle)

        handler.handle({"finished": True})
        _logger.debug("%s: stream finished", self.name)
        return collection

    async def chat(
        self,
        messages: MessageCollection | Iterable[Message | dict[str, Any]],
        options: LangOptions | None = None,
    ) -> MessageCollection:
        """Continue a conversation, running requested tools to completion."""
        options = options or LangOptions()
        if isinstance(messages, MessageCollection):
            collection = messages
        else:
            collection = MessageCollection(messages)
        if options.tools is not None:
            collection.available_tools = options.tools
        elif options.registry is not None:
            collection.available_tools = options.registry.list_tools()
        if collection.instructions is None and self.system_prompt:
            collection.instructions = self.system_prompt

        await self.send(collection, options)
        if options.execute_tools:
            await run_tool_loop(self, collection, options)
        return collection

    async def ask(
        self, prompt: str, options: LangOptions | None = None,
    ) -> MessageCollection:
        return await self.chat(MessageCollection(prompt), options)

    async def ask_for_object(
        self,
        prompt: str | MessageCollection | Iterable[Message | dict[str, Any]],
        schema: Any,
        options: LangOptions | None = None,
    ) -> MessageCollection:
        """Ask for JSON matching *schema*.

        On a missing or invalid object a correction message is appended
        and the model is asked again, up to ``schema_attempts`` times.
        The validated value (a model instance for pydantic schemas) is
        stored on ``collection.parsed``.

        Raises
        ------
        SchemaValidationError
            When every attempt fails.
        """
        if isinstance(prompt, str):
            collection = MessageCollection(prompt)
        elif isinstance(prompt, MessageCollection):
            collection = prompt
        else:
            collection = MessageCollection(prompt)
        options = replace(options or LangOptions(), schema=schema)

        errors: list[str] = []
        value: Any = None
        for attempt in range(self.schema_attempts):
            await self.chat(collection, options)
            value = collection.object
            if value is None:
                errors = ["Response did not contain valid JSON"]
            else:
                valid, errors, parsed = validate_against_schema(value, schema)
                if valid:
                    collection.parsed = parsed
                    return collection
            _logger.warning(
                "%s: structured output invalid (attempt %d/%d): %s",
                self.name, attempt + 1, self.schema_attempts, "; ".join(errors),
            )
            if attempt < self.schema_attempts - 1:
                collection.add_user_message(_correction_message(errors))

        raise SchemaValidationError(errors, value)
