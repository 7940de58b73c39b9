"""Exception taxonomy shared by providers, stream handlers and the tool loop."""

from __future__ import annotations

from typing import Any


class LangBridgeError(Exception):
    """Base class for every error raised by lang_bridge."""


# ---------------------------------------------------------------------------
# Provider / HTTP errors
# ---------------------------------------------------------------------------

class ProviderError(LangBridgeError):
    """A vendor API rejected or failed a request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
        provider: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.provider = provider


class AuthenticationError(ProviderError):
    """HTTP 401. Never retried."""


class InvalidRequestError(ProviderError):
    """HTTP 400/422. Never retried; ``body`` holds the raw response text."""


class TransientProviderError(ProviderError):
    """Any other HTTP or network failure that survived the retry policy."""


class ProviderStreamError(ProviderError):
    """The vendor reported an error in-band, inside the event stream."""


# ---------------------------------------------------------------------------
# Streaming / tooling errors
# ---------------------------------------------------------------------------

class StreamParseError(LangBridgeError):
    """A streamed frame could not be decoded as JSON."""

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message)
        self.line = line


class MissingToolHandlerError(LangBridgeError):
    """The model requested a tool that has no local handler."""

    def __init__(self, tool_name: str, available: list[str] | None = None) -> None:
        available = available or []
        listing = ", ".join(available) if available else "none"
        super().__init__(
            f"No handler registered for tool '{tool_name}'. Available: {listing}"
        )
        self.tool_name = tool_name
        self.available = available


class SchemaValidationError(LangBridgeError):
    """Structured output did not satisfy the requested schema."""

    def __init__(self, errors: list[str], value: Any = None) -> None:
        super().__init__("Schema validation failed: " + "; ".join(errors))
        self.errors = errors
        self.value = value


class CancellationError(LangBridgeError):
    """The caller's cancel signal fired while a request was in flight."""

    def __init__(self, message: str = "The operation was cancelled") -> None:
        super().__init__(message)
