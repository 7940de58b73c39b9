"""HTTP transport: streaming requests with bounded retry and cancellation.

Built on ``httpx.AsyncClient``. Providers pass an ``on_not_ok_response``
hook that sees every failed response (body already read) together with
the default :class:`NotOkDecision`; the hook may flip ``retry`` or raise
a more specific error.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Union

import httpx

from lang_bridge.errors import CancellationError, TransientProviderError

_logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_BACKOFF_BASE = 1  # seconds -- exponential: 1, 2, 4
_RETRY_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass
class NotOkDecision:
    """Whether the transport should try a failed request again."""

    retry: bool


NotOkHook = Callable[
    [httpx.Response, NotOkDecision],
    Union[NotOkDecision, None, Awaitable[Union[NotOkDecision, None]]],
]


def default_decision(status_code: int) -> NotOkDecision:
    return NotOkDecision(retry=status_code in _RETRY_STATUSES or status_code >= 500)


async def _race(awaitable: Awaitable[Any], signal: asyncio.Event | None) -> Any:
    """Await *awaitable* unless *signal* fires first."""
    if signal is None:
        return await awaitable
    if signal.is_set():
        close = getattr(awaitable, "close", None)
        if close is not None:
            close()
        raise CancellationError()
    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        task.cancel()
        waiter.cancel()
        raise
    if task in done:
        waiter.cancel()
        return task.result()
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task
    raise CancellationError()


async def iter_text(
    response: httpx.Response, signal: asyncio.Event | None = None,
) -> AsyncIterator[str]:
    """Yield decoded body chunks; raise :class:`CancellationError` on *signal*."""
    chunks = response.aiter_text().__aiter__()
    while True:
        try:
            chunk = await _race(chunks.__anext__(), signal)
        except StopAsyncIteration:
            return
        if chunk:
            yield chunk


class Transport:
    """Streaming HTTP with exponential backoff.

    Parameters
    ----------
    max_retries:
        Total attempts per request (network errors and retryable
        statuses both count).
    backoff_base:
        Seconds; attempt *n* waits ``backoff_base * 2 ** n``.
    timeout, connect_timeout:
        Passed to ``httpx.Timeout``. The core itself enforces none.
    client:
        Use this client instead of creating one (the caller closes it).
    transport:
        httpx transport for the owned client, e.g. ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        max_retries: int = _MAX_RETRIES,
        backoff_base: float = _BACKOFF_BASE,
        timeout: float = 120,
        connect_timeout: float = 30,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout, read=300),
            transport=transport,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------

    @asynccontextmanager
    async def stream(
        self,
        url: str,
        *,
        method: str = "POST",
        headers: dict[str, str] | None = None,
        json: Any = None,
        on_not_ok_response: NotOkHook | None = None,
        signal: asyncio.Event | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming request, retrying until a 2xx arrives."""
        for attempt in range(self.max_retries):
            request = self._client.build_request(method, url, headers=headers, json=json)
            try:
                response = await _race(self._client.send(request, stream=True), signal)
            except httpx.TransportError as e:
                _logger.warning(
                    "Request to %s failed (attempt %d/%d): %s",
                    url, attempt + 1, self.max_retries, e,
                )
                if attempt < self.max_retries - 1:
                    await self._backoff(attempt, signal)
                    continue
                raise TransientProviderError(f"Network error: {e}") from e

            if response.is_success:
                _logger.debug("Streaming response from %s (%d)", url, response.status_code)
                try:
                    yield response
                finally:
                    await response.aclose()
                return

            try:
                await response.aread()
            finally:
                await response.aclose()
            decision = default_decision(response.status_code)
            if on_not_ok_response is not None:
                result = on_not_ok_response(response, decision)
                if inspect.isawaitable(result):
                    result = await result
                if result is not None:
                    decision = result

            body = response.text
            if not decision.retry or attempt == self.max_retries - 1:
                raise TransientProviderError(
                    f"HTTP {response.status_code}: {body[:500]}",
                    status_code=response.status_code,
                    body=body,
                )
            _logger.warning(
                "%s returned %d (attempt %d/%d), retrying...",
                url, response.status_code, attempt + 1, self.max_retries,
            )
            await self._backoff(attempt, signal)

    async def _backoff(self, attempt: int, signal: asyncio.Event | None) -> None:
        await _race(asyncio.sleep(self.backoff_base * (2 ** attempt)), signal)
