"""Tests for the streaming HTTP transport: retry, backoff and cancellation."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from lang_bridge.errors import AuthenticationError, CancellationError, TransientProviderError
from lang_bridge.transport import (
    _BACKOFF_BASE,
    _MAX_RETRIES,
    NotOkDecision,
    Transport,
    default_decision,
    iter_text,
)

URL = "http://test.local/stream"


def _sequenced(*responses):
    """MockTransport handler replaying *responses* (status or exception)."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        item = responses[min(len(calls), len(responses) - 1)]
        calls.append(request)
        if isinstance(item, Exception):
            raise item
        if item == 200:
            return httpx.Response(200, text="data: ok\n\n")
        return httpx.Response(item, text=f"status {item}")

    return handler, calls


def _transport(handler, **kwargs) -> Transport:
    kwargs.setdefault("backoff_base", 0)
    return Transport(transport=httpx.MockTransport(handler), **kwargs)


async def _read(response: httpx.Response, signal=None) -> str:
    return "".join([chunk async for chunk in iter_text(response, signal)])


class TestDefaults:
    def test_constants(self):
        assert _MAX_RETRIES == 3
        assert _BACKOFF_BASE == 1

    def test_default_decision(self):
        assert default_decision(429).retry is True
        assert default_decision(503).retry is True
        assert default_decision(408).retry is True
        assert default_decision(400).retry is False
        assert default_decision(404).retry is False


class TestRetry:
    async def test_retries_on_429_then_succeeds(self):
        handler, calls = _sequenced(429, 429, 200)
        async with _transport(handler) as t:
            async with t.stream(URL, json={"x": 1}) as response:
                assert await _read(response) == "data: ok\n\n"
        assert len(calls) == 3

    async def test_backoff_is_exponential(self):
        handler, _ = _sequenced(500, 502, 200)
        t = Transport(transport=httpx.MockTransport(handler))
        with patch("lang_bridge.transport.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with t.stream(URL) as response:
                await response.aread()
        assert [c.args[0] for c in sleep.await_args_list] == [1, 2]
        await t.aclose()

    async def test_exhausted_retries_raise(self):
        handler, calls = _sequenced(503)
        async with _transport(handler) as t:
            with pytest.raises(TransientProviderError) as exc_info:
                async with t.stream(URL):
                    pass
        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "status 503"
        assert len(calls) == 3

    async def test_non_retryable_status_fails_fast(self):
        handler, calls = _sequenced(404)
        async with _transport(handler) as t:
            with pytest.raises(TransientProviderError, match="HTTP 404"):
                async with t.stream(URL):
                    pass
        assert len(calls) == 1

    async def test_network_error_retried(self):
        handler, calls = _sequenced(httpx.ConnectError("refused"), 200)
        async with _transport(handler) as t:
            async with t.stream(URL) as response:
                assert response.status_code == 200
        assert len(calls) == 2

    async def test_network_error_exhausted(self):
        handler, calls = _sequenced(httpx.ConnectError("refused"))
        async with _transport(handler, max_retries=2) as t:
            with pytest.raises(TransientProviderError, match="Network error"):
                async with t.stream(URL):
                    pass
        assert len(calls) == 2


class TestNotOkHook:
    async def test_hook_sees_body_and_can_force_retry(self):
        handler, calls = _sequenced(400, 200)
        seen = []

        def hook(response: httpx.Response, decision: NotOkDecision):
            seen.append((response.text, decision.retry))
            decision.retry = True
            return decision

        async with _transport(handler) as t:
            async with t.stream(URL, on_not_ok_response=hook):
                pass
        assert seen == [("status 400", False)]
        assert len(calls) == 2

    async def test_async_hook_can_stop_retry(self):
        handler, calls = _sequenced(503)

        async def hook(response, decision):
            return NotOkDecision(retry=False)

        async with _transport(handler) as t:
            with pytest.raises(TransientProviderError):
                async with t.stream(URL, on_not_ok_response=hook):
                    pass
        assert len(calls) == 1

    async def test_hook_exception_propagates(self):
        handler, calls = _sequenced(401)

        def hook(response, decision):
            raise AuthenticationError("bad key", status_code=401)

        async with _transport(handler) as t:
            with pytest.raises(AuthenticationError):
                async with t.stream(URL, on_not_ok_response=hook):
                    pass
        assert len(calls) == 1


class TestCancellation:
    async def test_signal_already_set(self):
        handler, calls = _sequenced(200)
        signal = asyncio.Event()
        signal.set()
        async with _transport(handler) as t:
            with pytest.raises(CancellationError):
                async with t.stream(URL, signal=signal):
                    pass
        assert calls == []

    async def test_cancel_mid_stream(self):
        hang = asyncio.Event()

        async def body():
            yield b"data: first\n\n"
            await hang.wait()
            yield b"data: never\n\n"

        def handler(request):
            return httpx.Response(200, content=body())

        signal = asyncio.Event()
        received = []
        async with _transport(handler) as t:
            with pytest.raises(CancellationError):
                async with t.stream(URL, signal=signal) as response:
                    async for chunk in iter_text(response, signal):
                        received.append(chunk)
                        signal.set()
        assert received == ["data: first\n\n"]

    async def test_cancel_during_backoff(self):
        handler, calls = _sequenced(503)
        signal = asyncio.Event()

        async def fire():
            await asyncio.sleep(0.05)
            signal.set()

        async with _transport(handler, backoff_base=10) as t:
            task = asyncio.ensure_future(fire())
            with pytest.raises(CancellationError):
                async with t.stream(URL, signal=signal):
                    pass
            await task
        assert len(calls) == 1
