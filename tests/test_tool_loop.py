"""Tests for the tool registry and the tool execution loop."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from lang_bridge.errors import MissingToolHandlerError
from lang_bridge.messages import MessageCollection
from lang_bridge.providers import LangOptions, MockOpenAILikeProvider
from lang_bridge.tools import ToolDefinition, ToolRegistry
from lang_bridge.tools.loop import execute_requested_tools, run_tool_loop
from lang_bridge.types import ToolParameter, ToolRequestItem


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _add(args: dict[str, Any]) -> int:
    return args["a"] + args["b"]


async def _async_echo(args: dict[str, Any]) -> str:
    await asyncio.sleep(0)
    return f"Echo: {args.get('message', '')}"


def _fail(args: dict[str, Any]) -> None:
    raise RuntimeError("intentional failure")


ADD = ToolDefinition(
    "add",
    "Add two numbers",
    {"type": "object", "properties": {"a": {"type": "number"}, "b": {"type": "number"}}},
    _add,
)
ECHO = ToolDefinition.from_parameters(
    "echo", "Echo a message",
    [ToolParameter(name="message", type="string", description="Message to echo")],
    _async_echo,
)
FAIL = ToolDefinition("fail", "Always fails", handler=_fail)


def _with_requests(*requests: ToolRequestItem, tools=None) -> MessageCollection:
    collection = MessageCollection("go", tools=tools or [ADD, ECHO, FAIL])
    collection.add_assistant_items(list(requests))
    return collection


def _tool_call_events(call_id: str, name: str, *fragments: str) -> list[dict]:
    events = [{"choices": [{"delta": {"tool_calls": [{
        "index": 0, "id": call_id, "type": "function",
        "function": {"name": name, "arguments": ""},
    }]}}]}]
    for frag in fragments:
        events.append({"choices": [{"delta": {"tool_calls": [{
            "index": 0, "function": {"arguments": frag},
        }]}}]})
    return events


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestToolRegistry:
    def test_register_and_lookup(self):
        registry = ToolRegistry([ADD, ECHO])
        assert "add" in registry
        assert registry.tool_names() == ["add", "echo"]
        assert registry.list_tools() == [ADD, ECHO]

    def test_require_missing(self):
        with pytest.raises(MissingToolHandlerError, match="'nope'.*add"):
            ToolRegistry([ADD]).require("nope")

    def test_require_definition_without_handler(self):
        registry = ToolRegistry([ToolDefinition("bare", "no handler")])
        with pytest.raises(MissingToolHandlerError) as exc_info:
            registry.require("bare")
        assert exc_info.value.tool_name == "bare"

    async def test_invoke_sync_and_async(self):
        registry = ToolRegistry([ADD, ECHO])
        assert await registry.invoke("add", {"a": 1, "b": 2}) == 3
        assert await registry.invoke("echo", {"message": "hi"}) == "Echo: hi"

    def test_from_parameters_schema(self):
        schema = ECHO.to_openai_schema()
        assert schema["function"]["parameters"]["required"] == ["message"]
        assert ECHO.to_anthropic_schema()["input_schema"]["properties"]["message"]["type"] == "string"

    def test_discover_entry_points(self):
        ep = MagicMock()
        ep.name = "adder"
        ep.load.return_value = ADD
        broken = MagicMock()
        broken.name = "broken"
        broken.load.side_effect = ImportError("gone")
        with patch("lang_bridge.tools.registry.entry_points", return_value=[ep, broken]):
            registry = ToolRegistry()
            registry.discover()
        assert registry.tool_names() == ["add"]


# ---------------------------------------------------------------------------
# One batch
# ---------------------------------------------------------------------------

class TestExecuteRequestedTools:
    async def test_no_requests_returns_none(self):
        collection = MessageCollection("hi")
        collection.add_assistant_message("hello")
        assert await execute_requested_tools(collection) is None
        assert len(collection) == 2

    async def test_results_keep_call_ids_and_order(self):
        collection = _with_requests(
            ToolRequestItem("c1", "add", {"a": 2, "b": 3}),
            ToolRequestItem("c2", "echo", {"message": "x"}),
        )
        msg = await execute_requested_tools(collection)
        assert msg is collection[-1]
        assert msg.role == "tool-results"
        assert [(r.call_id, r.result) for r in msg.tool_results] == [("c1", 5), ("c2", "Echo: x")]

    async def test_handler_exception_recorded(self):
        collection = _with_requests(
            ToolRequestItem("c1", "fail", {}),
            ToolRequestItem("c2", "add", {"a": 1, "b": 1}),
        )
        msg = await execute_requested_tools(collection)
        failed, ok = msg.tool_results
        assert failed.is_error is True
        assert failed.result == {
            "error": True, "name": "RuntimeError", "message": "intentional failure",
        }
        assert ok.result == 2

    async def test_missing_handler_fails_before_append(self):
        collection = _with_requests(
            ToolRequestItem("c1", "add", {"a": 1, "b": 1}),
            ToolRequestItem("c2", "unknown", {}),
        )
        with pytest.raises(MissingToolHandlerError, match="unknown"):
            await execute_requested_tools(collection)
        assert collection[-1].role == "assistant"


# ---------------------------------------------------------------------------
# Loop against a provider
# ---------------------------------------------------------------------------

class TestRunToolLoop:
    async def test_add_end_to_end(self):
        provider = MockOpenAILikeProvider(
            scripted=[_tool_call_events("call_1", "add", '{"a": 2, "b": ', "3}")],
            response_text="The sum is 5.",
        )
        collection = await provider.ask("What is 2 + 3?", LangOptions(tools=[ADD]))

        roles = [m.role for m in collection]
        assert roles == ["user", "assistant", "tool-results", "assistant"]
        assert collection[1].tool_requests[0].arguments == {"a": 2, "b": 3}
        assert collection[2].tool_results[0].result == 5
        assert collection.answer == "The sum is 5."
        assert collection.finished is True

        follow_up = provider.requests[1]["messages"]
        assert follow_up[-1] == {"role": "tool", "tool_call_id": "call_1", "content": "5"}

    async def test_max_rounds_caps_follow_ups(self):
        loop_events = _tool_call_events("call_x", "add", '{"a": 1, "b": 1}')
        provider = MockOpenAILikeProvider(scripted=[loop_events] * 5)
        options = LangOptions(tools=[ADD], max_tool_rounds=2)
        collection = await provider.ask("loop", options)
        assert len(provider.requests) == 3
        assert collection[-1].role == "tool-results"

    async def test_zero_rounds_sends_no_follow_up(self):
        loop_events = _tool_call_events("call_x", "add", '{"a": 1, "b": 1}')
        provider = MockOpenAILikeProvider(scripted=[loop_events] * 3)
        collection = await provider.ask("loop", LangOptions(tools=[ADD], max_tool_rounds=0))
        assert len(provider.requests) == 1
        assert collection[-1].role == "tool-results"
        assert collection[-1].tool_results[0].result == 2

    async def test_provider_round_limit_is_default(self):
        loop_events = _tool_call_events("call_x", "add", '{"a": 1, "b": 1}')
        provider = MockOpenAILikeProvider(scripted=[loop_events] * 5, max_tool_rounds=1)
        await provider.ask("loop", LangOptions(tools=[ADD]))
        assert len(provider.requests) == 2

    async def test_option_round_limit_overrides_provider(self):
        loop_events = _tool_call_events("call_x", "add", '{"a": 1, "b": 1}')
        provider = MockOpenAILikeProvider(scripted=[loop_events] * 5, max_tool_rounds=1)
        await provider.ask("loop", LangOptions(tools=[ADD], max_tool_rounds=3))
        assert len(provider.requests) == 4

    async def test_injected_registry_runs_discovered_tool(self):
        ep = MagicMock()
        ep.name = "adder"
        ep.load.return_value = ADD
        with patch("lang_bridge.tools.registry.entry_points", return_value=[ep]):
            registry = ToolRegistry()
            registry.discover()
        provider = MockOpenAILikeProvider(
            scripted=[_tool_call_events("c", "add", '{"a": 4, "b": 5}')],
            response_text="9",
        )
        collection = await provider.ask("x", LangOptions(registry=registry))
        advertised = provider.requests[0]["tools"]
        assert [t["function"]["name"] for t in advertised] == ["add"]
        assert collection[2].tool_results[0].result == 9
        assert collection.answer == "9"

    async def test_execute_tools_false_leaves_requests(self):
        provider = MockOpenAILikeProvider(
            scripted=[_tool_call_events("c", "add", '{"a": 1, "b": 1}')],
        )
        collection = await provider.ask("x", LangOptions(tools=[ADD], execute_tools=False))
        assert collection[-1].tool_requests
        assert len(provider.requests) == 1

    async def test_on_result_sees_tool_results(self):
        seen: list[str] = []
        provider = MockOpenAILikeProvider(
            scripted=[_tool_call_events("c", "add", '{"a": 1, "b": 1}')],
            response_text="2",
        )
        await provider.ask("x", LangOptions(tools=[ADD], on_result=lambda m: seen.append(m.role)))
        assert "tool-results" in seen
        assert seen[-1] == "assistant"

    async def test_provider_without_follow_up_stops_after_batch(self):
        provider = MockOpenAILikeProvider(
            scripted=[_tool_call_events("c", "add", '{"a": 1, "b": 1}')],
        )
        provider.continues_after_tools = False
        collection = await provider.ask("x", LangOptions(tools=[ADD]))
        assert collection[-1].role == "tool-results"
        assert len(provider.requests) == 1

    async def test_loop_with_plain_answer_is_noop(self):
        provider = MockOpenAILikeProvider(response_text="no tools")
        collection = await provider.ask("x")
        result = await run_tool_loop(provider, collection)
        assert result is collection
        assert len(provider.requests) == 1

    async def test_arguments_serialized_back_to_model(self):
        provider = MockOpenAILikeProvider(
            scripted=[_tool_call_events("c", "echo", '{"message": "hi"}')],
            response_text="done",
        )
        await provider.ask("x", LangOptions(tools=[ECHO]))
        assistant = provider.requests[1]["messages"][-2]
        assert json.loads(assistant["tool_calls"][0]["function"]["arguments"]) == {"message": "hi"}
