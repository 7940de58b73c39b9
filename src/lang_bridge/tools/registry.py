"""Tool registry with plugin discovery."""

from __future__ import annotations

import inspect
import logging
from importlib.metadata import entry_points
from typing import Any, Iterable

from lang_bridge.errors import MissingToolHandlerError
from lang_bridge.tools.base import ToolDefinition

_logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "lang_bridge.tools"


class ToolRegistry:
    """Name -> :class:`ToolDefinition` lookup with sync/async invocation."""

    def __init__(self, tools: Iterable[ToolDefinition] | None = None) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            _logger.debug("Replacing tool definition %r", tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def require(self, name: str) -> ToolDefinition:
        """Return the tool *name*, which must have a handler."""
        tool = self._tools.get(name)
        if tool is None or tool.handler is None:
            raise MissingToolHandlerError(
                name,
                [t.name for t in self._tools.values() if t.handler is not None],
            )
        return tool

    async def invoke(self, name: str, arguments: dict[str, Any]) -> Any:
        """Call the handler for *name*; awaits it if it is async.

        Exceptions from the handler propagate to the caller.
        """
        tool = self.require(name)
        result = tool.handler(arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    def discover(self) -> None:
        """Load tools from entry points in the ``lang_bridge.tools`` group.

        Each entry point may be a :class:`ToolDefinition` or a callable
        returning one.
        """
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                obj = ep.load()
                tool = obj if isinstance(obj, ToolDefinition) else obj()
            except Exception:
                _logger.exception("Failed to load tool plugin: %s", ep.name)
                continue
            if not isinstance(tool, ToolDefinition):
                _logger.warning(
                    "Entry point %s did not return a ToolDefinition: %s",
                    ep.name, type(tool),
                )
                continue
            self.register(tool)
            _logger.info("Discovered plugin tool: %s", tool.name)
