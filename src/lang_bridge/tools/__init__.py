"""Tool definitions, registry and execution loop."""

from lang_bridge.tools.base import ToolDefinition, ToolHandler
from lang_bridge.tools.registry import ToolRegistry

__all__ = ["ToolDefinition", "ToolHandler", "ToolRegistry"]
