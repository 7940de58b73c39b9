"""Tool definitions and their per-vendor schema renderings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

from lang_bridge.types import ToolParameter

ToolHandler = Callable[[dict[str, Any]], Union[Any, Awaitable[Any]]]


@dataclass
class ToolDefinition:
    """A function the model may call.

    ``parameters`` is a JSON-Schema object. ``handler`` may be sync or
    async; a definition without a handler can still be advertised to the
    model, but requesting it fails the tool loop.
    """

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}},
    )
    handler: ToolHandler | None = None

    @classmethod
    def from_parameters(
        cls,
        name: str,
        description: str,
        parameters: list[ToolParameter],
        handler: ToolHandler | None = None,
    ) -> ToolDefinition:
        """Build a definition from flat :class:`ToolParameter` records."""
        properties: dict[str, Any] = {}
        required: list[str] = []
        for p in parameters:
            prop: dict[str, Any] = {
                "type": p.type,
                "description": p.description,
            }
            if p.enum:
                prop["enum"] = p.enum
            if p.default is not None:
                prop["default"] = p.default
            properties[p.name] = prop
            if p.required:
                required.append(p.name)

        return cls(
            name=name,
            description=description,
            parameters={
                "type": "object",
                "properties": properties,
                "required": required,
            },
            handler=handler,
        )

    # ------------------------------------------------------------------
    # Vendor renderings
    # ------------------------------------------------------------------

    def to_openai_schema(self) -> dict[str, Any]:
        """Chat-completions function calling format (also Cohere v2)."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_responses_schema(self) -> dict[str, Any]:
        """OpenAI Responses API flat function format."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def to_anthropic_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }

    def to_google_declaration(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }
