"""lang_bridge: one streaming interface over many LLM HTTP APIs."""

from lang_bridge.agent import AgentEvent, ChatAgent
from lang_bridge.config import BridgeConfig, load_config
from lang_bridge.errors import (
    AuthenticationError,
    CancellationError,
    InvalidRequestError,
    LangBridgeError,
    MissingToolHandlerError,
    ProviderError,
    ProviderStreamError,
    SchemaValidationError,
    StreamParseError,
    TransientProviderError,
)
from lang_bridge.messages import Message, MessageCollection
from lang_bridge.models import ModelCatalog, ModelInfo
from lang_bridge.providers import (
    LangOptions,
    LanguageProvider,
    ProviderId,
    create_provider,
    provider_from_config,
)
from lang_bridge.tokens import compute_max_output
from lang_bridge.tools import ToolDefinition, ToolRegistry
from lang_bridge.types import ImageInput, ToolParameter

__version__ = "0.1.0"

__all__ = [
    "AgentEvent",
    "AuthenticationError",
    "BridgeConfig",
    "CancellationError",
    "ChatAgent",
    "ImageInput",
    "InvalidRequestError",
    "LangBridgeError",
    "LangOptions",
    "LanguageProvider",
    "Message",
    "MessageCollection",
    "MissingToolHandlerError",
    "ModelCatalog",
    "ModelInfo",
    "ProviderError",
    "ProviderId",
    "ProviderStreamError",
    "SchemaValidationError",
    "StreamParseError",
    "ToolDefinition",
    "ToolParameter",
    "ToolRegistry",
    "TransientProviderError",
    "compute_max_output",
    "create_provider",
    "load_config",
    "provider_from_config",
]
