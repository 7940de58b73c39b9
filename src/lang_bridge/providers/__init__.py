"""Provider facades and the closed table that constructs them."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from lang_bridge.config import BridgeConfig, ProviderSpec
from lang_bridge.models import ModelCatalog
from lang_bridge.providers.anthropic import AnthropicProvider
from lang_bridge.providers.base import LangOptions, LanguageProvider, ProviderRequest
from lang_bridge.providers.cohere import CohereProvider
from lang_bridge.providers.google import GoogleProvider
from lang_bridge.providers.mock import MockOpenAILikeProvider
from lang_bridge.providers.ollama import OllamaProvider
from lang_bridge.providers.openai_chat import (
    DeepSeekProvider,
    GroqProvider,
    MistralProvider,
    OpenAILikeProvider,
    OpenRouterProvider,
    XAIProvider,
)
from lang_bridge.providers.openai_responses import OpenAIProvider
from lang_bridge.transport import Transport

_logger = logging.getLogger(__name__)


class ProviderId(str, Enum):
    OPENAI = "openai"
    OPENAI_LIKE = "openai_like"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    COHERE = "cohere"
    GROQ = "groq"
    DEEPSEEK = "deepseek"
    MISTRAL = "mistral"
    XAI = "xai"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"
    MOCK = "mock"


PROVIDERS: dict[ProviderId, type[LanguageProvider]] = {
    ProviderId.OPENAI: OpenAIProvider,
    ProviderId.OPENAI_LIKE: OpenAILikeProvider,
    ProviderId.ANTHROPIC: AnthropicProvider,
    ProviderId.GOOGLE: GoogleProvider,
    ProviderId.COHERE: CohereProvider,
    ProviderId.GROQ: GroqProvider,
    ProviderId.DEEPSEEK: DeepSeekProvider,
    ProviderId.MISTRAL: MistralProvider,
    ProviderId.XAI: XAIProvider,
    ProviderId.OPENROUTER: OpenRouterProvider,
    ProviderId.OLLAMA: OllamaProvider,
    ProviderId.MOCK: MockOpenAILikeProvider,
}


def create_provider(provider: ProviderId | str, **kwargs: Any) -> LanguageProvider:
    """Construct the facade for *provider*; kwargs go to its constructor."""
    try:
        pid = ProviderId(provider)
    except ValueError:
        raise ValueError(
            f"Unknown provider: {provider!r}. "
            f"Available: {', '.join(p.value for p in ProviderId)}"
        ) from None
    return PROVIDERS[pid](**kwargs)


def provider_from_config(
    config: BridgeConfig,
    name: str | None = None,
    *,
    catalog: ModelCatalog | None = None,
) -> LanguageProvider:
    """Build the provider entry *name* (default: the active one)."""
    spec: ProviderSpec = config.providers[name] if name else config.active_provider
    t = config.transport
    kwargs: dict[str, Any] = {
        "model": spec.model,
        "api_key": spec.resolve_api_key(),
        "base_url": spec.base_url,
        "system_prompt": spec.system_prompt,
        "max_tokens": spec.max_tokens,
        "headers": spec.headers,
        "extra_body": spec.extra_body,
        "catalog": catalog if catalog is not None else config.catalog(),
        "schema_attempts": config.schema_attempts,
        "max_tool_rounds": config.max_tool_rounds,
    }
    if spec.provider != ProviderId.MOCK.value:
        kwargs["transport"] = Transport(
            max_retries=t.max_retries,
            backoff_base=t.backoff_base,
            timeout=t.timeout,
            connect_timeout=t.connect_timeout,
        )
    _logger.debug("Creating provider %s (model=%s)", spec.provider, spec.model)
    return create_provider(spec.provider, **kwargs)


__all__ = [
    "AnthropicProvider",
    "CohereProvider",
    "DeepSeekProvider",
    "GoogleProvider",
    "GroqProvider",
    "LangOptions",
    "LanguageProvider",
    "MistralProvider",
    "MockOpenAILikeProvider",
    "OllamaProvider",
    "OpenAILikeProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "PROVIDERS",
    "ProviderId",
    "ProviderRequest",
    "XAIProvider",
    "create_provider",
    "provider_from_config",
]
