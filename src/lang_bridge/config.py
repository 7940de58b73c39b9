"""Configuration for lang_bridge.

Config discovery (first match wins):
  1. explicit path (``--config`` flag)
  2. ``./lang_bridge.yaml``
  3. ``~/.config/lang-bridge/config.yaml``
  4. Built-in defaults

Example::

    provider: claude
    providers:
      claude:
        provider: anthropic
        model: claude-sonnet-4-20250514
        api_key_env: ANTHROPIC_API_KEY
      local:
        provider: ollama
        model: qwen3
    transport:
      max_retries: 3
    max_tool_rounds: 10
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from lang_bridge.models import ModelCatalog

_logger = logging.getLogger(__name__)

# Conventional environment variable per provider id.
API_KEY_ENV: dict[str, tuple[str, ...]] = {
    "openai": ("OPENAI_API_KEY",),
    "openai_like": ("OPENAI_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "google": ("GOOGLE_API_KEY", "GEMINI_API_KEY"),
    "cohere": ("COHERE_API_KEY", "CO_API_KEY"),
    "groq": ("GROQ_API_KEY",),
    "deepseek": ("DEEPSEEK_API_KEY",),
    "mistral": ("MISTRAL_API_KEY",),
    "xai": ("XAI_API_KEY",),
    "openrouter": ("OPENROUTER_API_KEY",),
}


# ---------------------------------------------------------------------------
# Config data structures
# ---------------------------------------------------------------------------

@dataclass
class ProviderSpec:
    """A named provider entry.

    ``api_key`` wins over ``api_key_env``, which wins over the provider's
    conventional environment variable.
    """

    provider: str = "ollama"
    model: str | None = None
    api_key: str | None = None
    api_key_env: str | None = None
    base_url: str | None = None
    system_prompt: str | None = None
    max_tokens: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    extra_body: dict[str, Any] = field(default_factory=dict)

    def resolve_api_key(self) -> str | None:
        if self.api_key:
            return self.api_key
        names = (self.api_key_env,) if self.api_key_env else API_KEY_ENV.get(self.provider, ())
        for name in names:
            value = os.environ.get(name)
            if value:
                return value
        return None


@dataclass
class TransportSpec:
    """Retry and timeout settings for :class:`~lang_bridge.transport.Transport`."""

    max_retries: int = 3
    backoff_base: float = 1.0
    timeout: float = 120
    connect_timeout: float = 30


@dataclass
class BridgeConfig:
    """Top-level config."""

    # Active provider entry name
    provider: str = "default"

    # Named provider entries
    providers: dict[str, ProviderSpec] = field(
        default_factory=lambda: {"default": ProviderSpec()}
    )

    transport: TransportSpec = field(default_factory=TransportSpec)

    # Tool loop / structured output
    max_tool_rounds: int = 10
    schema_attempts: int = 3

    # Extra model table merged over the built-in one
    models_file: str | None = None

    @property
    def active_provider(self) -> ProviderSpec:
        spec = self.providers.get(self.provider)
        if spec is None:
            _logger.warning("Provider entry %r not configured; using defaults", self.provider)
            return ProviderSpec()
        return spec

    def catalog(self) -> ModelCatalog:
        catalog = ModelCatalog.builtin()
        if self.models_file:
            path = Path(self.models_file).expanduser()
            if path.exists():
                catalog = catalog.merged(ModelCatalog.from_yaml(path))
            else:
                _logger.warning("Models file not found: %s", path)
        return catalog


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./lang_bridge.yaml"),
    Path.home() / ".config" / "lang-bridge" / "config.yaml",
]


def _parse_provider(raw: dict[str, Any]) -> ProviderSpec:
    return ProviderSpec(
        provider=raw.get("provider", "ollama"),
        model=raw.get("model"),
        api_key=raw.get("api_key"),
        api_key_env=raw.get("api_key_env"),
        base_url=raw.get("base_url"),
        system_prompt=raw.get("system_prompt"),
        max_tokens=raw.get("max_tokens"),
        headers=raw.get("headers") or {},
        extra_body=raw.get("extra_body") or {},
    )


def _parse_transport(raw: dict[str, Any] | None) -> TransportSpec:
    if not raw:
        return TransportSpec()
    known = {k: v for k, v in raw.items() if k in TransportSpec.__dataclass_fields__}
    return TransportSpec(**known)


def parse_config(raw: dict[str, Any]) -> BridgeConfig:
    """Build a :class:`BridgeConfig` from an already-loaded mapping."""
    providers: dict[str, ProviderSpec] = {}
    for name, praw in (raw.get("providers") or {}).items():
        providers[name] = _parse_provider(praw or {})

    if not providers:
        providers["default"] = ProviderSpec()

    active = raw.get("provider") or next(iter(providers))
    if active not in providers:
        raise ValueError(
            f"Active provider {active!r} is not defined. "
            f"Available: {', '.join(providers)}"
        )

    return BridgeConfig(
        provider=active,
        providers=providers,
        transport=_parse_transport(raw.get("transport")),
        max_tool_rounds=raw.get("max_tool_rounds", 10),
        schema_attempts=raw.get("schema_attempts", 3),
        models_file=raw.get("models_file"),
    )


def load_config(path: str | Path | None = None) -> BridgeConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Returns
    -------
    BridgeConfig
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s, using defaults", path)
            return BridgeConfig()
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found, using defaults")
        return BridgeConfig()

    _logger.info("Loading config from %s", config_path)
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return parse_config(raw)
