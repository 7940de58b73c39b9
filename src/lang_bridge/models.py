"""Read-only model capability catalog.

A :class:`ModelCatalog` is passed explicitly to providers and to
:func:`~lang_bridge.tokens.compute_max_output`; there is no module-level
registry. ``lookup`` never raises: unknown models yield ``None`` and
callers fall back to defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Iterator

import yaml

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelInfo:
    """Context and capability metadata for one model."""

    id: str
    provider: str = ""
    context_type: str = "token"
    context_window_tokens: int | None = None
    max_output_tokens: int | None = None
    output_is_fixed: bool = False
    capabilities: frozenset[str] = field(default_factory=frozenset)
    reasoning_max_output: int | None = None

    def can(self, capability: str) -> bool:
        return capability in self.capabilities

    @classmethod
    def from_dict(cls, raw: dict[str, Any], provider: str = "") -> ModelInfo:
        return cls(
            id=str(raw["id"]),
            provider=raw.get("provider", provider),
            context_type=raw.get("context_type", "token"),
            context_window_tokens=raw.get("context_window"),
            max_output_tokens=raw.get("max_output"),
            output_is_fixed=bool(raw.get("output_is_fixed", False)),
            capabilities=frozenset(raw.get("capabilities", [])),
            reasoning_max_output=raw.get("reasoning_max_output"),
        )


class ModelCatalog:
    """Lookup table of :class:`ModelInfo` keyed by model id."""

    def __init__(self, models: list[ModelInfo] | None = None) -> None:
        self._models: dict[str, ModelInfo] = {}
        for m in models or []:
            self._models[m.id.lower()] = m

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[ModelInfo]:
        return iter(self._models.values())

    def lookup(self, model_id: str | None) -> ModelInfo | None:
        """Find *model_id*; a ``vendor/`` prefix is ignored if needed."""
        if not model_id:
            return None
        key = model_id.lower()
        info = self._models.get(key)
        if info is None and "/" in key:
            info = self._models.get(key.rsplit("/", 1)[-1])
        if info is None and ":" in key:
            # Ollama-style tags, e.g. "llama3:latest".
            info = self._models.get(key.split(":", 1)[0])
        return info

    def for_provider(self, provider: str) -> list[ModelInfo]:
        return [m for m in self if m.provider == provider]

    def merged(self, other: ModelCatalog) -> ModelCatalog:
        """A new catalog where *other*'s entries override this one's."""
        return ModelCatalog([*self, *other])

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ModelCatalog:
        """Build from ``{"providers": {name: [model, ...]}}``."""
        models: list[ModelInfo] = []
        for provider, entries in (raw.get("providers") or {}).items():
            for entry in entries or []:
                try:
                    models.append(ModelInfo.from_dict(entry, provider))
                except KeyError:
                    _logger.warning("Skipping %s model entry without an id: %r", provider, entry)
        return cls(models)

    @classmethod
    def from_yaml(cls, path: str | Path) -> ModelCatalog:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        catalog = cls.from_dict(raw)
        _logger.info("Loaded %d models from %s", len(catalog), path)
        return catalog

    @classmethod
    def builtin(cls) -> ModelCatalog:
        """The table shipped with the package."""
        text = resources.files("lang_bridge.data").joinpath("models.yaml").read_text()
        return cls.from_dict(yaml.safe_load(text) or {})
