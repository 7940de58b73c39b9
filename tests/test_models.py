"""Tests for the model capability catalog."""

import dataclasses

import pytest
import yaml

from lang_bridge.models import ModelCatalog, ModelInfo


class TestModelCatalog:
    def test_builtin_loads(self):
        catalog = ModelCatalog.builtin()
        info = catalog.lookup("gpt-4o")
        assert info is not None
        assert info.provider == "openai"
        assert info.context_window_tokens == 128000
        assert info.can("img-in")

    def test_lookup_is_case_insensitive(self):
        catalog = ModelCatalog([ModelInfo(id="Model-A")])
        assert catalog.lookup("model-a") is not None
        assert catalog.lookup("MODEL-A") is not None

    def test_vendor_prefix_and_tag_ignored(self):
        catalog = ModelCatalog([ModelInfo(id="gpt-oss-120b"), ModelInfo(id="qwen3")])
        assert catalog.lookup("openai/gpt-oss-120b").id == "gpt-oss-120b"
        assert catalog.lookup("qwen3:latest").id == "qwen3"

    def test_unknown_model_is_none(self):
        catalog = ModelCatalog.builtin()
        assert catalog.lookup("definitely-not-a-model") is None
        assert catalog.lookup(None) is None

    def test_reasoning_capability(self):
        catalog = ModelCatalog.builtin()
        assert catalog.lookup("deepseek-reasoner").can("reason")
        assert not catalog.lookup("deepseek-chat").can("reason")

    def test_for_provider(self):
        catalog = ModelCatalog.builtin()
        ids = [m.id for m in catalog.for_provider("anthropic")]
        assert "claude-sonnet-4-20250514" in ids

    def test_from_yaml_and_merge(self, tmp_path):
        path = tmp_path / "models.yaml"
        path.write_text(yaml.dump({"providers": {"openai": [
            {"id": "gpt-4o", "context_window": 1000, "max_output": 10},
            {"id": "custom-model", "context_window": 2000, "max_output": 20,
             "output_is_fixed": True},
            {"context_window": 5},
        ]}}))
        extra = ModelCatalog.from_yaml(path)
        assert len(extra) == 2

        merged = ModelCatalog.builtin().merged(extra)
        assert merged.lookup("gpt-4o").context_window_tokens == 1000
        assert merged.lookup("custom-model").output_is_fixed is True
        assert merged.lookup("claude-sonnet-4-20250514") is not None

    def test_model_info_is_frozen(self):
        info = ModelInfo(id="x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            info.id = "y"
