"""Tests for lang_bridge config loading."""

import pytest
import yaml

from lang_bridge.config import (
    BridgeConfig,
    ProviderSpec,
    TransportSpec,
    load_config,
    parse_config,
)


class TestProviderSpec:
    def test_defaults(self):
        p = ProviderSpec()
        assert p.provider == "ollama"
        assert p.model is None
        assert p.headers == {}

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "from-env")
        p = ProviderSpec(provider="openai", api_key="explicit")
        assert p.resolve_api_key() == "explicit"

    def test_named_env_var(self, monkeypatch):
        monkeypatch.setenv("MY_KEY", "secret")
        p = ProviderSpec(provider="openai", api_key_env="MY_KEY")
        assert p.resolve_api_key() == "secret"

    def test_conventional_env_var(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        monkeypatch.setenv("GEMINI_API_KEY", "gem")
        assert ProviderSpec(provider="google").resolve_api_key() == "gem"

    def test_no_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        assert ProviderSpec(provider="anthropic").resolve_api_key() is None


class TestBridgeConfig:
    def test_defaults(self):
        cfg = BridgeConfig()
        assert cfg.provider == "default"
        assert cfg.active_provider.provider == "ollama"
        assert cfg.transport == TransportSpec()
        assert cfg.max_tool_rounds == 10
        assert cfg.schema_attempts == 3

    def test_missing_active_entry_falls_back(self):
        cfg = BridgeConfig(provider="ghost")
        assert cfg.active_provider == ProviderSpec()

    def test_catalog_merges_models_file(self, tmp_path):
        path = tmp_path / "extra.yaml"
        path.write_text(yaml.dump({"providers": {"local": [
            {"id": "my-model", "context_window": 8192, "max_output": 1024},
        ]}}))
        cfg = BridgeConfig(models_file=str(path))
        catalog = cfg.catalog()
        assert catalog.lookup("my-model").provider == "local"
        assert catalog.lookup("gpt-4o") is not None


class TestParseConfig:
    def test_full(self):
        cfg = parse_config({
            "provider": "claude",
            "providers": {
                "claude": {
                    "provider": "anthropic",
                    "model": "claude-sonnet-4-20250514",
                    "max_tokens": 2048,
                },
                "local": {"provider": "ollama", "model": "qwen3"},
            },
            "transport": {"max_retries": 5, "timeout": 30, "unknown": 1},
            "max_tool_rounds": 4,
        })
        assert cfg.active_provider.provider == "anthropic"
        assert cfg.active_provider.max_tokens == 2048
        assert cfg.providers["local"].model == "qwen3"
        assert cfg.transport.max_retries == 5
        assert cfg.transport.timeout == 30
        assert cfg.max_tool_rounds == 4

    def test_first_entry_is_active_by_default(self):
        cfg = parse_config({"providers": {"b": {"provider": "groq"}, "a": {}}})
        assert cfg.provider == "b"

    def test_undefined_active_provider(self):
        with pytest.raises(ValueError, match="not defined"):
            parse_config({"provider": "nope", "providers": {"a": {}}})

    def test_empty(self):
        cfg = parse_config({})
        assert list(cfg.providers) == ["default"]


class TestLoadConfig:
    def test_load_from_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({
            "provider": "mock",
            "providers": {"mock": {"provider": "mock", "model": "m"}},
        }))
        cfg = load_config(path)
        assert cfg.active_provider.provider == "mock"
        assert cfg.active_provider.model == "m"

    def test_missing_explicit_path_uses_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "nope.yaml")
        assert cfg.provider == "default"

    def test_search_path_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "lang_bridge.yaml").write_text(yaml.dump({
            "providers": {"local": {"provider": "ollama", "model": "llama2"}},
        }))
        monkeypatch.chdir(tmp_path)
        cfg = load_config()
        assert cfg.provider == "local"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path).provider == "default"
