"""Tests for the lang-bridge command line."""

import yaml
from click.testing import CliRunner

from lang_bridge.cli import _StreamPrinter, main
from lang_bridge.messages import Message


def _write_config(tmp_path, raw) -> str:
    path = tmp_path / "lang_bridge.yaml"
    path.write_text(yaml.dump(raw))
    return str(path)


class TestAsk:
    def test_ask_with_mock_provider(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(main, ["ask", "--provider", "mock", "hello"])
        assert result.exit_code == 0, result.output
        assert "Hello from MockOpenAI" in result.output

    def test_ask_from_config_entry(self, tmp_path):
        path = _write_config(tmp_path, {
            "provider": "offline",
            "providers": {"offline": {"provider": "mock", "model": "gpt-4o-mini"}},
        })
        result = CliRunner().invoke(main, ["ask", "-c", path, "hi"])
        assert result.exit_code == 0, result.output
        assert "Hello from MockOpenAI" in result.output

    def test_unknown_provider_exits_1(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(main, ["ask", "--provider", "carrier-pigeon", "hi"])
        assert result.exit_code == 1
        assert "Unknown provider" in result.output


class TestListing:
    def test_providers(self):
        result = CliRunner().invoke(main, ["providers"])
        assert result.exit_code == 0
        assert "anthropic" in result.output
        assert "ollama" in result.output

    def test_models_filtered(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(main, ["models", "--provider", "deepseek"])
        assert result.exit_code == 0
        assert "deepseek-reasoner" in result.output
        assert "gpt-4o" not in result.output


class TestStreamPrinter:
    def test_prints_only_new_text(self, capsys):
        printer = _StreamPrinter(show_thinking=False)
        for text in ["Hel", "Hello", "Hello!"]:
            printer(Message("assistant", text))
        assert capsys.readouterr().out == "Hello!"

    def test_ignores_other_roles(self, capsys):
        printer = _StreamPrinter(show_thinking=True)
        printer(Message("tool-results", []))
        assert capsys.readouterr().out == ""
