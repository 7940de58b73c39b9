"""Command-line harness: stream an answer from any configured provider."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

import click
from rich.console import Console
from rich.table import Table

from lang_bridge.config import BridgeConfig, ProviderSpec, load_config
from lang_bridge.errors import LangBridgeError
from lang_bridge.messages import Message, MessageCollection
from lang_bridge.providers import PROVIDERS, LangOptions, provider_from_config

console = Console()

_CLI_ENTRY = "_cli"


def _select_provider(
    config: BridgeConfig,
    provider: str | None,
    model: str | None,
    system: str | None,
) -> BridgeConfig:
    """Apply command-line overrides on top of the loaded config."""
    if provider is None:
        spec = config.active_provider
    elif provider in config.providers:
        spec = config.providers[provider]
    else:
        spec = ProviderSpec(provider=provider)
    overrides = {}
    if model:
        overrides["model"] = model
    if system:
        overrides["system_prompt"] = system
    config.providers[_CLI_ENTRY] = replace(spec, **overrides)
    config.provider = _CLI_ENTRY
    return config


class _StreamPrinter:
    """Prints only what is new in the streamed answer."""

    def __init__(self, show_thinking: bool) -> None:
        self.show_thinking = show_thinking
        self._answer = ""
        self._thinking = ""

    def __call__(self, message: Message) -> None:
        if message.role != "assistant":
            return
        if self.show_thinking:
            self._thinking = self._emit(self._thinking, message.reasoning, "dim")
        self._answer = self._emit(self._answer, message.text, None)

    @staticmethod
    def _emit(shown: str, current: str, style: str | None) -> str:
        # Text can be rewritten while <think> tags are resolved.
        if not current.startswith(shown):
            return shown
        if len(current) > len(shown):
            console.print(current[len(shown):], end="", style=style, markup=False, highlight=False)
        return current


async def _ask(config: BridgeConfig, prompt: str, show_thinking: bool) -> MessageCollection:
    provider = provider_from_config(config)
    try:
        options = LangOptions(on_result=_StreamPrinter(show_thinking))
        return await provider.ask(prompt, options)
    finally:
        await provider.aclose()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """lang-bridge - one streaming interface over many LLM APIs."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("prompt")
@click.option("--config", "-c", "config_path", default=None,
              help="Path to lang_bridge.yaml (auto-detected from CWD or ~/.config/lang-bridge/)")
@click.option("--provider", "-p", default=None,
              help="Config entry name or provider id (openai, anthropic, ollama, ...)")
@click.option("--model", "-m", default=None, help="Model id")
@click.option("--system", "-s", default=None, help="System prompt")
@click.option("--show-thinking", is_flag=True, help="Also stream reasoning text")
def ask(
    prompt: str,
    config_path: str | None,
    provider: str | None,
    model: str | None,
    system: str | None,
    show_thinking: bool,
) -> None:
    """Send PROMPT and stream the answer."""
    config = _select_provider(load_config(config_path), provider, model, system)
    try:
        collection = asyncio.run(_ask(config, prompt, show_thinking))
    except (LangBridgeError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        raise SystemExit(1) from e
    if not collection.answer.endswith("\n"):
        console.print()


@main.command()
def providers() -> None:
    """List supported provider ids."""
    table = Table(title="Providers")
    table.add_column("id", style="cyan")
    table.add_column("default model")
    table.add_column("base url", style="dim")
    for pid, cls in PROVIDERS.items():
        table.add_row(pid.value, cls.default_model, cls.default_base_url)
    console.print(table)


@main.command()
@click.option("--config", "-c", "config_path", default=None, help="Path to lang_bridge.yaml")
@click.option("--provider", "-p", default=None, help="Only models for this provider id")
def models(config_path: str | None, provider: str | None) -> None:
    """List models in the capability catalog."""
    catalog = load_config(config_path).catalog()
    entries = catalog.for_provider(provider) if provider else list(catalog)
    table = Table(title="Models")
    table.add_column("id", style="cyan")
    table.add_column("provider")
    table.add_column("context", justify="right")
    table.add_column("max output", justify="right")
    table.add_column("capabilities", style="dim")
    for m in entries:
        table.add_row(
            m.id,
            m.provider,
            str(m.context_window_tokens or "-"),
            str(m.max_output_tokens or "-") + (" (fixed)" if m.output_is_fixed else ""),
            ", ".join(sorted(m.capabilities)),
        )
    console.print(table)


if __name__ == "__main__":
    main()
