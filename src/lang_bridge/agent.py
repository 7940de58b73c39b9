"""ChatAgent: a stateful conversation that publishes streaming events.

Listeners receive :class:`AgentEvent` objects:

* ``state``: ``{"state": "running" | "idle"}``
* ``streaming``: ``{"message": Message, "index": int}``
* ``finished``: ``{"messages": MessageCollection}``
* ``error``: ``{"error": Exception}``

``index`` numbers the messages produced by one run, starting at 0, so a
UI can keep one slot per message while tool rounds add more of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable

from lang_bridge.messages import Message, MessageCollection
from lang_bridge.providers.base import LangOptions, LanguageProvider
from lang_bridge.tools.base import ToolDefinition

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentEvent:
    type: str
    data: dict[str, Any] = field(default_factory=dict)


Listener = Callable[[AgentEvent], Any]


class ChatAgent:
    """Keeps a conversation and runs it against a provider.

    Parameters
    ----------
    provider:
        The language provider; may be set later with ``set_provider``.
    tools:
        Tools available to the conversation.
    options:
        Base per-call options. Their ``on_result`` still fires, after the
        agent's own listeners.
    """

    def __init__(
        self,
        provider: LanguageProvider | None = None,
        *,
        tools: list[ToolDefinition] | None = None,
        options: LangOptions | None = None,
    ) -> None:
        self.provider = provider
        self.messages = MessageCollection(tools=tools)
        self.options = options or LangOptions()
        self._listeners: list[Listener] = []
        self._state = "idle"

    @property
    def state(self) -> str:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_provider(self, provider: LanguageProvider) -> None:
        self.provider = provider

    def set_tools(self, tools: list[ToolDefinition]) -> None:
        self.messages.available_tools = tools

    async def run(
        self,
        messages: MessageCollection | Iterable[Message | dict[str, Any]],
    ) -> MessageCollection:
        """Continue the conversation with *messages* and run it to the end.

        A :class:`MessageCollection` replaces the conversation; anything
        else is appended to it.
        """
        if isinstance(messages, MessageCollection):
            self.messages = messages
        else:
            for m in messages:
                self.messages.append(m if isinstance(m, Message) else Message.from_dict(m))

        self._set_state("running")
        try:
            if self.provider is None:
                raise RuntimeError("Language provider not set")
            await self.provider.chat(self.messages, self._run_options())
        except Exception as e:
            self._emit("error", {"error": e})
            self._set_state("idle")
            raise
        self._emit("finished", {"messages": self.messages})
        self._set_state("idle")
        return self.messages

    def _run_options(self) -> LangOptions:
        seen: list[Message] = []
        forward = self.options.on_result

        def on_result(message: Message) -> None:
            if not seen or seen[-1] is not message:
                seen.append(message)
            self._emit("streaming", {"message": message, "index": len(seen) - 1})
            if forward is not None:
                forward(message)

        return replace(self.options, on_result=on_result)

    def _set_state(self, state: str) -> None:
        if state != self._state:
            self._state = state
            self._emit("state", {"state": state})

    def _emit(self, event_type: str, data: dict[str, Any]) -> None:
        event = AgentEvent(type=event_type, data=data)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.exception(
                    "ChatAgent listener %s raised for event %s",
                    getattr(listener, "__name__", listener),
                    event_type,
                )
