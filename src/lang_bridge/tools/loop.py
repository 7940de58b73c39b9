"""Tool execution loop.

    awaiting-model -> executing-tools -> awaiting-model -> ... -> done

The loop holds no state of its own: everything lives in the
:class:`~lang_bridge.messages.MessageCollection` it is given.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from lang_bridge.errors import CancellationError
from lang_bridge.tools.registry import ToolRegistry
from lang_bridge.types import ToolResultItem

if TYPE_CHECKING:
    from lang_bridge.messages import Message, MessageCollection

_logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 10


class ToolLoopProvider(Protocol):
    """The slice of a provider the loop needs."""

    continues_after_tools: bool
    max_tool_rounds: int | None

    async def send(self, collection: MessageCollection, options: Any = None) -> MessageCollection: ...


def _error_result(call_id: str, name: str, exc: Exception) -> ToolResultItem:
    return ToolResultItem(
        call_id=call_id,
        name=name,
        result={"error": True, "name": type(exc).__name__, "message": str(exc)},
        is_error=True,
    )


async def execute_requested_tools(
    collection: MessageCollection,
    registry: ToolRegistry | None = None,
) -> Message | None:
    """Run every tool request in the trailing assistant message.

    Returns the appended ``tool-results`` message, or ``None`` when there
    was nothing to run. Requests execute in order; the results message is
    appended only once the whole batch has resolved. A request naming a
    tool without a handler raises
    :class:`~lang_bridge.errors.MissingToolHandlerError` before anything
    is appended. A handler that raises produces an error result instead
    of aborting the batch.
    """
    if not collection:
        return None
    last = collection[-1]
    if last.role != "assistant" or not last.tool_requests:
        return None

    if registry is None:
        registry = ToolRegistry(collection.available_tools or [])

    results: list[ToolResultItem] = []
    for request in last.tool_requests:
        tool = registry.require(request.name)
        _logger.debug("Executing tool %s (%s)", request.name, request.call_id)
        try:
            result = await registry.invoke(tool.name, request.arguments)
        except CancellationError:
            raise
        except Exception as e:
            _logger.warning(
                "Tool %s failed: %s: %s", request.name, type(e).__name__, e,
                exc_info=True,
            )
            results.append(_error_result(request.call_id, request.name, e))
            continue
        results.append(
            ToolResultItem(call_id=request.call_id, name=request.name, result=result),
        )

    return collection.add_tool_results_message(results)


def _round_limit(provider: ToolLoopProvider, options: Any) -> int:
    for source in (options, provider):
        limit = getattr(source, "max_tool_rounds", None)
        if limit is not None:
            return limit
    return DEFAULT_MAX_ROUNDS


async def run_tool_loop(
    provider: ToolLoopProvider,
    collection: MessageCollection,
    options: Any = None,
    *,
    max_rounds: int | None = None,
) -> MessageCollection:
    """Execute tools and re-ask the provider until no requests remain.

    Parameters
    ----------
    provider:
        Anything with ``send(collection, options)`` and a
        ``continues_after_tools`` flag. Providers whose convention needs
        no follow-up call stop after one batch.
    collection:
        The conversation, already holding the model's latest reply.
    options:
        Forwarded to ``provider.send``; ``on_result`` (if present) also
        receives each tool-results message. ``registry`` (if present)
        resolves tool requests instead of the collection's tools.
    max_rounds:
        Maximum number of follow-up model calls. Falls back to
        ``options.max_tool_rounds``, then ``provider.max_tool_rounds``,
        then :data:`DEFAULT_MAX_ROUNDS`. Zero runs one batch of tools
        and sends nothing back.
    """
    if max_rounds is None:
        max_rounds = _round_limit(provider, options)
    on_result = getattr(options, "on_result", None)
    registry = getattr(options, "registry", None)
    if registry is None:
        registry = ToolRegistry(collection.available_tools or [])

    rounds = 0
    while True:
        tool_message = await execute_requested_tools(collection, registry)
        if tool_message is None:
            return collection
        if on_result is not None:
            on_result(tool_message)
        if not provider.continues_after_tools:
            return collection
        if rounds >= max_rounds:
            _logger.warning(
                "Tool loop stopped after %d rounds; last tool results were not sent",
                rounds,
            )
            return collection
        rounds += 1
        _logger.info("Tool round %d/%d", rounds, max_rounds)
        await provider.send(collection, options)
