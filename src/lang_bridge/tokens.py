"""Output-token budget for a request.

Token counts are a rough estimate (characters / 4, plus a fixed
per-message overhead). No tokenizer is involved.
"""

from __future__ import annotations

import json
import math
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from lang_bridge.models import ModelInfo

FALLBACK_MAX_TOKENS = 4000
_CHARS_PER_TOKEN = 4
_MESSAGE_OVERHEAD = 4


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / _CHARS_PER_TOKEN) if text else 0


def _message_text(message: Any) -> str:
    if isinstance(message, dict):
        content = message.get("content")
        if content is None and "items" in message:
            content = message["items"]
        if isinstance(content, str):
            return content
        return json.dumps(content, default=str) if content is not None else ""
    # Message objects: every item contributes, not just visible text.
    parts: list[str] = []
    for item in getattr(message, "items", []):
        for attr in ("text", "arguments", "result"):
            value = getattr(item, attr, None)
            if isinstance(value, str):
                parts.append(value)
            elif value:
                parts.append(json.dumps(value, default=str))
    return "".join(parts)


def estimate_messages_tokens(messages: Iterable[Any]) -> int:
    return sum(
        estimate_tokens(_message_text(m)) + _MESSAGE_OVERHEAD for m in messages
    )


def compute_max_output(
    model_info: ModelInfo | None,
    messages: Iterable[Any],
    caller_max_tokens: int | None = None,
) -> int:
    """How many output tokens to request.

    1. Unknown model or context not measured in tokens: the caller's value,
       else :data:`FALLBACK_MAX_TOKENS`.
    2. Fixed output allowance: that allowance, lowered to the caller's
       value when the caller asks for less.
    3. Shared input/output window: ``min(caller, model max output,
       window - estimated input)``, never below 0.
    4. Window or max output unknown: the caller's value, else the
       model's max output, else :data:`FALLBACK_MAX_TOKENS`.
    """
    if model_info is None or model_info.context_type != "token":
        return caller_max_tokens if caller_max_tokens is not None else FALLBACK_MAX_TOKENS

    max_output = model_info.max_output_tokens
    total = model_info.context_window_tokens

    if model_info.output_is_fixed and max_output:
        if caller_max_tokens is not None:
            return min(caller_max_tokens, max_output)
        return max_output

    if total and max_output:
        limits = [max_output, total - estimate_messages_tokens(messages)]
        if caller_max_tokens is not None:
            limits.append(caller_max_tokens)
        return max(0, min(limits))

    if caller_max_tokens is not None:
        return caller_max_tokens
    return max_output or FALLBACK_MAX_TOKENS
