"""``<think>...</think>`` extraction for vendors that inline reasoning in text.

Extraction is always re-run on the whole accumulated string so that tags
split across chunk boundaries are recognised once the rest arrives.
"""

from __future__ import annotations

import re

_OPEN = "<think>"
_CLOSE = "</think>"
_BLOCK = re.compile(r"<think>(.*?)</think>", re.DOTALL)


def _partial_suffix(text: str, tag: str) -> int:
    """Length of the longest proper prefix of *tag* that *text* ends with."""
    for k in range(len(tag) - 1, 0, -1):
        if text.endswith(tag[:k]):
            return k
    return 0


def split_think_tags(text: str, final: bool = False) -> tuple[str, str]:
    """Split *text* into ``(thinking, visible)``.

    Complete blocks are reasoning. An opening tag without its closing tag
    makes everything after it provisional reasoning. While streaming
    (``final=False``) a trailing fragment such as ``"<thi"`` is held back
    from the visible text until the next chunk disambiguates it.
    """
    parts = [p.strip() for p in _BLOCK.findall(text)]
    visible = _BLOCK.sub("", text)
    found = bool(parts)

    open_idx = visible.find(_OPEN)
    if open_idx >= 0:
        pending = visible[open_idx + len(_OPEN):]
        if not final:
            pending = pending[: len(pending) - _partial_suffix(pending, _CLOSE)]
        parts.append(pending.strip())
        visible = visible[:open_idx]
        found = True
    elif not final:
        visible = visible[: len(visible) - _partial_suffix(visible, _OPEN)]

    thinking = "\n".join(p for p in parts if p)
    if found:
        visible = visible.strip()
    return thinking, visible


class ThinkTagSplitter:
    """Accumulates raw text chunks and re-splits the whole buffer each time."""

    def __init__(self) -> None:
        self.raw = ""

    def feed(self, chunk: str) -> tuple[str, str]:
        self.raw += chunk
        return split_think_tags(self.raw)

    def finish(self) -> tuple[str, str]:
        return split_think_tags(self.raw, final=True)
