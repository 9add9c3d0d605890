"""Boundary-aware splitting of over-long text.

:func:`split_on_boundaries` cuts text into pieces no larger than
``max_tokens``, preferring (in order) a paragraph break, a line break and a
sentence end inside the search window around the target size, and falling
back to a binary-searched hard cut only when no boundary fits.
"""

from __future__ import annotations

import re

from src.services.chunking.token_estimator import estimate_tokens

# Characters per token used to translate token budgets into a search window.
_CHARS_PER_TOKEN = 3.5
# How far before the target position the boundary search starts.
_SEARCH_LEAD_CHARS = 200

_PARAGRAPH = re.compile(r"\n\n")
_LINE = re.compile(r"\n")
_SENTENCE = re.compile(r"[.!?]\s+")


def split_on_boundaries(
    text: str,
    target_tokens: int = 300,
    max_tokens: int = 700,
    model_family: str = "openai",
) -> list[str]:
    """Split *text* into stripped pieces of at most *max_tokens* each.

    Text already within *target_tokens* is returned as a single piece.
    """
    if estimate_tokens(text, model_family) <= target_tokens:
        return [text]

    pieces: list[str] = []
    remaining = text

    while remaining:
        if estimate_tokens(remaining, model_family) <= target_tokens:
            pieces.append(remaining.strip())
            break

        split_at = _find_boundary(remaining, target_tokens, max_tokens, model_family)
        if split_at == -1:
            split_at = _find_hard_split(remaining, max_tokens, model_family)

        piece = remaining[:split_at].strip()
        if piece:
            pieces.append(piece)
        remaining = remaining[split_at:].strip()

    return [piece for piece in pieces if piece]


def _find_boundary(text: str, target_tokens: int, max_tokens: int, model_family: str) -> int:
    """Return the split index at the best boundary, or ``-1`` if none fits."""
    target_chars = int(target_tokens * _CHARS_PER_TOKEN)
    max_chars = int(max_tokens * _CHARS_PER_TOKEN)

    search_start = max(0, min(target_chars - _SEARCH_LEAD_CHARS, len(text)))
    search_end = min(max_chars, len(text))
    window = text[search_start:search_end]

    for pattern in (_PARAGRAPH, _LINE, _SENTENCE):
        match = pattern.search(window)
        if match is None:
            continue
        split_at = search_start + match.end()
        if split_at > 0 and estimate_tokens(text[:split_at], model_family) <= max_tokens:
            return split_at

    return -1


def _find_hard_split(text: str, max_tokens: int, model_family: str) -> int:
    """Binary-search the longest prefix within *max_tokens*; always >= 1."""
    low, high = 0, len(text)
    while low < high:
        mid = (low + high + 1) // 2
        if estimate_tokens(text[:mid], model_family) <= max_tokens:
            low = mid
        else:
            high = mid - 1
    return max(1, low)
