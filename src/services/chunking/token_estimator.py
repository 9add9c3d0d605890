"""Token counting for chunk sizing.

Counts come from the ``tiktoken`` BPE encoding that matches the model
family (``o200k_base`` for the OpenAI chat and embedding models).  Encodings
are loaded once per family and cached.  ``tiktoken`` downloads the BPE
ranks on first use; when that fails the counter falls back to a
characters-per-token estimate (denser for Cyrillic text) and logs the
fallback once.
"""

from __future__ import annotations

import functools
import math
import re

import structlog
import tiktoken

logger = structlog.get_logger(logger_name=__name__)

_CYRILLIC = re.compile("[\u0400-\u04FF]")

# BPE encoding per model family.
_ENCODINGS: dict[str, str] = {
    "openai": "o200k_base",
    "default": "cl100k_base",
}

# (latin, cyrillic) characters per token, used only without an encoding.
_CHARS_PER_TOKEN: dict[str, tuple[float, float]] = {
    "openai": (4.0, 2.5),
    "default": (4.0, 2.5),
}


@functools.lru_cache(maxsize=None)
def _load_encoding(name: str) -> tiktoken.Encoding | None:
    try:
        return tiktoken.get_encoding(name)
    except Exception as exc:
        logger.info("tiktoken_unavailable", encoding=name, error=str(exc))
        return None


def _encoding(model_family: str) -> tiktoken.Encoding | None:
    return _load_encoding(_ENCODINGS.get(model_family, _ENCODINGS["default"]))


def _heuristic_tokens(text: str, model_family: str) -> int:
    latin, cyrillic = _CHARS_PER_TOKEN.get(model_family, _CHARS_PER_TOKEN["default"])
    chars_per_token = cyrillic if _CYRILLIC.search(text) else latin
    return math.ceil(len(text) / chars_per_token)


def estimate_tokens(text: str, model_family: str = "openai") -> int:
    """Return the token count of *text* for *model_family*.

    Unknown families use the default encoding.  Empty text costs 0.
    Special-token markers in the text are counted as ordinary text.
    """
    if not text:
        return 0
    encoding = _encoding(model_family)
    if encoding is None:
        return _heuristic_tokens(text, model_family)
    return len(encoding.encode(text, disallowed_special=()))


def fits_budget(text: str, max_tokens: int, model_family: str = "openai") -> bool:
    return estimate_tokens(text, model_family) <= max_tokens
