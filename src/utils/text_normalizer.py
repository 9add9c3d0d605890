"""Text normalization, hashing and source-identity helpers.

This module handles three related concerns:

1. **Hash normalization** -- whitespace folding, leading-emoji stripping and
   lower-casing so that cosmetically different copies of the same text hash
   identically.  Used both for content hashes in published payloads and for
   duplicate detection when merging chunker windows.

2. **Source identity** -- :func:`derive_source_id` turns a source into the
   stable key that republishing replaces by.  Manual text is identified by
   its normalized content; fetched sources by their canonical URL.

3. **Light text classification** -- language detection by script ratio and
   kebab-case tag normalization.
"""

from __future__ import annotations

import hashlib
import re
from urllib.parse import urlsplit, urlunsplit

_MULTI_SPACE = re.compile(r"[ \t]{2,}")
_MULTI_NEWLINE = re.compile(r"\n{3,}")
_LEADING_EMOJI = re.compile(
    "^[\U0001F300-\U0001FAFF\u2600-\u26FF\u2700-\u27BF\uFE0F]+\\s*"
)
_CYRILLIC = re.compile("[\u0400-\u04FF]")
_LATIN = re.compile(r"[A-Za-z]")
_TAG_INVALID = re.compile(r"[^0-9a-zа-яё-]")


def normalize_line_endings(text: str) -> str:
    """Convert CRLF / CR line endings to ``\\n``."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_for_hash(text: str) -> str:
    """Normalize *text* for hashing and duplicate comparison.

    Trims, collapses runs of spaces, collapses 3+ newlines to a blank line,
    drops leading emoji (common in wiki headings) and lower-cases.
    """
    normalized = normalize_line_endings(text).strip()
    normalized = _MULTI_SPACE.sub(" ", normalized)
    normalized = _MULTI_NEWLINE.sub("\n\n", normalized)
    normalized = _LEADING_EMOJI.sub("", normalized)
    return normalized.lower()


def compute_content_hash(text: str) -> str:
    """Return ``sha256:<hex>`` of the hash-normalized text."""
    digest = hashlib.sha256(normalize_for_hash(text).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


def canonicalize_url(url: str) -> str:
    """Lower-case scheme and host, drop the fragment and any trailing slash."""
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/") or ""
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, parts.query, "")
    )


def manual_source_url(content: str) -> str:
    """Build the locator for pasted text from its content hash."""
    digest = compute_content_hash(content).split(":", 1)[1]
    return f"manual://{digest[:16]}"


def derive_source_id(source_type: str, source_url: str, content: str = "") -> str:
    """Return the deterministic identity used for replace-on-republish.

    Parameters
    ----------
    source_type:
        ``"manual"``, ``"web"`` or ``"wiki"``.
    source_url:
        Canonical locator of the source.
    content:
        Normalized document text; only consulted for manual sources.

    Returns
    -------
    str
        Hex digest.  Identical normalized input always yields the same id.
    """
    if source_type == "manual":
        return hashlib.sha256(normalize_for_hash(content).encode("utf-8")).hexdigest()
    return hashlib.md5(canonicalize_url(source_url).encode("utf-8")).hexdigest()  # noqa: S324


def detect_language(text: str) -> str:
    """Classify *text* as ``"ru"``, ``"en"`` or ``"mixed"`` by script ratio."""
    if not text:
        return "en"

    cyrillic = len(_CYRILLIC.findall(text))
    latin = len(_LATIN.findall(text))
    letters = cyrillic + latin
    if letters == 0:
        return "en"

    ratio = cyrillic / letters
    if ratio > 0.1:
        return "ru"
    if ratio == 0 and latin / len(text) > 0.3:
        return "en"
    return "mixed"


def normalize_tag(tag: str) -> str:
    """Normalize a tag to lower-case kebab-case, e.g. ``"RAG System"`` -> ``"rag-system"``."""
    tag = re.sub(r"\s+", "-", tag.strip().lower())
    tag = _TAG_INVALID.sub("", tag)
    tag = re.sub(r"-{2,}", "-", tag)
    return tag.strip("-")
