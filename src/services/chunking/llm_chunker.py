"""LLM-driven semantic chunking.

Content is sent to a chat model constrained to the ``chunk_response`` JSON
schema.  Content longer than ``max_content_length`` is cut into overlapping
windows which are chunked concurrently (bounded by a semaphore); the
per-window results are concatenated in window order and near-duplicates
produced by the overlap are removed.  A returned chunk over ``max_tokens``
is re-split on paragraph, line or sentence boundaries.

Every window call goes through :func:`~src.utils.concurrency.retry_async`.
A response that is refused, truncated, not JSON or off-schema raises
:class:`~src.utils.errors.ChunkingParseError`; it is retried locally and,
once attempts are exhausted, surfaced as non-retryable.
"""

from __future__ import annotations

import asyncio
import json
import time

import structlog
from pydantic import ValidationError

from src.interfaces.chunk_classifier import IChunkClassifier
from src.interfaces.llm_provider import ILLMProvider, LLMCompletion
from src.models.chunk import CHUNK_RESPONSE_JSON_SCHEMA, ChunkCandidate, LLMChunkResponse
from src.services.chunking.classifier import KeywordChunkClassifier
from src.services.chunking.splitter import split_on_boundaries
from src.services.chunking.token_estimator import estimate_tokens
from src.utils.concurrency import retry_async, throttled_gather
from src.utils.errors import ChunkingParseError, InputValidationError
from src.utils.text_normalizer import normalize_for_hash

logger = structlog.get_logger(logger_name=__name__)

SYSTEM_PROMPT = """You are a document chunking specialist. Split the provided content into \
semantically meaningful chunks for a knowledge retrieval system.

Guidelines:
1. Each chunk must be a complete, self-contained piece of information.
2. Preserve logical boundaries: sections, paragraphs, topic shifts.
3. Keep related information together; never split mid-explanation.
4. Aim for roughly {target_tokens} tokens per chunk (between {min_tokens} and \
{max_tokens}), but prefer semantic coherence over size.
5. Each chunk must be understandable on its own.
6. Copy the text verbatim. Do not summarise, translate or add content.

Rules:
- IDs are sequential: temp_1, temp_2, temp_3, ...
- "type" is one of knowledge, navigation, table_row, code, faq, glossary, or null \
when unsure.
- If the content cannot be chunked meaningfully, return a single chunk with all of it."""

# Texts shorter than this are only deduplicated on exact/containment match.
_FUZZY_DEDUP_MIN_LENGTH = 50
_FUZZY_DEDUP_TRIM = 10


def build_windows(content: str, max_length: int, overlap: int) -> list[str]:
    """Cut *content* into windows of at most *max_length* chars.

    Consecutive windows share up to *overlap* characters (capped at half a
    window so every step makes progress).  A window end is moved back to
    the last newline inside the overlap region when there is one.
    """
    if len(content) <= max_length:
        return [content]

    overlap = max(0, min(overlap, max_length // 2))
    windows: list[str] = []
    start = 0

    while start < len(content):
        end = min(start + max_length, len(content))
        if end < len(content) and overlap:
            newline = content.rfind("\n", end - overlap, end)
            if newline > start:
                end = newline + 1
        windows.append(content[start:end])
        if end >= len(content):
            break
        start = max(end - overlap, start + 1)

    return windows


def _is_duplicate(existing: str, candidate: str) -> bool:
    if existing == candidate or candidate in existing or existing in candidate:
        return True
    shorter, longer = sorted((existing, candidate), key=len)
    if len(shorter) > _FUZZY_DEDUP_MIN_LENGTH:
        core = shorter[_FUZZY_DEDUP_TRIM:-_FUZZY_DEDUP_TRIM]
        return core in longer
    return False


def deduplicate_candidates(candidates: list[ChunkCandidate]) -> list[ChunkCandidate]:
    """Drop blank and overlap-duplicated candidates, keeping first positions.

    When a later candidate strictly contains an earlier one, the earlier
    entry is replaced in place by the longer text.
    """
    unique: list[ChunkCandidate] = []
    keys: list[str] = []

    for candidate in candidates:
        if not candidate.text.strip():
            continue
        key = normalize_for_hash(candidate.text)

        match = next((i for i, existing in enumerate(keys) if _is_duplicate(existing, key)), None)
        if match is None:
            unique.append(candidate)
            keys.append(key)
        elif len(key) > len(keys[match]) and keys[match] in key:
            unique[match] = candidate
            keys[match] = key

    return unique


class LLMChunker:
    """Chunk text through a schema-constrained chat completion.

    Parameters
    ----------
    llm:
        Provider used for the completions.
    max_content_length:
        Characters per request; longer content is windowed.
    window_overlap:
        Characters shared between consecutive windows.
    max_retries:
        Local retries per window for retryable failures.
    timeout:
        Per-call timeout passed to the provider.
    concurrency:
        Maximum windows in flight at once.
    backoff_base:
        Base for exponential retry backoff.
    classifier:
        Assigns a type when the model leaves it null.
    target_tokens, min_tokens, max_tokens:
        Size hints interpolated into the system prompt; a returned chunk
        over ``max_tokens`` is re-split on boundaries.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        max_content_length: int = 30000,
        window_overlap: int = 500,
        max_retries: int = 2,
        timeout: float = 60.0,
        concurrency: int = 3,
        backoff_base: float = 0.5,
        classifier: IChunkClassifier | None = None,
        target_tokens: int = 300,
        min_tokens: int = 50,
        max_tokens: int = 700,
    ) -> None:
        self._llm = llm
        self._max_content_length = max_content_length
        self._window_overlap = window_overlap
        self._max_retries = max_retries
        self._timeout = timeout
        self._concurrency = concurrency
        self._backoff_base = backoff_base
        self._classifier = classifier or KeywordChunkClassifier()
        self._target_tokens = target_tokens
        self._max_tokens = max_tokens
        self._system_prompt = SYSTEM_PROMPT.format(
            target_tokens=target_tokens,
            min_tokens=min_tokens,
            max_tokens=max_tokens,
        )

    async def chunk(self, content: str) -> list[ChunkCandidate]:
        """Return ordered chunk candidates for *content*.

        Raises
        ------
        InputValidationError
            If *content* is empty or whitespace-only (before any call).
        ChunkingParseError
            If a window's response stays invalid after local retries.
        src.utils.errors.UpstreamTransientError
            If a window's upstream call keeps failing transiently.
        """
        text = content.strip()
        if not text:
            raise InputValidationError("Content cannot be empty or whitespace-only")

        windows = build_windows(text, self._max_content_length, self._window_overlap)
        log = logger.bind(
            model=self._llm.get_model_name(),
            content_length=len(text),
            windows=len(windows),
        )
        log.info("chunking_start")
        started = time.monotonic()

        try:
            results = await throttled_gather(
                [self._chunk_window(window, index) for index, window in enumerate(windows)],
                limit=self._concurrency,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.error(
                "chunking_failure",
                duration_ms=int((time.monotonic() - started) * 1000),
                error_type=type(exc).__name__,
                error=str(exc),
                retryable=getattr(exc, "retryable", False),
            )
            raise

        candidates = [candidate for window_result in results for candidate in window_result]
        if len(windows) > 1:
            candidates = deduplicate_candidates(candidates)

        log.info(
            "chunking_success",
            chunk_count=len(candidates),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return candidates

    async def _chunk_window(self, window: str, index: int) -> list[ChunkCandidate]:
        async def _attempt() -> list[ChunkCandidate]:
            completion = await self._llm.complete_structured(
                system_prompt=self._system_prompt,
                user_prompt=window,
                response_format=CHUNK_RESPONSE_JSON_SCHEMA,
                timeout=self._timeout,
            )
            return self._parse(completion)

        try:
            return await retry_async(
                _attempt,
                max_retries=self._max_retries,
                backoff_base=self._backoff_base,
                operation_name="chunking_window",
                logger=logger,
                window=index,
            )
        except ChunkingParseError as exc:
            raise ChunkingParseError(
                message=exc.message,
                provider_name=exc.provider_name,
                raw_response=exc.raw_response,
                retryable=False,
                context={**exc.context, "model": self._llm.get_model_name(), "window": index},
            ) from exc

    def _parse(self, completion: LLMCompletion) -> list[ChunkCandidate]:
        provider = self._llm.get_provider_name()

        if completion.refusal:
            raise ChunkingParseError(
                f"Model refused to chunk: {completion.refusal}",
                provider_name=provider,
                retryable=True,
            )
        if completion.finish_reason == "length":
            raise ChunkingParseError(
                "Response truncated due to length",
                provider_name=provider,
                raw_response=completion.content,
                retryable=True,
            )
        if not completion.content:
            raise ChunkingParseError("Empty response from model", provider_name=provider, retryable=True)

        try:
            payload = json.loads(completion.content)
        except json.JSONDecodeError as exc:
            raise ChunkingParseError(
                "Failed to parse chunking response as JSON",
                provider_name=provider,
                raw_response=completion.content,
                retryable=True,
            ) from exc

        try:
            response = LLMChunkResponse.model_validate(payload)
        except ValidationError as exc:
            raise ChunkingParseError(
                f"Invalid chunking response: {exc.error_count()} schema error(s)",
                provider_name=provider,
                raw_response=completion.content,
                retryable=True,
            ) from exc

        candidates: list[ChunkCandidate] = []
        for item in response.chunks:
            text = item.text.strip()
            chunk_type = item.type or self._classifier.classify(text)
            for piece in self._fit(text):
                candidates.append(
                    ChunkCandidate(text=piece, type=chunk_type, token_count=estimate_tokens(piece))
                )
        return candidates

    def _fit(self, text: str) -> list[str]:
        """Re-split a model chunk that exceeds ``max_tokens`` on boundaries."""
        if estimate_tokens(text) <= self._max_tokens:
            return [text]
        pieces = split_on_boundaries(text, self._target_tokens, self._max_tokens)
        logger.debug("chunk_resplit", tokens=estimate_tokens(text), pieces=len(pieces))
        return pieces
