"""LLM keyword tagging for published chunks.

Each chunk's text is sent to the chat model constrained to the
``tag_response`` JSON schema (3 to 12 short keyword tags).  Tags are
normalized to kebab-case and deduplicated.  Tagging never blocks a
publish: any provider or parse failure yields an empty tag list for that
chunk and a warning in the log.
"""

from __future__ import annotations

import asyncio
import json

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.models.chunk import TAG_RESPONSE_JSON_SCHEMA, LLMTagResponse
from src.utils.concurrency import throttled_gather
from src.utils.errors import KMSError
from src.utils.text_normalizer import normalize_tag

logger = structlog.get_logger(logger_name=__name__)

SYSTEM_PROMPT = """You tag passages for a knowledge retrieval system.

Return between 3 and 12 short keyword tags for the passage: products, \
services, technologies, processes and topics it is about.
Only include terms the passage actually covers. Use the passage's language."""

# Longer passages are truncated before tagging.
_MAX_TAG_INPUT_CHARS = 6000


class TagExtractor:
    """Extract keyword tags from chunk text with a schema-constrained completion.

    Parameters
    ----------
    llm:
        Provider used for the completions.
    max_concurrent:
        Maximum tagging calls in flight at once.
    timeout:
        Per-call timeout passed to the provider.
    """

    def __init__(self, llm: ILLMProvider, max_concurrent: int = 5, timeout: float = 30.0) -> None:
        self._llm = llm
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent))
        self._timeout = timeout

    async def extract_tags(self, text: str) -> list[str]:
        """Return normalized tags for *text*, or ``[]`` when tagging fails."""
        if not text.strip():
            return []

        try:
            completion = await self._llm.complete_structured(
                system_prompt=SYSTEM_PROMPT,
                user_prompt=text[:_MAX_TAG_INPUT_CHARS],
                response_format=TAG_RESPONSE_JSON_SCHEMA,
                timeout=self._timeout,
            )
            if completion.refusal or not completion.content:
                raise ValueError(completion.refusal or "empty tagging response")
            response = LLMTagResponse.model_validate(json.loads(completion.content))
        except (KMSError, ValueError) as exc:
            logger.warning(
                "tag_extraction_failed",
                error_type=type(exc).__name__,
                error=str(exc),
                text_preview=text[:80],
            )
            return []

        tags: list[str] = []
        for raw in response.tags:
            tag = normalize_tag(raw)
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    async def extract_batch(self, texts: list[str]) -> list[list[str]]:
        """Tag every text; results are in input order."""
        if not texts:
            return []
        results = await throttled_gather(
            [self.extract_tags(text) for text in texts],
            semaphore=self._semaphore,
        )
        logger.info(
            "tag_extraction_complete",
            total=len(results),
            tagged=sum(1 for tags in results if tags),
        )
        return results
