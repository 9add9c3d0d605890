"""Wiki (Confluence-style REST) ingestion strategy.

Fetches a page's storage-format HTML through
``/rest/api/content/{id}?expand=body.storage,version`` with basic auth.
The HTML is returned unchanged as content; the structured chunker parses
it with the HTML structurer.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import parse_qs, urlsplit

import httpx
import structlog

from src.interfaces.ingest_strategy import IIngestStrategy, IngestResult
from src.models.session import SourceType
from src.utils.errors import ConfigurationError, IngestionError, InputValidationError
from src.utils.text_normalizer import canonicalize_url

logger = structlog.get_logger(logger_name=__name__)

_PAGE_PATH = re.compile(r"/pages/(\d+)(?:/|$)")


def parse_page_id(locator: str) -> str:
    """Return the numeric page id in *locator* (a bare id or a page URL)."""
    candidate = (locator or "").strip()
    if candidate.isdigit():
        return candidate

    parts = urlsplit(candidate)
    if parts.scheme in ("http", "https"):
        page_ids = parse_qs(parts.query).get("pageId")
        if page_ids and page_ids[0].isdigit():
            return page_ids[0]
        match = _PAGE_PATH.search(parts.path)
        if match:
            return match.group(1)

    raise InputValidationError(
        "Wiki locator must be a page id or a page URL containing one",
        context={"locator": candidate},
    )


class WikiStrategy(IIngestStrategy):
    """Fetch one wiki page as storage HTML.

    Credentials are checked per call so the strategy can be registered
    even when the wiki is not configured.
    """

    def __init__(
        self,
        base_url: str | None,
        user_email: str | None,
        api_token: str | None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._user_email = user_email
        self._api_token = api_token
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    def is_configured(self) -> bool:
        return bool(self._base_url and self._user_email and self._api_token)

    async def ingest(self, locator: str) -> IngestResult:
        if not self.is_configured():
            raise ConfigurationError(
                "Wiki ingestion requires WIKI_BASE_URL, WIKI_USER_EMAIL and WIKI_API_TOKEN",
                provider_name=self.get_provider_name(),
            )
        page_id = parse_page_id(locator)
        data = await self._fetch_page(page_id)

        html = ((data.get("body") or {}).get("storage") or {}).get("value") or ""
        if not html.strip():
            raise IngestionError(
                f"Wiki page {page_id} has no content",
                provider_name=self.get_provider_name(),
                context={"page_id": page_id},
            )

        version = (data.get("version") or {}).get("number")
        source_url = canonicalize_url(f"{self._base_url}/pages/viewpage.action?pageId={page_id}")
        logger.info("wiki_page_ingested", page_id=page_id, version=version, html_length=len(html))
        return IngestResult(
            content=html,
            title=data.get("title") or None,
            source_url=source_url,
            raw_content=html,
            metadata={"page_id": page_id, "page_version": version},
        )

    async def _fetch_page(self, page_id: str) -> dict[str, Any]:
        url = f"{self._base_url}/rest/api/content/{page_id}"
        provider = self.get_provider_name()
        try:
            response = await self._client.get(
                url,
                params={"expand": "body.storage,version"},
                auth=(self._user_email or "", self._api_token or ""),
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise IngestionError(
                f"Timeout fetching wiki page {page_id}",
                provider_name=provider,
                retryable=True,
                context={"page_id": page_id},
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise IngestionError(
                f"Wiki returned HTTP {status} for page {page_id}",
                provider_name=provider,
                retryable=status >= 500 or status == 429,
                context={"page_id": page_id, "status_code": status},
            ) from exc
        except httpx.HTTPError as exc:
            raise IngestionError(
                f"HTTP error fetching wiki page {page_id}: {exc}",
                provider_name=provider,
                retryable=True,
                context={"page_id": page_id},
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise IngestionError(
                f"Wiki returned a non-JSON body for page {page_id}",
                provider_name=provider,
                context={"page_id": page_id},
            ) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def get_source_type(self) -> SourceType:
        return SourceType.WIKI

    def get_provider_name(self) -> str:
        return "wiki"
