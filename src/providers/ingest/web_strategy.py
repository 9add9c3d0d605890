"""Web page ingestion strategy using httpx and trafilatura.

Fetches HTML via httpx and extracts the main text with trafilatura,
stripping navigation, ads and boilerplate.  URLs are validated before any
request is made: only http(s), and never localhost or a private, loopback
or link-local IP literal.
"""

from __future__ import annotations

import ipaddress
import json
from urllib.parse import urlsplit

import httpx
import structlog
import trafilatura

from src.interfaces.ingest_strategy import IIngestStrategy, IngestResult
from src.models.session import SourceType
from src.utils.errors import IngestionError, InputValidationError
from src.utils.text_normalizer import canonicalize_url, normalize_line_endings

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; kms-ingest/0.1)"
_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
_BLOCKED_HOSTS = frozenset({"localhost", "localhost.localdomain", "ip6-localhost"})


def validate_public_url(url: str) -> str:
    """Return *url* stripped, or raise :class:`InputValidationError`.

    Rejects non-http(s) schemes, missing hosts, localhost names and IP
    literals that are private, loopback, link-local, reserved or
    unspecified.  Host names are not resolved.
    """
    candidate = (url or "").strip()
    parts = urlsplit(candidate)
    if parts.scheme.lower() not in ("http", "https"):
        raise InputValidationError("Only http and https URLs are supported", context={"url": candidate})

    host = (parts.hostname or "").lower()
    if not host:
        raise InputValidationError("URL has no host", context={"url": candidate})
    if host in _BLOCKED_HOSTS or host.endswith(".localhost"):
        raise InputValidationError("Local addresses are not allowed", context={"url": candidate})

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return candidate
    if (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
        or address.is_multicast
    ):
        raise InputValidationError("Private or local IP addresses are not allowed", context={"url": candidate})
    return candidate


class WebStrategy(IIngestStrategy):
    """Fetch a public web page and extract its readable text.

    Parameters
    ----------
    http_client:
        Optional shared client; one is created (and owned) otherwise.
    timeout:
        Per-request timeout in seconds.
    max_content_length:
        Responses larger than this many bytes are rejected.
    user_agent:
        ``User-Agent`` header sent with every request.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
        max_content_length: int = 5_000_000,
        user_agent: str = _DEFAULT_USER_AGENT,
    ) -> None:
        self._owns_client = http_client is None
        self._max_content_length = max_content_length
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent, "Accept": _ACCEPT},
            follow_redirects=True,
        )

    async def ingest(self, locator: str) -> IngestResult:
        url = validate_public_url(locator)
        provider = self.get_provider_name()

        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise IngestionError(
                f"Timeout fetching {url}",
                provider_name=provider,
                retryable=True,
                context={"url": url},
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise IngestionError(
                f"HTTP {status} for {url}",
                provider_name=provider,
                retryable=status >= 500 or status == 429,
                context={"url": url, "status_code": status},
            ) from exc
        except httpx.HTTPError as exc:
            raise IngestionError(
                f"HTTP error fetching {url}: {exc}",
                provider_name=provider,
                retryable=True,
                context={"url": url},
            ) from exc

        if len(response.content) > self._max_content_length:
            raise IngestionError(
                f"Page exceeds {self._max_content_length} bytes",
                provider_name=provider,
                context={"url": url, "size": len(response.content)},
            )

        html = response.text
        text = trafilatura.extract(html, include_comments=False, include_tables=True)
        if not text or not text.strip():
            logger.warning("trafilatura_extraction_empty", url=url)
            raise IngestionError(
                f"No readable content extracted from {url}",
                provider_name=provider,
                context={"url": url},
            )

        title = self._extract_title(html, url)
        logger.info("web_page_ingested", url=url, title=title, text_length=len(text))
        return IngestResult(
            content=normalize_line_endings(text).strip(),
            title=title,
            source_url=canonicalize_url(str(response.url)),
            raw_content=html,
            metadata={"status_code": response.status_code, "fetched_url": url},
        )

    @staticmethod
    def _extract_title(html: str, url: str) -> str | None:
        metadata = trafilatura.extract(
            html,
            include_comments=False,
            output_format="json",
            with_metadata=True,
        )
        if not metadata:
            return None
        try:
            return json.loads(metadata).get("title") or None
        except (json.JSONDecodeError, AttributeError):
            logger.debug("metadata_parse_failed", url=url)
            return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def get_source_type(self) -> SourceType:
        return SourceType.WEB

    def get_provider_name(self) -> str:
        return "web"
