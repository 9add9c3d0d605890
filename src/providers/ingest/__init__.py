"""Source ingestion strategies.

Three implementations of IIngestStrategy (src/interfaces/ingest_strategy.py):
    - ManualStrategy -- pasted text, length checks, manual:// locator.
    - WebStrategy    -- httpx fetch + trafilatura extraction, public URLs only.
    - WikiStrategy   -- Confluence-style REST API, storage HTML.
"""

from src.providers.ingest.manual_strategy import ManualStrategy
from src.providers.ingest.web_strategy import WebStrategy, validate_public_url
from src.providers.ingest.wiki_strategy import WikiStrategy, parse_page_id

__all__ = [
    "ManualStrategy",
    "WebStrategy",
    "WikiStrategy",
    "parse_page_id",
    "validate_public_url",
]
