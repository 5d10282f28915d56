"""Documentation fetcher.

Vendors publish their API docs as plain markdown / llms.txt files; those are
used as-is. HTML pages are reduced to their main content and converted to
markdown so that headings survive into the chunker.
"""

import logging

import httpx

from schemas.document import RawDocument
from scrapers.utils import FETCH_TIMEOUT_SECONDS, fetch_text

logger = logging.getLogger(__name__)


class DocsScraper:
    """Fetches documentation URLs into RawDocuments."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = FETCH_TIMEOUT_SECONDS):
        self.client = client
        self.timeout = timeout

    async def fetch(self, provider: str, url: str) -> RawDocument:
        """Fetch one URL. Raises FetchError on any failure."""
        text = await fetch_text(self.client, url, timeout=self.timeout)
        logger.debug("Fetched %s (%d chars)", url, len(text))
        return RawDocument(provider=provider, url=url, text=text)
