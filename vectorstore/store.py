"""Async client for the Pinecone data-plane REST API.

The index uses integrated embeddings: records carry their text in the
``content`` field and Pinecone embeds it on upsert and on search, so this
module never handles vectors itself.
"""

import logging
from typing import Optional

import httpx
import orjson

from schemas.chunk import IndexRecord
from schemas.search import SearchHit

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "docs"
DEFAULT_TIMEOUT = 30.0
SEARCH_API_VERSION = "2025-01"
DELETE_API_VERSION = "2024-07"
LIST_PAGE_SIZE = 100
SEARCH_FIELDS = ["content", "provider", "source", "title"]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StoreError(Exception):
    """The search engine answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SearchError(StoreError):
    pass


class RateLimitedError(StoreError):
    """HTTP 429 from the engine; the request may be retried after a pause."""


class UpsertRejectedError(StoreError):
    """Non-retryable upsert failure. ``payload`` is the NDJSON that was sent."""

    def __init__(self, message: str, status_code: int, body: str, payload: str):
        super().__init__(message, status_code=status_code, body=body)
        self.payload = payload


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

def to_ndjson(records: list[IndexRecord]) -> str:
    return "\n".join(orjson.dumps(r.model_dump()).decode() for r in records)


class VectorStore:
    """Namespace-scoped access to a Pinecone index."""

    def __init__(
        self,
        host: str,
        api_key: str,
        namespace: str = DEFAULT_NAMESPACE,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.host = host.rstrip("/")
        self.api_key = api_key
        self.namespace = namespace
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "VectorStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _headers(self, api_version: Optional[str] = None, content_type: Optional[str] = None) -> dict:
        headers = {"Api-Key": self.api_key}
        if api_version:
            headers["X-Pinecone-API-Version"] = api_version
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    # -------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------

    async def search(
        self,
        query: str,
        top_k: int,
        filter: Optional[dict] = None,
    ) -> list[SearchHit]:
        """Semantic search over the namespace, best hits first."""
        body: dict = {
            "query": {"inputs": {"text": query}, "top_k": top_k},
            "fields": SEARCH_FIELDS,
        }
        if filter:
            body["query"]["filter"] = filter

        url = f"{self.host}/records/namespaces/{self.namespace}/search"
        response = await self.client.post(
            url,
            content=orjson.dumps(body),
            headers=self._headers(SEARCH_API_VERSION, "application/json"),
        )
        if response.is_error:
            logger.error("Search failed (%d) at %s: %s", response.status_code, url, response.text)
            raise SearchError(
                f"Search failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            hits = (response.json().get("result") or {}).get("hits") or []
            return [SearchHit.from_engine_hit(hit) for hit in hits]
        except (ValueError, AttributeError, TypeError) as e:
            raise SearchError(
                f"Malformed search response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    # -------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------

    async def list_ids_page(
        self,
        pagination_token: Optional[str] = None,
        limit: int = LIST_PAGE_SIZE,
    ) -> tuple[list[str], Optional[str]]:
        """One page of record IDs plus the continuation token, if any."""
        params = {"namespace": self.namespace, "limit": str(limit)}
        if pagination_token:
            params["paginationToken"] = pagination_token

        response = await self.client.get(
            f"{self.host}/vectors/list", params=params, headers=self._headers()
        )
        if response.is_error:
            raise StoreError(
                f"Listing IDs failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
            ids = [v["id"] for v in data.get("vectors") or [] if v.get("id")]
            next_token = (data.get("pagination") or {}).get("next")
        except (ValueError, AttributeError, TypeError) as e:
            raise StoreError(
                f"Malformed listing response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e
        return ids, next_token

    async def upsert_records(self, records: list[IndexRecord]) -> None:
        """Upsert one batch. Raises RateLimitedError on 429, UpsertRejectedError otherwise.

        Transport failures propagate as ``httpx.TransportError``.
        """
        payload = to_ndjson(records)
        response = await self.client.post(
            f"{self.host}/records/namespaces/{self.namespace}/upsert",
            content=payload.encode("utf-8"),
            headers=self._headers(content_type="application/x-ndjson"),
        )
        if response.status_code == 429:
            raise RateLimitedError("Rate limited (429)", status_code=429, body=response.text)
        if response.is_error:
            raise UpsertRejectedError(
                f"Upsert rejected ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
                payload=payload,
            )

    async def delete_all(self) -> None:
        """Delete every record in the namespace."""
        response = await self.client.post(
            f"{self.host}/vectors/delete",
            content=orjson.dumps({"deleteAll": True, "namespace": self.namespace}),
            headers=self._headers(DELETE_API_VERSION, "application/json"),
        )
        if response.is_error:
            raise StoreError(
                f"Delete failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

    async def get_stats(self) -> dict:
        """Index statistics (record counts per namespace, dimension, fullness)."""
        response = await self.client.post(
            f"{self.host}/describe_index_stats",
            content=b"{}",
            headers=self._headers(SEARCH_API_VERSION, "application/json"),
        )
        if response.is_error:
            raise StoreError(
                f"Stats request failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.json()
