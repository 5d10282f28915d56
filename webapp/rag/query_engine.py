"""Cached query path: edge cache → provider-filtered search → edge cache store."""

import logging
from typing import Optional

from pydantic import ValidationError

from schemas.search import SearchHit, query_key
from webapp.cache import EdgeCache
from webapp.rag.models import ProviderCatalog, ProviderSummary
from webapp.rag.retriever import Retriever

logger = logging.getLogger(__name__)

PROVIDERS_CACHE_KEY = "models:all"


class QueryEngine:
    def __init__(self, retriever: Retriever, cache: EdgeCache, catalog: Optional[ProviderCatalog] = None):
        self.retriever = retriever
        self.cache = cache
        self.catalog = catalog or ProviderCatalog(retriever)

    async def query(
        self,
        query: str,
        provider: Optional[str] = None,
        top_k: int = 3,
    ) -> tuple[list[SearchHit], bool]:
        """Return (hits, served_from_cache)."""
        key = query_key(query, provider, top_k)

        cached = await self.cache.get(key)
        if cached is not None:
            try:
                return [SearchHit.model_validate(h) for h in cached], True
            except (ValidationError, TypeError) as e:
                logger.warning("Ignoring malformed cached results for %r: %s", key, e)

        hits = await self.retriever.search(query, provider, top_k)
        await self.cache.set(key, [h.model_dump() for h in hits])
        return hits, False

    async def providers(self) -> tuple[dict[str, ProviderSummary], bool]:
        """Provider catalog from the cache, built live on a miss."""
        cached = await self.cache.get(PROVIDERS_CACHE_KEY, raw=True)
        if cached is not None:
            try:
                return {k: ProviderSummary.model_validate(v) for k, v in cached.items()}, True
            except (ValidationError, AttributeError) as e:
                logger.warning("Ignoring malformed cached provider catalog: %s", e)

        summaries = await self.catalog.build()
        await self.cache.set(PROVIDERS_CACHE_KEY, self._dump(summaries), raw=True)
        return summaries, False

    async def refresh_providers(self) -> dict[str, ProviderSummary]:
        """Rebuild the catalog and persist it until the next refresh."""
        summaries = await self.catalog.build()
        await self.cache.set(PROVIDERS_CACHE_KEY, self._dump(summaries), raw=True, persistent=True)
        logger.info(
            "Refreshed provider catalog: %s",
            {k: len(v.models) for k, v in summaries.items()},
        )
        return summaries

    @staticmethod
    def _dump(summaries: dict[str, ProviderSummary]) -> dict:
        return {k: v.model_dump() for k, v in summaries.items()}
