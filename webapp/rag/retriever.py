"""Provider-filtered retrieval over the documentation index."""

import logging
from typing import Optional

from schemas.search import SearchHit
from vectorstore.store import VectorStore
from webapp.rag.providers import ProviderResolver

logger = logging.getLogger(__name__)


class Retriever:
    """Thin search layer: alias resolution + metadata filter + engine query."""

    def __init__(self, store: VectorStore, resolver: Optional[ProviderResolver] = None):
        self.store = store
        self.resolver = resolver or ProviderResolver()

    async def search(
        self,
        query: str,
        provider: Optional[str] = None,
        top_k: int = 3,
    ) -> list[SearchHit]:
        """Search the index. Engine failures propagate as SearchError."""
        where = self.resolver.build_filter(provider)
        hits = await self.store.search(query.strip(), top_k, where)
        logger.debug("Search %r (filter=%s) -> %d hits", query, where, len(hits))
        return hits
