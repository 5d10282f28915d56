"""Index diffing: skip chunks whose content address is already indexed."""

import logging

import httpx

from schemas.chunk import Chunk
from vectorstore.store import StoreError, VectorStore

logger = logging.getLogger(__name__)


async def fetch_existing_ids(store: VectorStore) -> set[str]:
    """Collect every record ID in the store's namespace.

    A failed or partial listing yields an empty set: the run then re-upserts
    everything, which costs writes but never loses content.
    """
    ids: set[str] = set()
    token = None
    pages = 0

    logger.info("Fetching existing IDs from namespace '%s'...", store.namespace)
    try:
        while True:
            page, token = await store.list_ids_page(token)
            ids.update(page)
            pages += 1
            if not token:
                break
    except (StoreError, httpx.HTTPError) as e:
        logger.warning(
            "Could not list existing IDs after %d pages (%s), defaulting to full upsert",
            pages, e,
        )
        return set()

    logger.info("Found %d existing records (%d pages)", len(ids), pages)
    return ids


def diff(chunks: list[Chunk], existing_ids: set[str]) -> list[Chunk]:
    """Chunks not yet present in the index, in their original order."""
    return [chunk for chunk in chunks if chunk.id not in existing_ids]
