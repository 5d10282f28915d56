"""Full sync pipeline: fetch docs → chunk → diff against the index → upsert.

Usage (standalone):
  python -m vectorstore.ingest              # incremental sync of config/sources.json
  python -m vectorstore.ingest --clear      # wipe the namespace first
  python -m vectorstore.ingest --inspect    # fetch + chunk only, no writes

Or via the main pipeline:
  python pipeline.py sync
"""

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from schemas.chunk import Chunk
from schemas.document import DocumentSource
from scrapers.docs_scraper import DocsScraper
from scrapers.utils import FetchError
from settings import Settings, load_sources
from vectorstore.chunker import Chunker
from vectorstore.differ import diff, fetch_existing_ids
from vectorstore.store import StoreError, VectorStore
from vectorstore.upserter import BatchUpserter, UpsertErrorLog

logger = logging.getLogger(__name__)

MIN_DOCUMENT_CHARS = 100


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class SourceStats:
    provider: str
    urls_fetched: int = 0
    urls_failed: int = 0
    urls_skipped: int = 0
    chunks: int = 0
    upserted: int = 0
    skipped: int = 0


@dataclass
class SyncReport:
    total_upserted: int = 0
    total_skipped: int = 0
    sources: list[SourceStats] = field(default_factory=list)
    elapsed_s: float = 0.0

    @property
    def total_chunks(self) -> int:
        return sum(s.chunks for s in self.sources)


# ---------------------------------------------------------------------------
# Refresh notification
# ---------------------------------------------------------------------------

class RefreshNotifier:
    """Tells the query API that new content is indexed (POST /refresh-models)."""

    def __init__(self, client: httpx.AsyncClient, api_url: str, secret: str):
        self.client = client
        self.api_url = api_url.rstrip("/")
        self.secret = secret

    async def notify(self) -> bool:
        try:
            response = await self.client.post(
                f"{self.api_url}/refresh-models",
                headers={"Authorization": f"Bearer {self.secret}"},
            )
        except httpx.HTTPError as e:
            logger.warning("Error triggering API cache refresh: %s", e)
            return False

        if response.is_error:
            logger.warning("API cache refresh failed: %d %s", response.status_code, response.text)
            return False

        logger.info("API cache refreshed successfully")
        return True


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class SyncOrchestrator:
    """Drives one sync pass over the configured documentation sources."""

    def __init__(
        self,
        store: VectorStore,
        scraper: DocsScraper,
        chunker: Chunker,
        upserter: BatchUpserter,
        notifier: Optional[RefreshNotifier] = None,
    ):
        self.store = store
        self.scraper = scraper
        self.chunker = chunker
        self.upserter = upserter
        self.notifier = notifier

    async def run_sync(
        self,
        sources: list[DocumentSource],
        wipe_first: bool = False,
        skip_remote_upsert: bool = False,
    ) -> SyncReport:
        """Run the full pipeline over ``sources``.

        Args:
            sources: Providers and their fetch URLs, processed in order.
            wipe_first: Delete the whole namespace before ingesting.
            skip_remote_upsert: Fetch and chunk only (inspection run).

        Returns:
            SyncReport with upserted/skipped totals and per-source stats.
        """
        start = time.perf_counter()
        report = SyncReport()

        if wipe_first:
            await self._wipe()

        existing_ids: set[str] = set()
        if not wipe_first:
            existing_ids = await fetch_existing_ids(self.store)

        for i, source in enumerate(sources, 1):
            logger.info("=" * 60)
            logger.info("SYNCING: %s (%d/%d sources)", source.provider, i, len(sources))
            logger.info("=" * 60)

            stats = await self._sync_source(source, existing_ids, skip_remote_upsert)
            report.sources.append(stats)
            report.total_upserted += stats.upserted
            report.total_skipped += stats.skipped

        report.elapsed_s = round(time.perf_counter() - start, 1)
        logger.info(
            "Sync done in %.1fs: upserted %d, skipped (already indexed) %d",
            report.elapsed_s, report.total_upserted, report.total_skipped,
        )

        if self.notifier and not skip_remote_upsert:
            await self.notifier.notify()
        elif not self.notifier:
            logger.info("Skipping API refresh (LLMDOCS_API_URL or LLMDOCS_API_SECRET not set)")

        return report

    async def _wipe(self) -> None:
        logger.warning("Deleting all records in namespace '%s'...", self.store.namespace)
        try:
            await self.store.delete_all()
        except (StoreError, httpx.HTTPError) as e:
            # Namespace may simply be empty
            logger.error("  [fail] Delete failed: %s", e)
            return
        logger.info("  [ok] Deleted all records")

    async def _sync_source(
        self,
        source: DocumentSource,
        existing_ids: set[str],
        skip_remote_upsert: bool,
    ) -> SourceStats:
        stats = SourceStats(provider=source.provider)
        chunks: list[Chunk] = []

        for url in source.urls:
            try:
                document = await self.scraper.fetch(source.provider, url)
            except (FetchError, httpx.HTTPError) as e:
                stats.urls_failed += 1
                logger.error("  [fail] %s", e)
                continue

            if len(document.text.strip()) < MIN_DOCUMENT_CHARS:
                stats.urls_skipped += 1
                logger.info("  [skip] %s: empty or too short", url)
                continue

            doc_chunks = self.chunker.chunk_document(document)
            chunks.extend(doc_chunks)
            stats.urls_fetched += 1
            logger.info("  [ok]   %s: %d chunks", url, len(doc_chunks))

        stats.chunks = len(chunks)
        if not chunks:
            logger.info("  No chunks fetched for %s, skipping", source.provider)
            return stats

        if skip_remote_upsert:
            logger.info("  [inspect] Skipping upsert (%d chunks)", len(chunks))
            return stats

        to_upsert = diff(chunks, existing_ids)
        stats.skipped = len(chunks) - len(to_upsert)

        if not to_upsert:
            logger.info("  All %d chunks already indexed, skipping upsert", len(chunks))
            return stats

        logger.info(
            "  Upserting %d new/changed records (skipped %d existing)...",
            len(to_upsert), stats.skipped,
        )
        stats.upserted = await self.upserter.upsert([c.to_record() for c in to_upsert])
        return stats


def build_orchestrator(
    settings: Settings,
    client: httpx.AsyncClient,
    error_log: Optional[UpsertErrorLog] = None,
) -> SyncOrchestrator:
    """Wire an orchestrator from settings. Raises MissingCredentialError without an API key."""
    api_key = settings.require_pinecone()
    store = VectorStore(settings.pinecone_host, api_key, settings.namespace, client=client)
    notifier = None
    if settings.api_url and settings.api_secret:
        notifier = RefreshNotifier(client, settings.api_url, settings.api_secret)
    return SyncOrchestrator(
        store=store,
        scraper=DocsScraper(client),
        chunker=Chunker(),
        upserter=BatchUpserter(store, error_log=error_log),
        notifier=notifier,
    )


async def sync_all(
    settings: Settings,
    sources: list[DocumentSource],
    wipe_first: bool = False,
    skip_remote_upsert: bool = False,
) -> SyncReport:
    async with httpx.AsyncClient() as client:
        orchestrator = build_orchestrator(settings, client)
        return await orchestrator.run_sync(
            sources, wipe_first=wipe_first, skip_remote_upsert=skip_remote_upsert
        )


def print_summary(report: SyncReport) -> None:
    """Print a summary of the sync results."""
    print("\n" + "=" * 70)
    print("SYNC SUMMARY")
    print("=" * 70)

    for stats in report.sources:
        print(f"\n  {stats.provider}:")
        print(f"    URLs fetched:    {stats.urls_fetched} (failed {stats.urls_failed}, too short {stats.urls_skipped})")
        print(f"    Chunks created:  {stats.chunks}")
        print(f"    Upserted:        {stats.upserted}")
        print(f"    Already indexed: {stats.skipped}")

    print(f"\n  TOTAL:")
    print(f"    Chunks:   {report.total_chunks}")
    print(f"    Upserted: {report.total_upserted}")
    print(f"    Skipped:  {report.total_skipped}")
    print(f"    Elapsed:  {report.elapsed_s}s")
    print("=" * 70)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    parser = argparse.ArgumentParser(description="Sync documentation into the search index")
    parser.add_argument("--clear", action="store_true", help="Wipe the namespace first")
    parser.add_argument("--inspect", action="store_true", help="Fetch and chunk only, no upserts")
    parser.add_argument("--sources", default=None, help="Path to a sources JSON file")
    args = parser.parse_args()

    report = asyncio.run(
        sync_all(
            Settings.from_env(),
            load_sources(args.sources),
            wipe_first=args.clear,
            skip_remote_upsert=args.inspect,
        )
    )
    print_summary(report)


if __name__ == "__main__":
    main()
