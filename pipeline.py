#!/usr/bin/env python3
"""Main entry point for the LLM documentation index.

Usage:
  python pipeline.py sync                                 # Incremental sync of all sources
  python pipeline.py sync --clear                         # Wipe the namespace, then re-ingest
  python pipeline.py sync --inspect                       # Fetch + chunk only, no writes
  python pipeline.py sync --sources my_sources.json       # Alternate source list

  python pipeline.py serve --port 8787                    # Launch the query API

  python pipeline.py search "tool use" --provider claude  # Query the API (local LRU cache)
  python pipeline.py providers                            # Latest known models per provider

  python pipeline.py vector-status                        # Index statistics
  python pipeline.py wipe                                 # Delete every record in the namespace
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from settings import PROJECT_ROOT, Settings, load_sources

load_dotenv(PROJECT_ROOT / ".env")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8787"


# ---------------------------------------------------------------------------
# SYNC
# ---------------------------------------------------------------------------

def cmd_sync(args):
    """Run the sync pipeline (fetch → chunk → diff → upsert)."""
    from vectorstore.ingest import print_summary, sync_all

    settings = Settings.from_env(dotenv=False)
    sources = load_sources(args.sources)

    logger.info("=" * 60)
    logger.info("SYNC: %d sources, host %s", len(sources), settings.pinecone_host)
    logger.info("  clear=%s inspect=%s", args.clear, args.inspect)
    logger.info("=" * 60)

    report = asyncio.run(
        sync_all(settings, sources, wipe_first=args.clear, skip_remote_upsert=args.inspect)
    )
    print_summary(report)


def cmd_wipe(args):
    """Delete every record in the namespace."""
    from vectorstore.store import VectorStore

    settings = Settings.from_env(dotenv=False)

    async def _wipe():
        async with VectorStore(settings.pinecone_host, settings.require_pinecone(), settings.namespace) as store:
            await store.delete_all()

    asyncio.run(_wipe())
    logger.info("Deleted all records in namespace '%s'", settings.namespace)


def cmd_vector_status(args):
    """Show index statistics."""
    from vectorstore.store import VectorStore

    settings = Settings.from_env(dotenv=False)

    async def _stats():
        async with VectorStore(settings.pinecone_host, settings.require_pinecone(), settings.namespace) as store:
            return await store.get_stats()

    stats = asyncio.run(_stats())

    print("\n" + "=" * 70)
    print("INDEX STATUS")
    print("=" * 70)
    print(f"\n  Host: {settings.pinecone_host}")
    print(f"  Total records: {stats.get('totalVectorCount', stats.get('total_vector_count', '?'))}")
    for name, info in (stats.get("namespaces") or {}).items():
        count = info.get("vectorCount", info.get("vector_count", 0))
        marker = " (active)" if name == settings.namespace else ""
        print(f"    {name or '(default)'}: {count} records{marker}")
    print("\n" + "=" * 70)


# ---------------------------------------------------------------------------
# SERVE
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Launch the query API."""
    import uvicorn

    logger.info("=" * 60)
    logger.info("LAUNCHING QUERY API")
    logger.info("  http://localhost:%d", args.port)
    logger.info("=" * 60)

    uvicorn.run(
        "webapp.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


# ---------------------------------------------------------------------------
# CLIENT
# ---------------------------------------------------------------------------

def _api_url() -> str:
    return Settings.from_env(dotenv=False).api_url or DEFAULT_API_URL


def cmd_search(args):
    """Search the docs through the query API."""
    from client.api import DocsApiClient, format_results

    async def _search():
        client = DocsApiClient(_api_url())
        try:
            return await client.search(args.query, args.provider, args.top_k)
        finally:
            await client.aclose()

    hits, from_cache = asyncio.run(_search())
    print(format_results(hits, from_cache))


def cmd_providers(args):
    """List providers and their latest known models."""
    from client.api import DocsApiClient, format_providers

    async def _providers():
        client = DocsApiClient(_api_url())
        try:
            return await client.providers()
        finally:
            await client.aclose()

    providers = asyncio.run(_providers())
    if args.json:
        print(json.dumps(providers, indent=2))
    else:
        print(format_providers(providers))


# ---------------------------------------------------------------------------
# MAIN
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="LLM Documentation Index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", help="Pipeline command")

    # Sync
    sync_parser = subparsers.add_parser("sync", help="Fetch, chunk and upsert documentation")
    sync_parser.add_argument(
        "--clear",
        action="store_true",
        help="Wipe the namespace before ingesting",
    )
    sync_parser.add_argument(
        "--inspect",
        action="store_true",
        help="Fetch and chunk only, skip all writes to the index",
    )
    sync_parser.add_argument(
        "--sources",
        default=None,
        help="Path to a sources JSON file (default: config/sources.json)",
    )

    # Serve
    serve_parser = subparsers.add_parser("serve", help="Launch the query API")
    serve_parser.add_argument(
        "--port", type=int, default=8787, help="Port (default: 8787)"
    )
    serve_parser.add_argument(
        "--host", default="0.0.0.0", help="Host (default: 0.0.0.0)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Auto-reload on code changes"
    )

    # Search
    search_parser = subparsers.add_parser("search", help="Search the docs via the query API")
    search_parser.add_argument("query", help="Query text")
    search_parser.add_argument(
        "--provider", default=None, help="Provider filter: openai, claude, gemini, ..."
    )
    search_parser.add_argument("--top-k", type=int, default=3, help="Number of results")

    # Providers
    providers_parser = subparsers.add_parser("providers", help="List providers and models")
    providers_parser.add_argument("--json", action="store_true", help="Print raw JSON")

    # Index maintenance
    subparsers.add_parser("vector-status", help="Show index statistics")
    subparsers.add_parser("wipe", help="Delete every record in the namespace")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "sync": cmd_sync,
        "serve": cmd_serve,
        "search": cmd_search,
        "providers": cmd_providers,
        "vector-status": cmd_vector_status,
        "wipe": cmd_wipe,
    }

    try:
        commands[args.command](args)
    except Exception as e:
        logger.exception("Pipeline error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
