"""FastAPI query service for the documentation index.

Launch:
    python -m uvicorn webapp.app:create_app --factory --port 8787

Or via pipeline:
    python pipeline.py serve --port 8787
"""

import hmac
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from settings import Settings
from vectorstore.store import SearchError, VectorStore
from webapp.cache import EdgeCache, MemoryKVStore, RedisKVStore
from webapp.rag.query_engine import QueryEngine
from webapp.rag.retriever import Retriever

logger = logging.getLogger(__name__)

SERVICE_NAME = "llmdocs-api"
SERVICE_VERSION = "0.3.0"
MIN_TOP_K = 1
MAX_TOP_K = 10


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@dataclass
class AppServices:
    """Everything the routes need, built once per process."""

    engine: QueryEngine
    api_secret: Optional[str] = None
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in self.closers:
            await close()


def build_services(settings: Settings) -> AppServices:
    """Wire services from settings. Raises MissingCredentialError without an API key."""
    api_key = settings.require_pinecone()
    client = httpx.AsyncClient(timeout=30.0)
    store = VectorStore(settings.pinecone_host, api_key, settings.namespace, client=client)
    closers = [client.aclose]

    if settings.redis_url:
        kv = RedisKVStore.from_url(settings.redis_url)
        closers.append(kv.aclose)
    else:
        logger.info("REDIS_URL not set, using in-process edge cache")
        kv = MemoryKVStore()

    engine = QueryEngine(Retriever(store), EdgeCache(kv, ttl_seconds=settings.query_cache_ttl))
    return AppServices(engine=engine, api_secret=settings.api_secret, closers=closers)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    provider: Optional[str] = None
    top_k: int = Field(3, alias="topK")


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(services: Optional[AppServices] = None) -> FastAPI:
    if services is None:
        services = build_services(Settings.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await services.aclose()

    app = FastAPI(
        title="LLM Docs Search",
        description="Provider-filtered semantic search over LLM API documentation",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": "Invalid request body", "errors": jsonable_encoder(exc.errors())})

    @app.get("/")
    async def health():
        return {"service": SERVICE_NAME, "status": "ok", "version": SERVICE_VERSION, "backend": "pinecone"}

    @app.post("/query")
    async def query(req: QueryRequest):
        """Search the index, answering from the edge cache when possible."""
        if not req.query.strip():
            raise HTTPException(status_code=400, detail="Missing or empty 'query' field")
        if not MIN_TOP_K <= req.top_k <= MAX_TOP_K:
            raise HTTPException(status_code=400, detail=f"'topK' must be between {MIN_TOP_K} and {MAX_TOP_K}")

        try:
            hits, cached = await services.engine.query(req.query, req.provider, req.top_k)
        except SearchError as e:
            raise HTTPException(status_code=502, detail=f"Search backend error ({e.status_code}): {e.body}")
        except httpx.HTTPError as e:
            logger.exception("Search request failed: %s", e)
            raise HTTPException(status_code=502, detail=f"Search backend unreachable: {e}")

        return {"results": [h.model_dump() for h in hits], "cached": cached}

    @app.get("/providers")
    async def providers():
        summaries, cached = await services.engine.providers()
        return {"providers": {k: v.model_dump() for k, v in summaries.items()}, "cached": cached}

    @app.post("/refresh-models")
    async def refresh_models(request: Request):
        """Recompute and persist the provider catalog (admin only)."""
        auth = request.headers.get("Authorization", "")
        expected = f"Bearer {services.api_secret}" if services.api_secret else None
        if expected is None or not hmac.compare_digest(auth.encode(), expected.encode()):
            raise HTTPException(status_code=401, detail="Unauthorized")

        summaries = await services.engine.refresh_providers()
        return {"success": True, "providers": {k: v.model_dump() for k, v in summaries.items()}}

    return app
