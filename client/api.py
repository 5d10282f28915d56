"""HTTP client for the query API, fronted by a local LRU cache."""

from typing import Optional

import httpx

from client.lru import LRUCache
from schemas.search import SearchHit, query_key

USER_AGENT = "llmdocs-cli/0.2.0"


class DocsApiError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DocsApiClient:
    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[LRUCache[list[SearchHit]]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=30.0)
        self.cache = cache if cache is not None else LRUCache()

    async def _request(self, method: str, path: str, json_body: Optional[dict] = None) -> dict:
        try:
            response = await self.client.request(
                method,
                f"{self.base_url}{path}",
                json=json_body,
                headers={"User-Agent": USER_AGENT},
            )
        except httpx.HTTPError as e:
            raise DocsApiError(f"API unreachable: {e}") from e
        if response.is_error:
            raise DocsApiError(
                f"API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    async def search(
        self,
        query: str,
        provider: Optional[str] = None,
        top_k: int = 3,
    ) -> tuple[list[SearchHit], bool]:
        """Search docs; returns (hits, served_from_local_cache)."""
        key = query_key(query, provider, top_k)
        cached = self.cache.get(key)
        if cached is not None:
            return cached, True

        data = await self._request(
            "POST",
            "/query",
            {"query": query.strip(), "provider": provider, "topK": top_k},
        )
        hits = [SearchHit.model_validate(h) for h in data.get("results") or []]
        self.cache.set(key, hits)
        return hits, False

    async def providers(self) -> dict[str, dict]:
        data = await self._request("GET", "/providers")
        return data.get("providers") or {}

    async def aclose(self) -> None:
        await self.client.aclose()


def format_results(hits: list[SearchHit], from_cache: bool = False) -> str:
    """Render hits as markdown sections."""
    if not hits:
        return "No documentation found for this query. Try rephrasing or specifying a provider."

    sections = []
    for i, hit in enumerate(hits, 1):
        header = f"## [{i}] {hit.metadata.title} ({hit.metadata.provider})"
        meta = f"_Source: {hit.metadata.source}_ | _Relevance: {hit.score * 100:.1f}%_"
        sections.append(f"{header}\n{meta}\n\n{hit.content}")

    text = "\n\n---\n\n".join(sections)
    if from_cache:
        text += "\n\n---\n_Served from local cache_"
    return text


def format_providers(providers: dict[str, dict]) -> str:
    if not providers:
        return "No providers found. The service may be initializing."

    sections = []
    for name, summary in providers.items():
        models = summary.get("models") or []
        lines = [f"### {name.capitalize()} Models", ""]
        if models:
            lines.extend(f"- `{m}`" for m in models)
        elif summary.get("error"):
            lines.append(f"_Error: {summary['error']}_")
        else:
            lines.append("_No models found in documentation_")
        sections.append("\n".join(lines))
    return "\n\n---\n\n".join(sections)
