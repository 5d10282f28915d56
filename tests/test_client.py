import httpx
import orjson
import pytest

from client.api import DocsApiClient, DocsApiError, format_providers, format_results
from client.lru import LRUCache
from schemas.chunk import ChunkMetadata
from schemas.search import SearchHit

BASE_URL = "https://api.test"

HIT = {
    "id": "doc-1",
    "content": "Use the `stream` parameter.",
    "metadata": {"provider": "anthropic", "source": "https://docs.anthropic.test/streaming", "title": "Streaming"},
    "score": 0.912,
}


class FakeApi:
    def __init__(self, status: int = 200):
        self.status = status
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, json={"detail": "boom"})
        if request.url.path == "/query":
            return httpx.Response(200, json={"results": [HIT], "cached": False})
        if request.url.path == "/providers":
            return httpx.Response(200, json={"providers": {"openai": {"provider": "openai", "models": ["gpt-4.1"]}}, "cached": True})
        return httpx.Response(404)


def _client(api: FakeApi, cache=None) -> DocsApiClient:
    return DocsApiClient(BASE_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(api.handler)), cache=cache)


@pytest.mark.asyncio
async def test_search_uses_local_cache_for_repeat_queries():
    api = FakeApi()
    client = _client(api)

    hits, from_cache = await client.search("Streaming", "claude", 3)
    assert from_cache is False
    assert hits[0].metadata.title == "Streaming"

    hits_again, from_cache = await client.search("  streaming ", "claude", 3)
    assert from_cache is True
    assert hits_again == hits
    assert len(api.requests) == 1

    body = orjson.loads(api.requests[0].content)
    assert body == {"query": "Streaming", "provider": "claude", "topK": 3}
    await client.aclose()


@pytest.mark.asyncio
async def test_different_parameters_miss_the_cache():
    api = FakeApi()
    client = _client(api)

    await client.search("streaming", "claude", 3)
    await client.search("streaming", "openai", 3)
    await client.search("streaming", "claude", 5)

    assert len(api.requests) == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_cache_capacity_is_bounded():
    api = FakeApi()
    client = _client(api, cache=LRUCache(capacity=2))

    await client.search("a")
    await client.search("b")
    await client.search("c")
    _, from_cache = await client.search("a")

    assert from_cache is False
    assert len(api.requests) == 4
    await client.aclose()


@pytest.mark.asyncio
async def test_api_errors_are_raised_and_not_cached():
    api = FakeApi(status=502)
    client = _client(api)

    with pytest.raises(DocsApiError) as exc_info:
        await client.search("streaming")
    assert exc_info.value.status_code == 502
    assert len(client.cache) == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_unreachable_api():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = DocsApiClient(BASE_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    with pytest.raises(DocsApiError, match="unreachable"):
        await client.providers()
    await client.aclose()


@pytest.mark.asyncio
async def test_providers():
    client = _client(FakeApi())
    assert await client.providers() == {"openai": {"provider": "openai", "models": ["gpt-4.1"]}}
    await client.aclose()


def test_format_results_renders_markdown():
    hit = SearchHit.model_validate(HIT)
    text = format_results([hit, hit], from_cache=True)

    assert "## [1] Streaming (anthropic)" in text
    assert "## [2] Streaming (anthropic)" in text
    assert "_Relevance: 91.2%_" in text
    assert "_Source: https://docs.anthropic.test/streaming_" in text
    assert text.endswith("_Served from local cache_")


def test_format_results_empty():
    assert format_results([]).startswith("No documentation found")


def test_format_providers():
    text = format_providers(
        {
            "openai": {"models": ["gpt-4.1", "o3"]},
            "google": {"models": [], "error": "Search failed (500)"},
            "anthropic": {"models": []},
        }
    )
    assert "### Openai Models" in text
    assert "- `o3`" in text
    assert "_Error: Search failed (500)_" in text
    assert "_No models found in documentation_" in text
    assert format_providers({}).startswith("No providers found")


def test_hit_from_dict_round_trip():
    hit = SearchHit(id="doc-2", content="c", metadata=ChunkMetadata(provider="openai", source="s"), score=0.1)
    assert SearchHit.model_validate(hit.model_dump()) == hit
