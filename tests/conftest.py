"""Shared fixtures: an in-memory stand-in for the Pinecone data plane.

Everything goes through ``httpx.MockTransport`` so the real request/response
code paths in VectorStore, DocsScraper and RefreshNotifier are exercised.
"""

from typing import Optional

import httpx
import orjson
import pytest

from schemas.chunk import IndexRecord
from settings import Settings

INDEX_HOST = "https://index.test"
API_HOST = "https://api.test"


def make_doc(title: str, sections: int = 3, section_chars: int = 400) -> str:
    """Markdown document with a top-level title and ``sections`` level-2 sections."""
    parts = [f"# {title}", "", f"Overview of {title}. " * 5]
    for i in range(sections):
        body = f"Section {i} of {title} explains parameter handling. "
        parts += ["", f"## {title} part {i}", "", (body * (section_chars // len(body) + 1))[:section_chars]]
    return "\n".join(parts)


class FakePinecone:
    """Routes index, docs and API traffic for tests."""

    def __init__(self):
        self.records: dict[str, dict] = {}
        self.docs: dict[str, str] = {}
        self.upsert_statuses: list[int] = []
        self.transport_failures = 0
        self.list_status: Optional[int] = None
        self.fail_list_after_pages: Optional[int] = None
        self.search_status: Optional[int] = None
        self.list_body: Optional[str] = None
        self.search_body: Optional[str] = None
        self.delete_status: Optional[int] = None
        self.refresh_status = 200
        self.upsert_calls = 0
        self.search_calls = 0
        self.list_calls = 0
        self.refresh_requests: list[httpx.Request] = []

    def seed(self, *records: IndexRecord) -> None:
        for record in records:
            self.records[record.id] = record.model_dump()

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    # -------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url.startswith(INDEX_HOST):
            return self._index(request)
        if url.startswith(API_HOST):
            self.refresh_requests.append(request)
            return httpx.Response(self.refresh_status, json={"success": self.refresh_status == 200})

        key = url.split("?")[0]
        if key in self.docs:
            return httpx.Response(200, text=self.docs[key], headers={"content-type": "text/markdown"})
        return httpx.Response(404, text="not found")

    def _index(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/vectors/list":
            return self._list(request)
        if path.endswith("/upsert"):
            return self._upsert(request)
        if path.endswith("/search"):
            return self._search(request)
        if path == "/vectors/delete":
            return self._delete(request)
        if path == "/describe_index_stats":
            return httpx.Response(
                200, json={"namespaces": {"docs": {"vectorCount": len(self.records)}}, "totalVectorCount": len(self.records)}
            )
        return httpx.Response(404, text=f"no route {path}")

    def _list(self, request: httpx.Request) -> httpx.Response:
        self.list_calls += 1
        if self.list_status:
            return httpx.Response(self.list_status, text="list failed")
        if self.fail_list_after_pages is not None and self.list_calls > self.fail_list_after_pages:
            return httpx.Response(500, text="list failed mid-way")
        if self.list_body is not None:
            return httpx.Response(200, text=self.list_body)

        limit = int(request.url.params.get("limit", "100"))
        offset = int(request.url.params.get("paginationToken") or 0)
        ids = sorted(self.records)
        page = ids[offset:offset + limit]
        body: dict = {"vectors": [{"id": i} for i in page]}
        if offset + limit < len(ids):
            body["pagination"] = {"next": str(offset + limit)}
        return httpx.Response(200, json=body)

    def _upsert(self, request: httpx.Request) -> httpx.Response:
        self.upsert_calls += 1
        if self.transport_failures:
            self.transport_failures -= 1
            raise httpx.ConnectError("connection reset", request=request)
        if self.upsert_statuses:
            status = self.upsert_statuses.pop(0)
            if status != 200:
                return httpx.Response(status, text=f"upsert status {status}")

        assert request.headers["content-type"] == "application/x-ndjson"
        for line in request.content.decode().splitlines():
            record = orjson.loads(line)
            self.records[record["id"]] = record
        return httpx.Response(201)

    def _search(self, request: httpx.Request) -> httpx.Response:
        self.search_calls += 1
        if self.search_status:
            return httpx.Response(self.search_status, text="search backend down")
        if self.search_body is not None:
            return httpx.Response(200, text=self.search_body)

        body = orjson.loads(request.content)
        query = body["query"]
        wanted = ((query.get("filter") or {}).get("provider") or {}).get("$eq")
        matches = [r for r in self.records.values() if wanted is None or r["provider"] == wanted]
        hits = [
            {
                "_id": r["id"],
                "_score": round(0.9 - i * 0.1, 2),
                "fields": {k: r[k] for k in body["fields"] if k in r},
            }
            for i, r in enumerate(matches[: query["top_k"]])
        ]
        return httpx.Response(200, json={"result": {"hits": hits}})

    def _delete(self, request: httpx.Request) -> httpx.Response:
        if self.delete_status:
            return httpx.Response(self.delete_status, text="namespace not found")
        body = orjson.loads(request.content)
        assert body == {"deleteAll": True, "namespace": "docs"}
        self.records.clear()
        return httpx.Response(200, json={})


class SleepRecorder:
    """Drop-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake():
    return FakePinecone()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def settings():
    return Settings(pinecone_api_key="test-key", pinecone_host=INDEX_HOST)
