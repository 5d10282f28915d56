"""Search hit models and the query key shared by both cache tiers."""

from typing import Optional

from pydantic import BaseModel

from schemas.chunk import ChunkMetadata

QUERY_KEY_SEPARATOR = ":"


def query_key(query: str, provider: Optional[str], top_k: int) -> str:
    """Canonical cache key for a lookup.

    Case- and surrounding-whitespace-insensitive on the query text; an absent
    provider filter is spelled ``all``.
    """
    return QUERY_KEY_SEPARATOR.join(
        [query.strip().lower(), provider or "all", str(top_k)]
    )


class SearchHit(BaseModel):
    id: str
    content: str = ""
    metadata: ChunkMetadata
    score: float = 0.0

    @classmethod
    def from_engine_hit(cls, hit: dict) -> "SearchHit":
        fields = hit.get("fields") or {}
        return cls(
            id=str(hit.get("_id", hit.get("id", ""))),
            content=fields.get("content") or "",
            metadata=ChunkMetadata(
                provider=fields.get("provider") or "unknown",
                source=fields.get("source") or "",
                title=fields.get("title") or "",
            ),
            score=float(hit.get("_score", hit.get("score", 0.0)) or 0.0),
        )
