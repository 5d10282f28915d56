"""Model-name extraction from retrieved documentation.

Best-effort text mining: each provider has a short list of regexes for its
model identifiers. Dated snapshots (``gpt-4o-2024-11-20``,
``claude-sonnet-4-20250514``) and batch-pricing variants are dropped so the
list shows model family names.
"""

import logging
import re
from typing import Optional

import httpx
from pydantic import BaseModel, Field

from schemas.search import SearchHit
from vectorstore.store import StoreError
from webapp.rag.providers import CANONICAL_PROVIDERS
from webapp.rag.retriever import Retriever

logger = logging.getLogger(__name__)

MAX_MODELS = 8
DATE_STAMP = re.compile(r"\d{4}-\d{2}-\d{2}|\d{8}")
BATCH_MARKER = "(batch)"
BATCH_SUFFIX = r"(?:\s*\(batch\))?"

MODEL_PATTERNS: dict[str, list[re.Pattern]] = {
    "openai": [
        re.compile(r"\bgpt-\d(?:[\w.-]*\w)?" + BATCH_SUFFIX),
        re.compile(r"\bo\d(?:-(?:mini|pro|preview|deep-research))*\b" + BATCH_SUFFIX),
        re.compile(r"\b(?:text-embedding-3-(?:small|large)|dall-e-\d|whisper-\d|tts-\d(?:-hd)?)\b"),
    ],
    "anthropic": [
        re.compile(r"\bclaude-(?:opus|sonnet|haiku)-\d(?:[.-]\d)?(?:-\d{8})?\b" + BATCH_SUFFIX),
        re.compile(r"\bclaude-\d(?:[.-]\d)?-(?:opus|sonnet|haiku)(?:-\d{8})?\b" + BATCH_SUFFIX),
    ],
    "google": [
        re.compile(r"\bgemini-\d(?:\.\d)?-(?:pro|flash|ultra|nano)(?:-[\w.]+)*" + BATCH_SUFFIX),
        re.compile(r"\bgemini-embedding-[\w.-]*\w"),
        re.compile(r"\b(?:imagen|veo)-\d(?:[\w.-]*\w)?"),
    ],
}

# Query used to find each provider's model overview in the index
CATALOG_QUERIES: dict[str, str] = {
    "openai": "latest available models GPT",
    "anthropic": "latest available models Claude",
    "google": "latest available models Gemini",
}


def _normalize(match: str) -> str:
    return match.strip().rstrip(".,;:")


class ModelNameExtractor:
    def __init__(self, patterns: Optional[dict[str, list[re.Pattern]]] = None, limit: int = MAX_MODELS):
        self.patterns = patterns or MODEL_PATTERNS
        self.limit = limit

    def extract(self, hits: list[SearchHit], provider_key: str) -> list[str]:
        """Unique model names in pattern order, at most ``limit``."""
        patterns = self.patterns.get(provider_key, [])
        if not patterns or not hits:
            return []

        text = "\n".join(hit.content for hit in hits)
        seen: set[str] = set()
        models: list[str] = []

        for pattern in patterns:
            for match in pattern.finditer(text):
                name = _normalize(match.group(0))
                if not name or DATE_STAMP.search(name) or BATCH_MARKER in name:
                    continue
                if name in seen:
                    continue
                seen.add(name)
                models.append(name)
                if len(models) >= self.limit:
                    return models
        return models


class ProviderSummary(BaseModel):
    provider: str
    models: list[str] = Field(default_factory=list)
    source: Optional[str] = Field(None, description="URL of the best-matching overview chunk")
    error: Optional[str] = None


class ProviderCatalog:
    """Live per-provider model lists mined from the index."""

    def __init__(
        self,
        retriever: Retriever,
        extractor: Optional[ModelNameExtractor] = None,
        providers: Optional[list[str]] = None,
        top_k: int = 5,
    ):
        self.retriever = retriever
        self.extractor = extractor or ModelNameExtractor()
        self.providers = providers or CANONICAL_PROVIDERS
        self.top_k = top_k

    async def summarize(self, provider: str) -> ProviderSummary:
        query = CATALOG_QUERIES.get(provider, f"latest available models {provider}")
        try:
            hits = await self.retriever.search(query, provider, self.top_k)
        except (StoreError, httpx.HTTPError) as e:
            logger.error("Failed to refresh models for %s: %s", provider, e)
            return ProviderSummary(provider=provider, error=str(e))

        return ProviderSummary(
            provider=provider,
            models=self.extractor.extract(hits, provider),
            source=hits[0].metadata.source if hits else None,
        )

    async def build(self) -> dict[str, ProviderSummary]:
        return {p: await self.summarize(p) for p in self.providers}
