"""Environment-driven configuration.

Values come from the process environment, optionally seeded from a ``.env``
file in the project root.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from schemas.document import DocumentSource

PROJECT_ROOT = Path(__file__).parent
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_SOURCES_PATH = CONFIG_DIR / "sources.json"
DEFAULT_PINECONE_HOST = "https://llmdocs.svc.pinecone.io"


class MissingCredentialError(RuntimeError):
    pass


@dataclass(frozen=True)
class Settings:
    pinecone_api_key: Optional[str] = None
    pinecone_host: str = DEFAULT_PINECONE_HOST
    namespace: str = "docs"
    redis_url: Optional[str] = None
    api_url: Optional[str] = None
    api_secret: Optional[str] = None
    query_cache_ttl: int = 3600

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv(PROJECT_ROOT / ".env")
        return cls(
            pinecone_api_key=os.getenv("PINECONE_API_KEY") or None,
            pinecone_host=os.getenv("PINECONE_HOST") or DEFAULT_PINECONE_HOST,
            namespace=os.getenv("PINECONE_NAMESPACE") or "docs",
            redis_url=os.getenv("REDIS_URL") or None,
            api_url=(os.getenv("LLMDOCS_API_URL") or "").rstrip("/") or None,
            api_secret=os.getenv("LLMDOCS_API_SECRET") or None,
            query_cache_ttl=int(os.getenv("QUERY_CACHE_TTL") or 3600),
        )

    def require_pinecone(self) -> str:
        if not self.pinecone_api_key:
            raise MissingCredentialError("PINECONE_API_KEY is not set")
        return self.pinecone_api_key


def load_sources(path: Optional[Path] = None) -> list[DocumentSource]:
    """Load the documentation source list (provider -> URLs)."""
    config_path = Path(path) if path else DEFAULT_SOURCES_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Sources config not found: {config_path}")
    with open(config_path) as f:
        data = json.load(f)
    return [DocumentSource(**item) for item in data.get("sources", [])]
