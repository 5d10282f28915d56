"""Heading-aware chunking engine for API documentation.

Documentation pages are split at markdown section headers (``#`` to ``###``)
and consecutive sections are packed into chunks of roughly CHUNK_SIZE_CHARS.
Anything that still ends up larger than twice the threshold is re-split on
paragraph boundaries.

Each chunk is content-addressed: its ID is derived from its text and its
source URL, so re-running ingestion over unchanged pages produces the same IDs
and the index diff can skip them.
"""

import hashlib
import logging
import re
from typing import Optional
from urllib.parse import urlparse

from schemas.chunk import Chunk, ChunkMetadata
from schemas.document import RawDocument

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

CHUNK_SIZE_CHARS = 3200  # ~800 tokens
MIN_CHUNK_CHARS = 20
MAX_TITLE_CHARS = 120
DEFAULT_TITLE = "Documentation"

# Zero-width split point in front of every level 1-3 header line
SECTION_BOUNDARY = re.compile(r"(?=^#{1,3}\s)", re.MULTILINE)
SECTION_HEADER = re.compile(r"^#{1,3}\s+(.+)")
DOCUMENT_TITLE = re.compile(r"^#\s+(.+)", re.MULTILINE)
PARAGRAPH_BREAK = re.compile(r"\n\n+")


# ---------------------------------------------------------------------------
# Content addressing
# ---------------------------------------------------------------------------

def content_address(text: str, source: str) -> str:
    """Stable chunk ID: same text from the same source always maps to the same ID."""
    digest = hashlib.sha256((text + source).encode("utf-8")).hexdigest()[:16]
    return f"doc-{digest}"


def extract_title(content: str, url: str) -> str:
    """Document title from the first top-level heading, else from the URL path."""
    match = DOCUMENT_TITLE.search(content)
    if match:
        return match.group(1).strip()[:MAX_TITLE_CHARS]

    segments = [s for s in urlparse(url).path.split("/") if s]
    if segments:
        return segments[-1].replace("-", " ")
    return DEFAULT_TITLE


# ---------------------------------------------------------------------------
# Chunker
# ---------------------------------------------------------------------------

class Chunker:
    """Section-then-paragraph chunker with a character budget."""

    def __init__(self, chunk_size: int = CHUNK_SIZE_CHARS):
        self.chunk_size = chunk_size

    def chunk_document(self, document: RawDocument) -> list[Chunk]:
        """Chunk a fetched document, deriving its title first."""
        title = extract_title(document.text, document.url)
        return self.chunk(document.text, document.provider, document.url, title)

    def chunk(self, content: str, provider: str, source: str, title: str) -> list[Chunk]:
        """Split ``content`` into size-bounded chunks.

        Args:
            content: Full document text (markdown).
            provider: Canonical provider tag.
            source: Source URL (part of every chunk's identity).
            title: Document title, used until the first section heading.

        Returns:
            Chunks in document order.
        """
        sections = self._split_by_headers(content)
        if not sections:
            return self._chunk_by_paragraphs(content, provider, source, title)

        chunks: list[Chunk] = []
        buffer = ""
        section_title = title

        for section in sections:
            # Title is the most recently seen heading, including the section that overflows
            heading = SECTION_HEADER.match(section)
            if heading:
                section_title = heading.group(1).strip()[:MAX_TITLE_CHARS]

            if len(buffer) + len(section) > self.chunk_size:
                self._flush(chunks, buffer, provider, source, section_title)
                buffer = section
            else:
                buffer += "\n\n" + section

        self._flush(chunks, buffer, provider, source, section_title)

        final: list[Chunk] = []
        for chunk in chunks:
            if len(chunk.text) > self.chunk_size * 2:
                final.extend(
                    self._chunk_by_paragraphs(chunk.text, provider, source, chunk.metadata.title)
                )
            else:
                final.append(chunk)

        logger.debug("Chunked %s into %d chunks (%d sections)", source, len(final), len(sections))
        return final

    # -------------------------------------------------------------------
    # Core splitting utilities
    # -------------------------------------------------------------------

    def _split_by_headers(self, content: str) -> list[str]:
        """Split at header lines; empty when the document has no headers."""
        if not SECTION_BOUNDARY.search(content):
            return []
        return [s for s in SECTION_BOUNDARY.split(content) if len(s.strip()) > MIN_CHUNK_CHARS]

    def _chunk_by_paragraphs(
        self, text: str, provider: str, source: str, title: str
    ) -> list[Chunk]:
        """Pack blank-line separated paragraphs into chunks.

        A single paragraph larger than the budget is kept whole.
        """
        chunks: list[Chunk] = []
        buffer = ""

        for paragraph in PARAGRAPH_BREAK.split(text):
            if len(buffer) + len(paragraph) > self.chunk_size:
                self._flush(chunks, buffer, provider, source, title)
                buffer = paragraph
            else:
                buffer += "\n\n" + paragraph

        self._flush(chunks, buffer, provider, source, title)
        return chunks

    def _flush(
        self,
        chunks: list[Chunk],
        buffer: str,
        provider: str,
        source: str,
        title: Optional[str],
    ) -> None:
        text = buffer.strip()
        if len(text) > MIN_CHUNK_CHARS:
            chunks.append(self._make_chunk(text, provider, source, title or DEFAULT_TITLE))

    @staticmethod
    def _make_chunk(text: str, provider: str, source: str, title: str) -> Chunk:
        return Chunk(
            id=content_address(text, source),
            text=text,
            metadata=ChunkMetadata(provider=provider, source=source, title=title),
        )
