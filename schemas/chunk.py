"""Pydantic models for retrieval-ready chunks and their index records."""

from pydantic import BaseModel, Field


class ChunkMetadata(BaseModel):
    provider: str = Field(description="Canonical provider tag: 'openai' | 'anthropic' | 'google' | ...")
    source: str = Field(description="URL the chunk was fetched from")
    title: str = Field(default="", description="Nearest section heading or document title")


class IndexRecord(BaseModel):
    """A chunk as persisted in the search index.

    ``content`` is the field the index's integrated embedding model reads.
    """

    id: str
    content: str
    provider: str
    source: str
    title: str


class Chunk(BaseModel):
    id: str = Field(description="Content address: doc-<sha256(text + source)[:16]>")
    text: str = Field(description="The chunk text for embedding and retrieval")
    metadata: ChunkMetadata

    def to_record(self) -> IndexRecord:
        return IndexRecord(
            id=self.id,
            content=self.text,
            provider=self.metadata.provider,
            source=self.metadata.source,
            title=self.metadata.title,
        )
