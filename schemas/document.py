"""Pydantic models for documentation sources and fetched documents."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class DocumentSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str = Field(description="Canonical provider tag stored in the index")
    urls: List[str] = Field(default_factory=list, description="Fetch URLs, processed in order")


class RawDocument(BaseModel):
    provider: str
    url: str
    text: str = Field(description="Full normalized text (markdown)")
