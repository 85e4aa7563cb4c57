"""Scraped content models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ContentMetadata(BaseModel):
    """Page-level metadata read from ``<meta>`` tags."""

    model_config = ConfigDict(frozen=True)

    description: str = ""
    keywords: tuple[str, ...] = ()


class ScrapedContent(BaseModel):
    """Readable text extracted from one web page."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str
    content: str
    metadata: ContentMetadata = Field(default_factory=ContentMetadata)
    word_count: int = Field(ge=0)
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
