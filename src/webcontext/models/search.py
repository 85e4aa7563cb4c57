"""Search-related models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, HttpUrl


class SearchQuery(BaseModel):
    """A planned web search query."""

    model_config = ConfigDict(frozen=True)

    query: str
    category: str = "general"
    priority: int = Field(default=1, ge=1)
    search_engines: tuple[str, ...] = ("brave",)
    relevance_score: float | None = None


class SearchResultMetadata(BaseModel):
    """Optional freshness/locale metadata reported by the backend."""

    published: str | None = None
    age: str | None = None
    language: str | None = None
    family_friendly: bool | None = None


class SearchResult(BaseModel):
    """A single web search result item."""

    url: HttpUrl
    title: str
    snippet: str = ""
    search_engine: str
    ranking: int = Field(ge=1)
    metadata: SearchResultMetadata | None = None
