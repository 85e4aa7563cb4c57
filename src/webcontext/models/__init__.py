"""Pydantic models used across the project."""

from __future__ import annotations

from webcontext.models.category import CategoryConfig, TaskCategory
from webcontext.models.content import ContentMetadata, ScrapedContent
from webcontext.models.enhancement import EnhancementOutcome, EnhancementResult, ProcessingMetadata
from webcontext.models.search import SearchQuery, SearchResult, SearchResultMetadata

__all__ = [
    "CategoryConfig",
    "ContentMetadata",
    "EnhancementOutcome",
    "EnhancementResult",
    "ProcessingMetadata",
    "ScrapedContent",
    "SearchQuery",
    "SearchResult",
    "SearchResultMetadata",
    "TaskCategory",
]
