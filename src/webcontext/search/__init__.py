"""Web search engines."""

from __future__ import annotations

from webcontext.search.brave import BraveSearchClient, RateLimitState
from webcontext.search.duckduckgo import DuckDuckGoSearchProvider
from webcontext.search.factory import SearchEngineFactory, SearchProvider, get_search_engine_factory

__all__ = [
    "BraveSearchClient",
    "DuckDuckGoSearchProvider",
    "RateLimitState",
    "SearchEngineFactory",
    "SearchProvider",
    "get_search_engine_factory",
]
