"""DuckDuckGo search provider, used as a keyless fallback engine."""

from __future__ import annotations

import asyncio

from duckduckgo_search import DDGS
from pydantic import ValidationError

from webcontext.logging import get_logger
from webcontext.models.search import SearchResult

logger = get_logger(__name__)


class DuckDuckGoSearchProvider:
    """DuckDuckGo search provider.

    The ``duckduckgo_search`` client is synchronous, so calls run in a worker thread.
    """

    name = "duckduckgo"

    def _search_sync(self, query: str, max_results: int) -> list[SearchResult]:
        results: list[SearchResult] = []
        with DDGS() as ddgs:
            for i, r in enumerate(ddgs.text(query, max_results=max_results), start=1):
                url = r.get("href") or r.get("url")
                title = r.get("title")
                if not url or not title:
                    continue
                try:
                    results.append(
                        SearchResult(
                            url=url,
                            title=title,
                            snippet=r.get("body") or r.get("snippet") or "",
                            search_engine=self.name,
                            ranking=i,
                        )
                    )
                except ValidationError:
                    continue
        return results

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        return await asyncio.to_thread(self._search_sync, query, max_results)

    async def health_check(self) -> bool:
        try:
            return len(await self.search("test health check", max_results=1)) > 0
        except Exception as e:
            logger.warning("DuckDuckGo health check failed", extra={"error": str(e)})
            return False

    async def aclose(self) -> None:
        return None
