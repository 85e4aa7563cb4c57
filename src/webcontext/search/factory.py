"""Search engine registry with ordered fallback."""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from webcontext.config import Settings
from webcontext.errors import ConfigurationError
from webcontext.logging import get_logger
from webcontext.models.search import SearchResult
from webcontext.search.brave import BraveSearchClient
from webcontext.search.duckduckgo import DuckDuckGoSearchProvider

logger = get_logger(__name__)


class SearchProvider(Protocol):
    """Search provider interface."""

    name: str

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        """Search web."""

    async def health_check(self) -> bool:
        """Return True when the engine answers."""

    async def aclose(self) -> None:
        """Release network resources."""


class SearchEngineFactory:
    """Holds named search engines; the primary is tried first, then each fallback."""

    def __init__(
        self,
        engines: Mapping[str, SearchProvider],
        *,
        primary: str = "brave",
        fallbacks: Sequence[str] = (),
    ) -> None:
        if primary not in engines:
            raise ConfigurationError(f"Primary search engine {primary!r} is not registered")
        unknown = [name for name in fallbacks if name not in engines]
        if unknown:
            raise ConfigurationError(f"Unknown fallback search engines: {', '.join(unknown)}")
        self._engines = dict(engines)
        self._primary = primary
        self._fallbacks = [name for name in fallbacks if name != primary]

    @property
    def primary(self) -> SearchProvider:
        return self._engines[self._primary]

    def available_engines(self) -> list[str]:
        return [self._primary, *self._fallbacks]

    def get(self, name: str) -> SearchProvider:
        try:
            return self._engines[name]
        except KeyError:
            raise ConfigurationError(f"Unknown search engine: {name}") from None

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        """Search with the primary engine only; errors propagate."""

        return await self.primary.search(query, max_results)

    async def search_with_fallback(self, query: str, max_results: int = 10) -> list[SearchResult]:
        """Return the first non-empty result list across engines; ``[]`` if all fail."""

        for name in self.available_engines():
            engine = self._engines[name]
            try:
                results = await engine.search(query, max_results)
            except Exception as e:
                logger.warning(
                    "Search engine failed, trying next",
                    extra={"engine": name, "error_type": type(e).__name__, "error": str(e)},
                )
                continue
            if results:
                return results
            logger.info("Search engine returned no results", extra={"engine": name})
        return []

    async def health_check_all(self) -> dict[str, bool]:
        report: dict[str, bool] = {}
        for name in self.available_engines():
            report[name] = await self._engines[name].health_check()
        return report

    async def aclose(self) -> None:
        for engine in self._engines.values():
            await engine.aclose()


def get_search_engine_factory(settings: Settings) -> SearchEngineFactory:
    """Factory to create the search engine registry from settings."""

    engines: dict[str, SearchProvider] = {
        "brave": BraveSearchClient(
            settings.brave_api_key,
            base_url=settings.brave_base_url,
            timeout_s=settings.brave_timeout_s,
            max_retries=settings.brave_max_retries,
            retry_delay_s=settings.brave_retry_delay_s,
            rate_limit=settings.brave_rate_limit,
            user_agent=settings.http_user_agent,
        )
    }
    if "duckduckgo" in settings.search_fallback_engines:
        engines["duckduckgo"] = DuckDuckGoSearchProvider()
    return SearchEngineFactory(engines, primary="brave", fallbacks=settings.search_fallback_engines)
