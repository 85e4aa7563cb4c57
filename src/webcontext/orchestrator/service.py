"""Web-context enhancement pipeline.

Categorize -> plan queries -> search -> scrape -> rank -> augment -> enhance.
Every step degrades instead of raising; callers always get a complete
:class:`EnhancementResult`.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, Sequence

from webcontext.browser.behavior import BehaviorSimulator
from webcontext.browser.pool import AcquisitionPool
from webcontext.cache import ResultCache
from webcontext.config import Settings
from webcontext.enhancement.enhancer import AcceptancePolicy, EnhancementOptions, PromptEnhancer
from webcontext.llm.client import OpenAITextGenerator, require_openai_key
from webcontext.logging import current_run_id, get_logger, log_exception, run_context, set_step
from webcontext.models.category import TaskCategory
from webcontext.models.content import ScrapedContent
from webcontext.models.enhancement import EnhancementResult, ProcessingMetadata
from webcontext.models.search import SearchQuery, SearchResult
from webcontext.planning.categorizer import TaskCategorizer
from webcontext.planning.query_planner import QueryPlanner, prompt_fallback_queries
from webcontext.ranking.relevance import RelevanceRanker
from webcontext.scraping.extractor import ContentExtractor, ScrapingOptions
from webcontext.search.factory import get_search_engine_factory
from webcontext.utils.text import truncate

logger = get_logger(__name__)

MAX_SEARCH_QUERIES = 2
MAX_WEB_CONTEXT = 3
EXCERPT_CHARS = 500

PIPELINE_SCRAPE_OPTIONS = ScrapingOptions(timeout_s=20.0, min_word_count=50, max_content_length=5000)


class SearchBackend(Protocol):
    async def search_with_fallback(self, query: str, max_results: int = 10) -> list[SearchResult]:
        """Search, trying fallback engines; returns [] when all fail."""

    async def health_check_all(self) -> dict[str, bool]:
        """Per-engine health."""

    async def aclose(self) -> None:
        """Release network resources."""


@dataclass
class _SearchAndScrape:
    content: tuple[ScrapedContent, ...] = ()
    queries: tuple[SearchQuery, ...] = ()
    attempted: bool = False
    search_time: int = 0
    scraping_time: int = 0
    urls_processed: int = 0
    retained: int = 0

    @property
    def success_rate(self) -> float:
        if not self.urls_processed:
            return 0.0
        return round(self.retained / self.urls_processed, 4)

    @property
    def failed(self) -> bool:
        """A search ran but produced no usable page."""

        return self.attempted and not self.content


def build_contextual_prompt(prompt: str, web_context: Sequence[ScrapedContent]) -> str:
    """Append labelled source excerpts to ``prompt``; unchanged when there is no context."""

    if not web_context:
        return prompt

    parts = [prompt, "", "**Additional Context from Recent Sources:**", ""]
    for i, content in enumerate(web_context[:MAX_WEB_CONTEXT], start=1):
        parts.append(f"**Source {i}: {content.title}**")
        parts.append(f"URL: {content.url}")
        parts.append(f"Content: {truncate(content.content, EXCERPT_CHARS)}")
        parts.append("")
    parts.append(
        "Please use this additional context to provide a more comprehensive and up-to-date response."
    )
    return "\n".join(parts)


def _ms_since(started: float, clock: Callable[[], float]) -> int:
    return int((clock() - started) * 1000)


class EnhancementOrchestrator:
    """Runs the web-context enhancement pipeline."""

    def __init__(
        self,
        *,
        categorizer: TaskCategorizer,
        planner: QueryPlanner,
        search: SearchBackend,
        extractor: ContentExtractor,
        enhancer: PromptEnhancer,
        ranker: RelevanceRanker | None = None,
        cache: ResultCache | None = None,
        scrape_options: ScrapingOptions = PIPELINE_SCRAPE_OPTIONS,
        closers: Sequence[Callable[[], Awaitable[Any]]] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._categorizer = categorizer
        self._planner = planner
        self._search = search
        self._extractor = extractor
        self._enhancer = enhancer
        self._ranker = ranker or RelevanceRanker()
        self._cache = cache
        self._scrape_options = scrape_options
        self._closers = list(closers)
        self._clock = clock

    @property
    def cache(self) -> ResultCache | None:
        return self._cache

    async def enhance_with_web_context(
        self, prompt: str, options: EnhancementOptions | None = None
    ) -> EnhancementResult:
        """Enhance ``prompt`` with web context. Never raises for operational failures."""

        opts = options or EnhancementOptions()
        use_cache = opts.use_cache and self._cache is not None

        with run_context(run_id=uuid.uuid4().hex[:12], step="init"):
            if use_cache:
                cached = self._cache.get_cached_enhancement(prompt)
                if cached is not None:
                    logger.info("Returning cached enhancement")
                    return cached

            started = self._clock()
            logger.info(
                "Starting enhancement with web context",
                extra={"prompt_preview": prompt[:100], "enable_web_search": opts.enable_web_search},
            )
            try:
                result, complete = await self._run_pipeline(prompt, opts, started)
            except Exception:
                log_exception(logger, "Enhancement pipeline failed, falling back to categorization only")
                return await self._categorization_only(prompt, opts, started)

            if use_cache and complete:
                self._cache.cache_enhancement(prompt, result)
            elif use_cache:
                logger.info("Degraded result not cached")
            return result

    async def _run_pipeline(
        self, prompt: str, opts: EnhancementOptions, started: float
    ) -> tuple[EnhancementResult, bool]:
        """Run every step; the flag is false when any step degraded."""

        set_step("plan")
        planned = True
        try:
            categories = await self._categorize(prompt, opts)
            queries = await self._planner.plan(prompt, categories)
        except Exception as e:
            logger.warning("Categorization or planning failed", extra={"error": str(e)})
            categories, queries = (), []
            planned = False

        found = _SearchAndScrape(queries=tuple(queries))
        if opts.enable_web_search:
            if queries:
                found = await self._search_and_scrape(queries, opts)
            else:
                fallback = prompt_fallback_queries(prompt)
                logger.info(
                    "No search queries planned, using prompt keywords",
                    extra={"queries": [q.query for q in fallback]},
                )
                if fallback:
                    found = await self._search_and_scrape(fallback, opts)

        set_step("enhance")
        augmented = build_contextual_prompt(prompt, found.content)
        enhanced, enhanced_ok = await self._enhance(prompt, augmented, categories, opts)

        metadata = ProcessingMetadata(
            run_id=current_run_id(),
            search_time=found.search_time,
            scraping_time=found.scraping_time,
            total_time=_ms_since(started, self._clock),
            urls_processed=found.urls_processed,
            success_rate=found.success_rate,
        )
        logger.info(
            "Enhancement completed",
            extra={
                "web_context_items": len(found.content),
                "urls_processed": found.urls_processed,
                "success_rate": found.success_rate,
                "total_time_ms": metadata.total_time,
            },
        )
        result = EnhancementResult(
            original_prompt=prompt,
            enhanced_prompt=enhanced,
            categories=categories,
            web_context=found.content,
            search_queries=found.queries,
            processing_metadata=metadata,
        )
        return result, planned and enhanced_ok and not found.failed

    async def _categorize(self, prompt: str, opts: EnhancementOptions) -> tuple[TaskCategory, ...]:
        if opts.use_cache and self._cache is not None:
            cached = self._cache.get_cached_categories(prompt)
            if cached is not None:
                return cached
        categories = tuple(await self._categorizer.categorize(prompt))
        if categories and opts.use_cache and self._cache is not None:
            self._cache.cache_categories(prompt, categories)
        return categories

    async def _search_and_scrape(
        self, queries: Sequence[SearchQuery], opts: EnhancementOptions
    ) -> _SearchAndScrape:
        set_step("search")
        search_started = self._clock()
        cap = min(opts.max_scraped_content, MAX_WEB_CONTEXT)
        selected = sorted(queries, key=lambda q: q.priority)[:MAX_SEARCH_QUERIES]

        urls: list[str] = []
        for q in selected:
            try:
                results = await self._search.search_with_fallback(q.query, opts.max_search_results)
            except Exception as e:
                logger.warning("Search failed for query", extra={"query": q.query, "error": str(e)})
                continue
            for r in results:
                url = str(r.url)
                if url not in urls:
                    urls.append(url)
            logger.debug("Search completed", extra={"query": q.query, "results": len(results)})
        urls = urls[:cap]
        search_time = _ms_since(search_started, self._clock)

        set_step("scrape")
        scrape_started = self._clock()
        scraped: list[ScrapedContent] = []
        if urls:
            scraped = await self._extractor.scrape_urls(urls, self._scrape_options)
        ranked = self._ranker.rank_content(scraped)
        scraping_time = _ms_since(scrape_started, self._clock)

        found = _SearchAndScrape(
            content=tuple(ranked[:cap]),
            queries=tuple(queries),
            attempted=True,
            search_time=search_time,
            scraping_time=scraping_time,
            urls_processed=len(urls),
            retained=len(scraped),
        )
        logger.info(
            "Search and scrape phase completed",
            extra={
                "search_time_ms": search_time,
                "scraping_time_ms": scraping_time,
                "urls_processed": found.urls_processed,
                "content_obtained": len(scraped),
                "success_rate": found.success_rate,
            },
        )
        return found

    async def _enhance(
        self,
        original: str,
        augmented: str,
        categories: Sequence[TaskCategory],
        opts: EnhancementOptions,
    ) -> tuple[str, bool]:
        """Enhanced text, and false when the enhancer failed and ``original`` came back."""

        try:
            outcome = await self._enhancer.enhance_prompt(augmented, categories, opts)
        except Exception as e:
            logger.warning("Prompt enhancement failed, returning original", extra={"error": str(e)})
            return original, False
        return outcome.enhanced_prompt, True

    async def _categorization_only(
        self, prompt: str, opts: EnhancementOptions, started: float
    ) -> EnhancementResult:
        set_step("fallback")
        try:
            categories = tuple(await self._categorizer.categorize(prompt))
            enhanced, _ = await self._enhance(prompt, prompt, categories, opts)
        except Exception:
            log_exception(logger, "Fallback enhancement also failed")
            return EnhancementResult(
                original_prompt=prompt,
                enhanced_prompt=prompt,
                processing_metadata=ProcessingMetadata(run_id=current_run_id()),
            )
        return EnhancementResult(
            original_prompt=prompt,
            enhanced_prompt=enhanced,
            categories=categories,
            processing_metadata=ProcessingMetadata(
                run_id=current_run_id(),
                total_time=_ms_since(started, self._clock),
            ),
        )

    async def health_check(self) -> dict[str, Any]:
        """Aggregate component health: healthy, degraded or unhealthy."""

        components: dict[str, bool] = {}
        try:
            engines = await self._search.health_check_all()
            components["search_engines"] = any(engines.values())
            components["content_scraper"] = await self._extractor.test_scraping()
            try:
                await self._categorizer.categorize("test prompt")
                components["task_categorizer"] = True
            except Exception:
                components["task_categorizer"] = False
        except Exception:
            log_exception(logger, "Health check failed")
            return {"status": "unhealthy", "components": components}

        healthy = sum(1 for ok in components.values() if ok)
        if healthy == len(components):
            status = "healthy"
        elif healthy > 0:
            status = "degraded"
        else:
            status = "unhealthy"
        logger.info("Health check completed", extra={"status": status, "components": components})
        return {"status": status, "components": components}

    async def cleanup(self) -> None:
        """Release browser sessions and network clients. Safe to call repeatedly."""

        for close in (self._extractor.cleanup, self._search.aclose, *self._closers):
            try:
                await close()
            except Exception as e:
                logger.warning("Error during cleanup", extra={"error": str(e)})


def build_orchestrator(settings: Settings) -> EnhancementOrchestrator:
    """Wire real collaborators from settings.

    Raises:
        ConfigurationError: A required credential is missing.
    """

    # Both credentials are checked before any network client is opened.
    require_openai_key(settings)
    search = get_search_engine_factory(settings)
    generator = OpenAITextGenerator(settings)
    ranker = RelevanceRanker()
    pool = AcquisitionPool()
    extractor = ContentExtractor(
        pool,
        BehaviorSimulator(),
        headless=settings.browser_headless,
        proxy=settings.browser_proxy,
        session_max_age_s=settings.session_max_age_s,
    )
    enhancer = PromptEnhancer(
        generator,
        model=settings.openai_model,
        policy=AcceptancePolicy(
            min_improvement=settings.acceptance_min_improvement,
            min_length_delta=settings.acceptance_min_length_delta,
        ),
    )
    cache = None
    if settings.cache_enabled:
        cache = ResultCache(
            ttl_s=settings.cache_ttl_s,
            categories_ttl_s=settings.cache_categories_ttl_s,
            max_size=settings.cache_max_size,
        )
    return EnhancementOrchestrator(
        categorizer=TaskCategorizer(generator, model=settings.openai_model),
        planner=QueryPlanner(generator, ranker=ranker, model=settings.openai_model),
        search=search,
        extractor=extractor,
        enhancer=enhancer,
        ranker=ranker,
        cache=cache,
        scrape_options=ScrapingOptions(
            timeout_s=settings.scrape_timeout_s,
            min_word_count=settings.scrape_min_word_count,
            max_content_length=settings.scrape_max_content_length,
        ),
        closers=(pool.aclose, generator.aclose),
    )


def options_from_settings(settings: Settings, **overrides: Any) -> EnhancementOptions:
    """Default request options taken from settings; keyword overrides win."""

    values: dict[str, Any] = {
        "max_search_results": settings.max_search_results,
        "max_scraped_content": settings.scrape_max_urls,
        "max_iterations": settings.enhancement_max_iterations,
        "cost_limit": settings.enhancement_cost_limit,
        "strategies": tuple(settings.enhancement_strategies),
        "quality_threshold": settings.enhancement_quality_threshold,
        "use_cache": settings.cache_enabled,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return EnhancementOptions(**values)
