"""Tests for the enhancement pipeline."""

from __future__ import annotations

import random
from dataclasses import dataclass, field

import pytest
from fakes import LINUX_X64, FakeClock, FakeGenerator, FakeLauncher, Recorder, words_html
from pydantic import ValidationError

from webcontext.browser.pool import AcquisitionPool
from webcontext.cache import ResultCache
from webcontext.config import Settings
from webcontext.errors import ConfigurationError
from webcontext.enhancement import EnhancementOptions, PromptEnhancer
from webcontext.logging import NO_RUN, current_run_id
from webcontext.models import ScrapedContent, SearchResult
from webcontext.orchestrator import service
from webcontext.orchestrator.service import (
    EnhancementOrchestrator,
    build_contextual_prompt,
    build_orchestrator,
    options_from_settings,
)
from webcontext.planning import QueryPlanner, TaskCategorizer
from webcontext.scraping import ContentExtractor

PROMPT = "Build a production FastAPI server with WebSockets"
URL_DOCS = "https://fastapi.tiangolo.com/advanced/websockets/"
URL_STUB = "https://example.com/stub"
URL_BLOG = "https://blog.example.com/fastapi-websockets"
PLANNED = "FastAPI WebSockets production deployment guide\nFastAPI server best practices documentation"
ENHANCED = (
    "Build a production-ready FastAPI server with WebSocket endpoints.\n"
    "- Must handle reconnects\n"
    "- Include authentication"
)
PAGES: dict[str, str | Exception] = {
    URL_DOCS: words_html("WebSockets - FastAPI", 300),
    URL_STUB: words_html("Stub", 10),
    URL_BLOG: words_html("FastAPI WebSockets in production", 150),
}


class FakeSearch:
    def __init__(self, urls: list[str], *, healthy: bool = True, health_error: bool = False) -> None:
        self.urls = urls
        self.healthy = healthy
        self.health_error = health_error
        self.calls: list[tuple[str, int]] = []
        self.closed = 0

    async def search_with_fallback(self, query: str, max_results: int = 10) -> list[SearchResult]:
        self.calls.append((query, max_results))
        return [
            SearchResult(url=url, title=url, search_engine="brave", ranking=i)
            for i, url in enumerate(self.urls, start=1)
        ]

    async def health_check_all(self) -> dict[str, bool]:
        if self.health_error:
            raise RuntimeError("registry broken")
        return {"brave": self.healthy}

    async def aclose(self) -> None:
        self.closed += 1


class ExplodingExtractor(ContentExtractor):
    async def scrape_urls(self, urls, options=None):  # type: ignore[override]
        raise RuntimeError("browser crashed")


class ExplodingCategorizer(TaskCategorizer):
    async def categorize(self, prompt: str):  # type: ignore[override]
        raise RuntimeError("tagging broken")


class ExplodingEnhancer(PromptEnhancer):
    async def enhance_prompt(self, prompt, categories, options=None):  # type: ignore[override]
        raise RuntimeError("enhancer broken")


@dataclass
class Harness:
    orchestrator: EnhancementOrchestrator
    search: FakeSearch
    launcher: FakeLauncher
    tagger: FakeGenerator
    planner: FakeGenerator
    writer: FakeGenerator
    closed: list[str] = field(default_factory=list)


def _harness(
    *,
    urls: list[str] | None = None,
    pages: dict[str, str | Exception] | None = None,
    tags: str = "coding",
    planned: str = PLANNED,
    cache: ResultCache | None = None,
    extractor_cls: type[ContentExtractor] = ContentExtractor,
    categorizer_cls: type[TaskCategorizer] = TaskCategorizer,
    enhancer_cls: type[PromptEnhancer] = PromptEnhancer,
    search: FakeSearch | None = None,
) -> Harness:
    launcher = FakeLauncher(PAGES if pages is None else pages)
    pool = AcquisitionPool(launcher, env=LINUX_X64, rng=random.Random(3))
    tagger, planner, writer = FakeGenerator(tags), FakeGenerator(planned), FakeGenerator(ENHANCED)
    search = search or FakeSearch([URL_DOCS, URL_STUB] if urls is None else urls)
    closed: list[str] = []

    async def close_pool() -> None:
        closed.append("pool")
        await pool.aclose()

    orchestrator = EnhancementOrchestrator(
        categorizer=categorizer_cls(tagger),
        planner=QueryPlanner(planner),
        search=search,
        extractor=extractor_cls(pool, sleep=Recorder(), rng=random.Random(5)),
        enhancer=enhancer_cls(writer),
        cache=cache,
        closers=(close_pool,),
        clock=FakeClock(),
    )
    return Harness(orchestrator, search, launcher, tagger, planner, writer, closed)


@pytest.mark.asyncio
async def test_pipeline_augments_prompt_with_scraped_context() -> None:
    """It should keep the rich page, drop the thin one and feed the excerpt to the enhancer."""

    h = _harness()

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert result.original_prompt == PROMPT
    assert result.enhanced_prompt == ENHANCED
    assert [c.name for c in result.categories] == ["Code Generation & Debugging"]
    assert len(result.search_queries) == 2
    assert [q.priority for q in result.search_queries] == [1, 2]

    assert [c.url for c in result.web_context] == [URL_DOCS]
    assert result.web_context[0].relevance_score > 0

    enhancer_input = h.writer.prompts[0]
    assert "**Source 1: WebSockets - FastAPI**" in enhancer_input
    assert f"URL: {URL_DOCS}" in enhancer_input

    assert [max_results for _, max_results in h.search.calls] == [5, 5]
    assert result.processing_metadata.urls_processed == 2
    assert result.processing_metadata.success_rate == 0.5
    assert all(b.closed for b in h.launcher.browsers)


@pytest.mark.asyncio
async def test_success_rate_counts_retained_pages() -> None:
    h = _harness(urls=[URL_DOCS, URL_STUB, URL_BLOG])

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert result.processing_metadata.urls_processed == 3
    assert result.processing_metadata.success_rate == 0.6667
    assert [c.url for c in result.web_context] == [URL_BLOG, URL_DOCS]


@pytest.mark.asyncio
async def test_scrape_cap_follows_options() -> None:
    h = _harness(urls=[URL_DOCS, URL_STUB, URL_BLOG])

    result = await h.orchestrator.enhance_with_web_context(
        PROMPT, EnhancementOptions(max_scraped_content=1)
    )

    assert result.processing_metadata.urls_processed == 1
    assert len(h.launcher.browsers) == 1


@pytest.mark.asyncio
async def test_cached_result_is_returned_without_rerunning() -> None:
    cache = ResultCache(clock=FakeClock())
    h = _harness(cache=cache)

    first = await h.orchestrator.enhance_with_web_context(PROMPT)
    second = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert second is first
    assert len(h.planner.prompts) == 1
    assert len(h.tagger.prompts) == 1

    cache.clear()
    await h.orchestrator.enhance_with_web_context(PROMPT)
    assert len(h.planner.prompts) == 2


@pytest.mark.asyncio
async def test_cache_can_be_bypassed_per_request() -> None:
    cache = ResultCache(clock=FakeClock())
    h = _harness(cache=cache)
    opts = EnhancementOptions(use_cache=False)

    await h.orchestrator.enhance_with_web_context(PROMPT, opts)
    await h.orchestrator.enhance_with_web_context(PROMPT, opts)

    assert len(h.planner.prompts) == 2
    assert cache.get_stats()["keys"] == 0


@pytest.mark.asyncio
async def test_cached_result_cannot_be_changed_by_a_caller() -> None:
    """It should hand out read-only results so one caller cannot corrupt the cache."""

    cache = ResultCache(clock=FakeClock())
    h = _harness(cache=cache)

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    with pytest.raises(AttributeError):
        result.web_context.append(result.web_context[0])  # type: ignore[attr-defined]
    with pytest.raises(ValidationError):
        result.web_context[0].title = "changed"  # type: ignore[misc]
    with pytest.raises(ValidationError):
        result.categories[0].confidence = 0.0  # type: ignore[misc]
    with pytest.raises(ValidationError):
        result.enhanced_prompt = "changed"  # type: ignore[misc]

    again = await h.orchestrator.enhance_with_web_context(PROMPT)
    assert again is result
    assert [c.title for c in again.web_context] == ["WebSockets - FastAPI"]
    assert again.enhanced_prompt == ENHANCED


@pytest.mark.asyncio
async def test_enhancer_fallback_is_not_cached() -> None:
    """It should rerun the pipeline next time when the enhancer returned the original prompt."""

    cache = ResultCache(clock=FakeClock())
    h = _harness(cache=cache, enhancer_cls=ExplodingEnhancer)

    first = await h.orchestrator.enhance_with_web_context(PROMPT)
    second = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert first.enhanced_prompt == PROMPT
    assert second is not first
    assert cache.get_cached_enhancement(PROMPT) is None
    assert len(h.planner.prompts) == 2


@pytest.mark.asyncio
async def test_search_outage_is_not_cached() -> None:
    """It should not cache a run whose web search came back empty."""

    cache = ResultCache(clock=FakeClock())
    h = _harness(urls=[], cache=cache)

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert result.enhanced_prompt == ENHANCED
    assert result.web_context == ()
    assert cache.get_cached_enhancement(PROMPT) is None


@pytest.mark.asyncio
async def test_planning_failure_is_not_cached() -> None:
    cache = ResultCache(clock=FakeClock())
    h = _harness(cache=cache, categorizer_cls=ExplodingCategorizer)

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert result.categories == ()
    assert cache.get_cached_enhancement(PROMPT) is None


@pytest.mark.asyncio
async def test_search_disabled_result_is_cached() -> None:
    cache = ResultCache(clock=FakeClock())
    h = _harness(cache=cache)

    result = await h.orchestrator.enhance_with_web_context(
        PROMPT, EnhancementOptions(enable_web_search=False)
    )

    assert cache.get_cached_enhancement(PROMPT) is result


@pytest.mark.asyncio
async def test_each_run_reports_its_own_id() -> None:
    h = _harness()

    first = await h.orchestrator.enhance_with_web_context(PROMPT)
    second = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert len(first.processing_metadata.run_id) == 12
    assert first.processing_metadata.run_id != second.processing_metadata.run_id
    assert current_run_id() == NO_RUN


@pytest.mark.asyncio
async def test_uncategorised_prompt_searches_with_prompt_keywords() -> None:
    h = _harness(tags="")

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert result.categories == ()
    assert h.planner.prompts == []
    first_query = h.search.calls[0][0]
    assert first_query.startswith("production fastapi websockets ")
    assert first_query.endswith(" latest")
    assert result.enhanced_prompt.startswith(PROMPT)
    assert "**Additional Context from Recent Sources:**" in result.enhanced_prompt
    assert h.writer.prompts == []


@pytest.mark.asyncio
async def test_web_search_disabled_skips_search_and_scrape() -> None:
    h = _harness()

    result = await h.orchestrator.enhance_with_web_context(
        PROMPT, EnhancementOptions(enable_web_search=False)
    )

    assert h.search.calls == []
    assert h.launcher.browsers == []
    assert result.web_context == ()
    assert result.processing_metadata.urls_processed == 0
    assert result.processing_metadata.success_rate == 0.0
    assert result.enhanced_prompt == ENHANCED
    assert f'Original prompt: "{PROMPT}"' in h.writer.prompts[0]


@pytest.mark.asyncio
async def test_no_search_results_still_enhances() -> None:
    h = _harness(urls=[])

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert h.launcher.browsers == []
    assert result.web_context == ()
    assert result.enhanced_prompt == ENHANCED


@pytest.mark.asyncio
async def test_pipeline_failure_falls_back_to_categorisation_only() -> None:
    cache = ResultCache(clock=FakeClock())
    h = _harness(extractor_cls=ExplodingExtractor, cache=cache)

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert result.original_prompt == PROMPT
    assert result.enhanced_prompt == ENHANCED
    assert [c.name for c in result.categories] == ["Code Generation & Debugging"]
    assert result.web_context == ()
    assert result.search_queries == ()
    assert f'Original prompt: "{PROMPT}"' in h.writer.prompts[0]
    assert cache.get_cached_enhancement(PROMPT) is None


@pytest.mark.asyncio
async def test_total_failure_returns_original_prompt() -> None:
    h = _harness(extractor_cls=ExplodingExtractor, categorizer_cls=ExplodingCategorizer)

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert result.original_prompt == PROMPT
    assert result.enhanced_prompt == PROMPT
    assert result.categories == ()
    assert result.processing_metadata.total_time == 0
    assert result.processing_metadata.urls_processed == 0
    assert len(result.processing_metadata.run_id) == 12


@pytest.mark.asyncio
async def test_enhancer_failure_returns_original_prompt() -> None:
    """It should return the caller's prompt, not the context-augmented one."""

    h = _harness(enhancer_cls=ExplodingEnhancer)

    result = await h.orchestrator.enhance_with_web_context(PROMPT)

    assert result.enhanced_prompt == PROMPT
    assert len(result.web_context) == 1


@pytest.mark.asyncio
async def test_health_check_statuses() -> None:
    pages = dict(PAGES)
    pages["https://example.com"] = words_html("Example Domain", 20)
    healthy = await _harness(pages=pages).orchestrator.health_check()
    assert healthy == {
        "status": "healthy",
        "components": {"search_engines": True, "content_scraper": True, "task_categorizer": True},
    }

    degraded = await _harness(search=FakeSearch([], healthy=False)).orchestrator.health_check()
    assert degraded["status"] == "degraded"
    assert degraded["components"]["search_engines"] is False
    assert degraded["components"]["content_scraper"] is False

    broken = await _harness(search=FakeSearch([], health_error=True)).orchestrator.health_check()
    assert broken["status"] == "unhealthy"


@pytest.mark.asyncio
async def test_cleanup_is_repeatable_and_tolerates_errors() -> None:
    h = _harness()

    async def broken() -> None:
        raise RuntimeError("close failed")

    h.orchestrator._closers.append(broken)

    await h.orchestrator.cleanup()
    await h.orchestrator.cleanup()

    assert h.search.closed == 2
    assert h.closed == ["pool", "pool"]
    assert h.launcher.closed


def test_build_contextual_prompt_format() -> None:
    page = ScrapedContent(url=URL_DOCS, title="WebSockets", content="x" * 600, word_count=1)

    text = build_contextual_prompt("Explain sockets", [page])

    assert text == "\n".join(
        [
            "Explain sockets",
            "",
            "**Additional Context from Recent Sources:**",
            "",
            "**Source 1: WebSockets**",
            f"URL: {URL_DOCS}",
            f"Content: {'x' * 500}...",
            "",
            "Please use this additional context to provide a more comprehensive and up-to-date response.",
        ]
    )
    assert build_contextual_prompt("Explain sockets", []) == "Explain sockets"


def test_options_from_settings_ignores_unset_overrides() -> None:
    settings = Settings(enhancement_max_iterations=4, cache_enabled=False)

    opts = options_from_settings(settings, max_iterations=None, enable_web_search=False)

    assert opts.max_iterations == 4
    assert opts.use_cache is False
    assert opts.enable_web_search is False
    assert opts.strategies == ("clarity", "specificity", "context_enrichment")


def test_build_orchestrator_checks_credentials_before_opening_clients(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """It should fail on a missing key before any network client is constructed."""

    generators: list[Settings] = []
    monkeypatch.setattr(service, "OpenAITextGenerator", generators.append)
    with pytest.raises(ConfigurationError):
        build_orchestrator(Settings(brave_api_key=None, openai_api_key="sk-test"))
    assert generators == []

    factories: list[Settings] = []
    monkeypatch.setattr(service, "get_search_engine_factory", factories.append)
    with pytest.raises(ConfigurationError):
        build_orchestrator(Settings(brave_api_key="brave-test", openai_api_key=None))
    assert factories == []
