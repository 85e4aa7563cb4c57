"""Sequential, humanlike page scraping."""

from __future__ import annotations

import asyncio
import random
import secrets
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Sequence
from urllib.parse import urlsplit

from webcontext.browser.behavior import BehaviorSimulator
from webcontext.browser.pool import AcquisitionPool, BrowserConfig
from webcontext.errors import ContentQualityError
from webcontext.logging import get_logger
from webcontext.models.content import ContentMetadata, ScrapedContent
from webcontext.scraping.html import extract_page_content

logger = get_logger(__name__)

MAX_URLS = 3

SCRAPE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "DNT": "1",
}


@dataclass(frozen=True)
class ScrapingOptions:
    timeout_s: float = 30.0
    min_word_count: int = 50
    max_content_length: int = 10_000


def is_valid_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


class ContentExtractor:
    """Visit URLs one at a time in a fresh browser session and extract readable text."""

    def __init__(
        self,
        pool: AcquisitionPool,
        behavior: BehaviorSimulator | None = None,
        *,
        headless: bool = True,
        proxy: str | None = None,
        session_max_age_s: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._pool = pool
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._behavior = behavior or BehaviorSimulator(sleep=sleep, rng=self._rng)
        self._headless = headless
        self._proxy = proxy
        self._session_max_age_s = session_max_age_s

    @property
    def pool(self) -> AcquisitionPool:
        return self._pool

    async def scrape_urls(
        self, urls: Sequence[str], options: ScrapingOptions | None = None
    ) -> list[ScrapedContent]:
        """Scrape up to three URLs. Pages that fail or are too short are skipped."""

        opts = options or ScrapingOptions()
        # Sessions are tagged per call; the idle sweep never touches another call's sessions.
        scope = secrets.token_hex(6)

        targets = list(urls)[:MAX_URLS]
        results: list[ScrapedContent] = []
        logger.info("Starting scrape", extra={"url_count": len(targets), "min_word_count": opts.min_word_count})

        for i, url in enumerate(targets):
            if self._session_max_age_s is not None:
                await self._pool.cleanup_old_sessions(self._session_max_age_s, owner=scope)
            try:
                content = await self._scrape_url(url, opts, scope)
                results.append(content)
                logger.debug("Scraped", extra={"url": url, "word_count": content.word_count})
            except ContentQualityError as e:
                logger.warning(
                    "Scraped content too short or invalid",
                    extra={"url": url, "word_count": e.word_count, "reason": str(e)},
                )
            except Exception as e:
                logger.warning(
                    "Failed to scrape",
                    extra={"url": url, "error_type": type(e).__name__, "error": str(e)},
                )

            if i < len(targets) - 1:
                await self._sleep(self._rng.uniform(2.0, 5.0))

        logger.info(
            "Scraping completed",
            extra={"total_urls": len(targets), "successful": len(results)},
        )
        return results

    async def _scrape_url(self, url: str, opts: ScrapingOptions, owner: str | None = None) -> ScrapedContent:
        if not is_valid_url(url):
            raise ContentQualityError(f"Invalid URL: {url}")

        started = time.monotonic()
        config = BrowserConfig(headless=self._headless, timeout_s=opts.timeout_s, proxy=self._proxy)
        async with self._pool.session(config, owner=owner) as (browser, session_id):
            page = await self._pool.setup_session(browser, session_id)
            await page.set_extra_http_headers(SCRAPE_HEADERS)

            await self._sleep(self._rng.uniform(1.0, 3.0))
            await page.goto(url, wait_until="networkidle", timeout=opts.timeout_s * 1000)
            self._pool.increment_request_count(session_id)

            await self._sleep(1.0)
            await self._behavior.simulate(page, "read")
            html = await page.content()

        page_data = extract_page_content(html, url, opts.max_content_length)
        if not page_data.content or page_data.word_count < opts.min_word_count:
            raise ContentQualityError(
                f"Content below {opts.min_word_count} words", word_count=page_data.word_count
            )

        logger.debug(
            "URL scraped",
            extra={"url": url, "latency_ms": int((time.monotonic() - started) * 1000)},
        )
        return ScrapedContent(
            url=url,
            title=page_data.title,
            content=page_data.content,
            metadata=ContentMetadata(description=page_data.description, keywords=page_data.keywords),
            word_count=page_data.word_count,
        )

    async def test_scraping(self, url: str = "https://example.com") -> bool:
        """Self-test: scrape one known page with a low word threshold."""

        try:
            results = await self.scrape_urls([url], replace(ScrapingOptions(), min_word_count=10))
        except Exception as e:
            logger.error("Content scraping test failed", extra={"error": str(e)})
            return False
        success = len(results) > 0
        logger.info("Content scraping test completed", extra={"success": success})
        return success

    async def cleanup(self) -> None:
        try:
            await self._pool.close_all()
        except Exception as e:
            logger.warning("Error during content scraper cleanup", extra={"error": str(e)})
