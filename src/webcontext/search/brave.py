"""Brave Search API client."""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
from pydantic import ValidationError

from webcontext.errors import (
    ConfigurationError,
    RateLimitedError,
    SearchBackendError,
    TransientNetworkError,
)
from webcontext.logging import get_logger
from webcontext.models.search import SearchResult, SearchResultMetadata

logger = get_logger(__name__)

BRAVE_MAX_COUNT = 20
HEALTH_CHECK_QUERY = "test health check"


def _result_limit(max_results: int) -> int:
    return max(0, min(max_results, BRAVE_MAX_COUNT))


@dataclass
class RateLimitState:
    """Client-side pacing state. ``limit`` is requests per second."""

    limit: float = 1.0
    last_request_time: float | None = None

    @property
    def min_interval_s(self) -> float:
        return 1.0 / self.limit


class BraveSearchClient:
    """Async Brave web search client with pacing and 429 backoff.

    Notes:
        - The API key must be provided via settings (`WEBCONTEXT_BRAVE_API_KEY`).
        - ``max_retries`` counts delayed retries after the first request; only rate-limit
          responses are retried. Timeouts, transport errors and 5xx fail immediately.
        - One instance may be shared by concurrent pipelines; the pacing state is guarded
          by a lock.
    """

    name = "brave"

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = "https://api.search.brave.com/res/v1",
        timeout_s: float = 10.0,
        max_retries: int = 3,
        retry_delay_s: float = 1.0,
        rate_limit: float = 1.0,
        user_agent: str | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not api_key:
            raise ConfigurationError(
                "Missing WEBCONTEXT_BRAVE_API_KEY. Set it in environment variables or .env."
            )
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._retry_delay_s = retry_delay_s
        self._user_agent = user_agent
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))
        self._sleep = sleep
        self._clock = clock
        self._rate = RateLimitState(limit=rate_limit)
        self._rate_lock = asyncio.Lock()

        logger.info(
            "Brave search client initialized",
            extra={
                "base_url": self._base_url,
                "timeout_s": timeout_s,
                "max_retries": max_retries,
                "retry_delay_s": retry_delay_s,
            },
        )

    @property
    def rate_limit(self) -> RateLimitState:
        return self._rate

    async def _wait_for_rate_limit(self) -> None:
        async with self._rate_lock:
            last = self._rate.last_request_time
            if last is not None:
                wait_s = self._rate.min_interval_s - (self._clock() - last)
                if wait_s > 0:
                    logger.debug(
                        "Rate limit delay applied",
                        extra={"wait_s": round(wait_s, 3), "rate_limit": self._rate.limit},
                    )
                    await self._sleep(wait_s)
            self._rate.last_request_time = self._clock()

    def _parse_rate_limit(self, resp: httpx.Response) -> None:
        try:
            meta = resp.json().get("error", {}).get("meta", {})
        except (ValueError, AttributeError):
            logger.debug("Could not parse rate limit info from error response")
            return
        limit = meta.get("rate_limit") if isinstance(meta, dict) else None
        if isinstance(limit, (int, float)) and limit > 0:
            self._rate.limit = float(limit)
            logger.info(
                "Updated rate limit from API response",
                extra={
                    "rate_limit": limit,
                    "plan": meta.get("plan"),
                    "quota_current": meta.get("quota_current"),
                    "quota_limit": meta.get("quota_limit"),
                },
            )

    def _build_request(self, query: str, max_results: int) -> tuple[str, dict[str, str], dict[str, str]]:
        url = f"{self._base_url}/web/search"
        params = {
            "q": query,
            "count": str(_result_limit(max_results)),
            "result_filter": "web",
            "safesearch": "moderate",
            "search_lang": "en",
            "ui_lang": "en-US",
            "country": "us",
        }
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip",
            "X-Subscription-Token": self._api_key,
        }
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        return url, params, headers

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        """Search the web.

        Args:
            query: Search text.
            max_results: Maximum number of results (the API caps this at 20).

        Returns:
            Results in backend order.

        Raises:
            ConfigurationError: No API key.
            RateLimitedError: Still rate limited after all retries.
            TransientNetworkError: Timeout, transport error or 5xx.
            SearchBackendError: Any other non-2xx or a malformed body.
        """

        if not self._api_key:
            raise ConfigurationError("Brave Search API key is required")
        if _result_limit(max_results) == 0:
            logger.debug("Brave search skipped, no results requested", extra={"max_results": max_results})
            return []

        url, params, headers = self._build_request(query, max_results)
        started = time.monotonic()

        for attempt in range(self._max_retries + 1):
            await self._wait_for_rate_limit()
            try:
                resp = await self._client.get(url, params=params, headers=headers, timeout=self._timeout_s)
            except httpx.TimeoutException as e:
                raise TransientNetworkError(f"Brave search timed out: {e}") from e
            except httpx.RequestError as e:
                raise TransientNetworkError(f"Brave search transport error: {e}") from e

            status_code = resp.status_code
            if status_code == 429:
                self._parse_rate_limit(resp)
                if attempt >= self._max_retries:
                    break
                delay = self._retry_delay_s * (2**attempt) + random.uniform(0, 1)
                logger.warning(
                    "Brave search rate limited, retrying",
                    extra={
                        "attempt": attempt + 1,
                        "max_retries": self._max_retries,
                        "sleep_s": round(delay, 3),
                        "elapsed_ms": int((time.monotonic() - started) * 1000),
                    },
                )
                await self._sleep(delay)
                continue

            if status_code >= 500:
                raise TransientNetworkError(f"Brave search transient status={status_code}")
            if not resp.is_success:
                raise SearchBackendError(
                    f"Brave API request failed: {status_code} - {resp.text[:200]}",
                    status_code=status_code,
                )

            try:
                data = resp.json()
            except ValueError as e:
                raise SearchBackendError("Brave response is not valid JSON", status_code=status_code) from e

            results = self._parse_results(data, max_results)
            logger.info(
                "Brave search ok",
                extra={
                    "query_len": len(query),
                    "max_results": max_results,
                    "attempt": attempt + 1,
                    "result_count": len(results),
                    "latency_ms": int((time.monotonic() - started) * 1000),
                },
            )
            return results

        attempts = self._max_retries + 1
        logger.error(
            "Brave search failed: rate limited",
            extra={"query_len": len(query), "attempts": attempts},
        )
        raise RateLimitedError(f"Brave search still rate limited after {attempts} attempts", attempts=attempts)

    def _parse_results(self, data: Any, max_results: int) -> list[SearchResult]:
        if not isinstance(data, dict):
            raise SearchBackendError("Brave response not a JSON object")
        raw = (data.get("web") or {}).get("results") or []
        if not isinstance(raw, list):
            return []

        limit = _result_limit(max_results)
        results: list[SearchResult] = []
        for i, item in enumerate(raw[:limit], start=1):
            if not isinstance(item, dict) or not item.get("url") or not item.get("title"):
                logger.debug("Skipping invalid result", extra={"rank": i})
                continue

            metadata = None
            if any(item.get(k) is not None for k in ("published", "age", "language", "family_friendly")):
                metadata = SearchResultMetadata(
                    published=item.get("published"),
                    age=item.get("age"),
                    language=item.get("language"),
                    family_friendly=item.get("family_friendly"),
                )
            try:
                results.append(
                    SearchResult(
                        url=item["url"],
                        title=str(item["title"]).strip(),
                        snippet=str(item.get("description") or "").strip(),
                        search_engine=self.name,
                        ranking=i,
                        metadata=metadata,
                    )
                )
            except ValidationError:
                # Skip invalid URLs that cannot be parsed by Pydantic's HttpUrl
                logger.debug("Skipping result with invalid URL", extra={"url": item.get("url")})
                continue
        return results

    async def health_check(self) -> bool:
        """Canary search; true when at least one result comes back."""

        try:
            results = await self.search(HEALTH_CHECK_QUERY, max_results=1)
        except Exception as e:
            logger.warning("Brave health check failed", extra={"error": str(e)})
            return False
        healthy = len(results) > 0
        logger.info("Brave health check completed", extra={"healthy": healthy})
        return healthy

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
