"""Browser session pool.

Sessions are launched through an ordered list of :class:`LaunchStrategy` entries and
tracked by id until closed. Prefer :meth:`AcquisitionPool.session`, which closes the
browser on every exit path.
"""

from __future__ import annotations

import contextlib
import os
import random
import secrets
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Protocol, Sequence

from playwright.async_api import async_playwright

from webcontext.browser.strategies import (
    DEFAULT_STRATEGIES,
    EnvironmentInfo,
    LaunchStrategy,
    detect_environment,
    select_strategies,
)
from webcontext.errors import AcquisitionFailure
from webcontext.logging import get_logger

logger = get_logger(__name__)

DEFAULT_USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
)

PAGE_VIEWPORT = {"width": 1366, "height": 768}
PAGE_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}
WEBDRIVER_INIT_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"


@dataclass(frozen=True)
class BrowserConfig:
    """Per-session launch options."""

    headless: bool = True
    viewport_width: int = 1366
    viewport_height: int = 768
    timeout_s: float = 30.0
    proxy: str | None = None
    user_agent: str | None = None


@dataclass
class AcquisitionSession:
    """Bookkeeping for one live browser."""

    session_id: str
    user_agent: str
    strategy: str
    proxy: str | None = None
    owner: str | None = None
    requests_count: int = 0
    last_request_time: float = 0.0
    started_at: float = 0.0


class BrowserLauncher(Protocol):
    """Starts browsers for a strategy."""

    async def launch(self, strategy: LaunchStrategy, config: BrowserConfig) -> Any:
        """Launch a browser or raise."""

    async def aclose(self) -> None:
        """Release the launcher's driver."""


class PlaywrightLauncher:
    """Launch Chromium through Playwright's async API."""

    def __init__(self) -> None:
        self._playwright: Any = None

    async def _driver(self) -> Any:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return self._playwright

    async def launch(self, strategy: LaunchStrategy, config: BrowserConfig) -> Any:
        args = list(strategy.args)
        if config.proxy:
            args.append(f"--proxy-server={config.proxy}")

        options: dict[str, Any] = {
            "headless": strategy.headless and config.headless,
            "args": args,
            "timeout": config.timeout_s * 1000,
        }
        if strategy.executable_path:
            if os.path.exists(strategy.executable_path):
                options["executable_path"] = strategy.executable_path
            else:
                logger.debug(
                    "Custom executable not found, using bundled Chromium",
                    extra={"path": strategy.executable_path},
                )

        driver = await self._driver()
        return await driver.chromium.launch(**options)

    async def aclose(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


class AcquisitionPool:
    """Creates, tracks and releases browser sessions."""

    def __init__(
        self,
        launcher: BrowserLauncher | None = None,
        *,
        env: EnvironmentInfo | None = None,
        strategies: Sequence[LaunchStrategy] = DEFAULT_STRATEGIES,
        user_agents: Sequence[str] = DEFAULT_USER_AGENTS,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self._launcher = launcher or PlaywrightLauncher()
        self._env = env or detect_environment()
        self._strategies = select_strategies(self._env, strategies)
        self._user_agents = list(user_agents) or list(DEFAULT_USER_AGENTS)
        self._clock = clock
        self._rng = rng or random.Random()
        self._browsers: dict[str, Any] = {}
        self._sessions: dict[str, AcquisitionSession] = {}

        logger.info(
            "Browser pool initialized",
            extra={
                "platform": self._env.platform,
                "arch": self._env.arch,
                "strategies": len(self._strategies),
            },
        )

    @property
    def environment(self) -> EnvironmentInfo:
        return self._env

    @property
    def strategies(self) -> list[LaunchStrategy]:
        return list(self._strategies)

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def _random_user_agent(self) -> str:
        return self._rng.choice(self._user_agents)

    async def create_session(
        self, config: BrowserConfig, *, owner: str | None = None
    ) -> tuple[Any, str]:
        """Launch a browser with the first strategy that works.

        ``owner`` tags the session so sweeps can be limited to one caller.

        Raises:
            AcquisitionFailure: Every applicable strategy failed.
        """

        last_err: Exception | None = None
        for strategy in self._strategies:
            try:
                logger.debug("Attempting launch strategy", extra={"strategy": strategy.name})
                browser = await self._launcher.launch(strategy, config)
            except Exception as e:
                logger.debug(
                    "Launch strategy failed",
                    extra={"strategy": strategy.name, "error": str(e)},
                )
                last_err = e
                continue

            session_id = secrets.token_hex(12)
            now = self._clock()
            session = AcquisitionSession(
                session_id=session_id,
                user_agent=config.user_agent or self._random_user_agent(),
                strategy=strategy.name,
                proxy=config.proxy,
                owner=owner,
                last_request_time=now,
                started_at=now,
            )
            self._browsers[session_id] = browser
            self._sessions[session_id] = session
            logger.info(
                "Browser session created",
                extra={"session_id": session_id, "strategy": strategy.name, "headless": config.headless},
            )
            return browser, session_id

        n = len(self._strategies)
        last_msg = str(last_err) if last_err is not None else "Unknown error"
        logger.error(
            "All browser strategies failed",
            extra={"platform": self._env.platform, "arch": self._env.arch, "strategies_attempted": n},
        )
        raise AcquisitionFailure(
            f"Browser creation failed on {self._env.platform}/{self._env.arch}. "
            f"All {n} strategies attempted. Last error: {last_msg}",
            platform=self._env.platform,
            arch=self._env.arch,
            strategies_attempted=n,
        ) from last_err

    async def setup_session(self, browser: Any, session_id: str) -> Any:
        """Open a page configured with the session's identity.

        Raises:
            AcquisitionFailure: Unknown session or page setup failed.
        """

        session = self._sessions.get(session_id)
        if session is None:
            raise AcquisitionFailure(f"Session {session_id} not found")

        try:
            context = await browser.new_context(
                user_agent=session.user_agent,
                viewport=dict(PAGE_VIEWPORT),
                extra_http_headers=dict(PAGE_HEADERS),
            )
            # The init script breaks page loads under ARM64 macOS Chromium.
            if not self._env.is_arm64_mac:
                try:
                    await context.add_init_script(WEBDRIVER_INIT_SCRIPT)
                except Exception as e:
                    logger.debug("Could not add webdriver init script", extra={"error": str(e)})
            page = await context.new_page()
        except Exception as e:
            logger.error("Failed to setup page", extra={"session_id": session_id, "error": str(e)})
            raise AcquisitionFailure(f"Page setup failed: {e}") from e

        logger.debug("Page setup completed", extra={"session_id": session_id})
        return page

    async def close_session(self, session_id: str) -> None:
        """Close the browser and forget the session. Safe to call twice."""

        browser = self._browsers.pop(session_id, None)
        session = self._sessions.pop(session_id, None)
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.error("Error closing browser", extra={"session_id": session_id, "error": str(e)})
        if session is not None:
            logger.info(
                "Session ended",
                extra={
                    "session_id": session_id,
                    "duration_s": round(self._clock() - session.started_at, 3),
                    "request_count": session.requests_count,
                },
            )

    @contextlib.asynccontextmanager
    async def session(
        self, config: BrowserConfig, *, owner: str | None = None
    ) -> AsyncIterator[tuple[Any, str]]:
        """Scoped session: ``async with pool.session(cfg) as (browser, session_id): ...``."""

        browser, session_id = await self.create_session(config, owner=owner)
        try:
            yield browser, session_id
        finally:
            await self.close_session(session_id)

    def increment_request_count(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.requests_count += 1
            session.last_request_time = self._clock()

    def get_session_info(self, session_id: str) -> AcquisitionSession | None:
        return self._sessions.get(session_id)

    def _owned_by(self, owner: str | None) -> list[str]:
        return [sid for sid, s in self._sessions.items() if owner is None or s.owner == owner]

    async def cleanup_old_sessions(self, max_age_s: float = 300.0, *, owner: str | None = None) -> int:
        """Close sessions idle for longer than ``max_age_s``; returns how many.

        With ``owner`` set only that caller's sessions are considered.
        """

        now = self._clock()
        stale = [
            sid for sid in self._owned_by(owner) if now - self._sessions[sid].last_request_time > max_age_s
        ]
        for sid in stale:
            await self.close_session(sid)
        if stale:
            logger.info("Old sessions cleaned up", extra={"count": len(stale), "owner": owner})
        return len(stale)

    async def close_all(self, *, owner: str | None = None) -> None:
        for sid in self._owned_by(owner):
            await self.close_session(sid)

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy" if self._strategies else "unhealthy",
            "environment": self._env.as_dict(),
            "strategies": len(self._strategies),
            "active_sessions": len(self._sessions),
        }

    async def aclose(self) -> None:
        await self.close_all()
        await self._launcher.aclose()
