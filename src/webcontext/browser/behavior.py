"""Humanlike page interaction: pauses, mouse movement, scrolling, typing."""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Literal

from webcontext.logging import get_logger

logger = get_logger(__name__)

Action = Literal["search", "scroll", "click", "read"]


class BehaviorSimulator:
    """Drives a page the way a person would. Failures are logged, never raised."""

    def __init__(
        self,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def simulate(self, page: Any, action: Action) -> None:
        handlers = {
            "search": self._search,
            "scroll": self._scroll,
            "click": self._click,
            "read": self._read,
        }
        handler = handlers.get(action)
        if handler is None:
            logger.warning("Unknown behavior action", extra={"action": action})
            return
        try:
            await handler(page)
        except Exception as e:
            logger.warning("Failed to simulate behavior", extra={"action": action, "error": str(e)})

    async def random_delay(self, min_s: float, max_s: float) -> None:
        await self._sleep(self._rng.uniform(min_s, max_s))

    async def _search(self, page: Any) -> None:
        await self._mouse_move(page)
        await self.random_delay(0.2, 0.5)
        # hesitation before typing
        await self.random_delay(0.3, 0.8)

    async def _click(self, page: Any) -> None:
        await self._mouse_move(page)
        await self.random_delay(0.1, 0.3)

    async def _scroll(self, page: Any) -> None:
        scroll_height = await page.evaluate("() => document.body.scrollHeight")
        viewport_height = await page.evaluate("() => window.innerHeight")
        if scroll_height <= viewport_height:
            logger.debug("Page too short for scrolling")
            return

        for _ in range(self._rng.randint(1, 4)):
            current_y = await page.evaluate("() => window.scrollY")
            target_y = min(current_y + self._rng.uniform(100, 400), scroll_height - viewport_height)
            await page.evaluate("(y) => window.scrollTo({top: y, behavior: 'smooth'})", target_y)
            await self.random_delay(0.8, 2.0)

    async def _read(self, page: Any) -> None:
        # 2-5 s of dwell, one small scroll per second
        reading_time_s = self._rng.uniform(2.0, 5.0)
        for _ in range(int(reading_time_s)):
            await self.random_delay(0.8, 1.2)
            await page.evaluate("(dy) => window.scrollBy(0, dy)", self._rng.uniform(10, 60))

    async def _mouse_move(self, page: Any) -> None:
        viewport = page.viewport_size
        if not viewport:
            return
        # stay within 10-90% of the viewport
        x = self._rng.uniform(0.1, 0.9) * viewport["width"]
        y = self._rng.uniform(0.1, 0.9) * viewport["height"]
        await page.mouse.move(x, y)

    async def simulate_typing(self, page: Any, text: str, selector: str | None = None) -> None:
        try:
            if selector:
                await page.focus(selector)
                await self.random_delay(0.2, 0.5)
            for char in text:
                await page.keyboard.type(char, delay=self._rng.uniform(50, 150))
        except Exception as e:
            logger.warning("Error during typing simulation", extra={"error": str(e)})

    async def simulate_page_load(self, page: Any) -> None:
        try:
            await self.random_delay(1.0, 2.0)
            await self._mouse_move(page)
            await self.random_delay(0.5, 1.0)
            await self._scroll(page)
        except Exception as e:
            logger.warning("Error during page load simulation", extra={"error": str(e)})
