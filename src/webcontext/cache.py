"""In-process TTL cache for categorisations, LLM responses and enhancement results.

Reads hand back the stored object itself, not a copy.
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Sequence

from webcontext.logging import get_logger
from webcontext.models.category import TaskCategory
from webcontext.models.enhancement import EnhancementResult

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """A stored value. ``timestamp`` is epoch milliseconds, ``ttl`` seconds."""

    key: str
    value: Any
    timestamp: float
    ttl: float
    hit_count: int = 0

    def expired(self, now_ms: float) -> bool:
        return now_ms - self.timestamp > self.ttl * 1000


def prompt_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


class ResultCache:
    """Keyed TTL cache with hit accounting."""

    def __init__(
        self,
        *,
        ttl_s: float = 3600.0,
        categories_ttl_s: float | None = None,
        max_size: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_s = ttl_s
        self.categories_ttl_s = categories_ttl_s or ttl_s
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def _now_ms(self) -> float:
        return self._clock() * 1000

    # Keys

    @staticmethod
    def categories_key(prompt: str) -> str:
        return f"categories:{prompt_hash(prompt)}"

    @staticmethod
    def enhancement_key(prompt: str) -> str:
        return f"enhancement:{prompt_hash(prompt)}"

    @staticmethod
    def response_key(prompt: str, model: str) -> str:
        return f"response:{prompt_hash(prompt)}:{model}"

    # Generic access

    def set(self, key: str, value: Any, ttl_s: float | None = None) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            self.resize(self.max_size - 1)
        self._entries[key] = CacheEntry(
            key=key, value=value, timestamp=self._now_ms(), ttl=ttl_s or self.ttl_s
        )
        logger.debug("Cache set", extra={"key": key})

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is not None and entry.expired(self._now_ms()):
            logger.debug("Cache entry expired", extra={"key": key})
            del self._entries[key]
            entry = None

        if entry is None:
            self._misses += 1
            logger.debug("Cache miss", extra={"key": key})
            return None

        entry.hit_count += 1
        self._hits += 1
        logger.debug("Cache hit", extra={"key": key})
        return entry.value

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        logger.info("Cache cleared")

    # Typed helpers

    def cache_categories(self, prompt: str, categories: Sequence[TaskCategory]) -> None:
        self.set(self.categories_key(prompt), tuple(categories), self.categories_ttl_s)

    def get_cached_categories(self, prompt: str) -> tuple[TaskCategory, ...] | None:
        return self.get(self.categories_key(prompt))

    def cache_enhancement(self, prompt: str, result: EnhancementResult) -> None:
        self.set(self.enhancement_key(prompt), result)

    def get_cached_enhancement(self, prompt: str) -> EnhancementResult | None:
        return self.get(self.enhancement_key(prompt))

    def cache_response(self, prompt: str, model: str, response: Any) -> None:
        self.set(self.response_key(prompt, model), response)

    def get_cached_response(self, prompt: str, model: str) -> Any | None:
        return self.get(self.response_key(prompt, model))

    # Maintenance

    def prune(self) -> int:
        """Drop expired entries; returns how many were removed."""

        now = self._now_ms()
        expired = [k for k, e in self._entries.items() if e.expired(now)]
        for key in expired:
            del self._entries[key]
        logger.info("Cache pruned", extra={"removed": len(expired), "remaining": len(self._entries)})
        return len(expired)

    def resize(self, max_size: int) -> int:
        """Evict lowest ``timestamp + hit_count`` entries until at most ``max_size`` remain."""

        excess = len(self._entries) - max_size
        if excess <= 0:
            return 0
        victims = sorted(self._entries.values(), key=lambda e: e.timestamp + e.hit_count)[:excess]
        for entry in victims:
            del self._entries[entry.key]
        logger.info(
            "Cache resized",
            extra={"removed": len(victims), "new_size": len(self._entries), "max_size": max_size},
        )
        return len(victims)

    # Stats

    def get_stats(self) -> dict[str, float | int]:
        keys = len(self._entries)
        total = self._hits + self._misses
        hit_rate = (self._hits / total) * 100 if total else 0.0
        return {
            "keys": keys,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(hit_rate, 2),
            "size": keys,
        }

    def get_detailed_stats(self, top: int = 10) -> dict[str, Any]:
        now = self._now_ms()
        top_keys = sorted(
            (
                {"key": e.key, "hits": e.hit_count, "age_ms": int(now - e.timestamp)}
                for e in self._entries.values()
            ),
            key=lambda item: item["hits"],
            reverse=True,
        )[:top]
        memory = sum(len(k) + len(_rough_json(e.value)) for k, e in self._entries.items())
        return {"basic": self.get_stats(), "top_keys": top_keys, "memory_usage": memory}

    # Persistence

    def export_cache(self) -> dict[str, dict[str, Any]]:
        return {k: asdict(e) for k, e in self._entries.items()}

    def import_cache(self, data: dict[str, Any]) -> int:
        imported = 0
        for key, raw in data.items():
            if not isinstance(raw, dict) or "value" not in raw:
                continue
            self._entries[key] = CacheEntry(
                key=key,
                value=raw["value"],
                timestamp=float(raw.get("timestamp") or self._now_ms()),
                ttl=float(raw.get("ttl") or self.ttl_s),
                hit_count=int(raw.get("hit_count") or 0),
            )
            imported += 1
        logger.info("Cache imported", extra={"entries": imported})
        return imported


def _rough_json(value: Any) -> str:
    if hasattr(value, "model_dump_json"):
        return value.model_dump_json()
    return json.dumps(value, default=str)
