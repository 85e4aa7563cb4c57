"""Tests for the result cache."""

from __future__ import annotations

import pytest
from fakes import FakeClock
from pydantic import ValidationError

from webcontext.cache import ResultCache, prompt_hash
from webcontext.models import EnhancementResult, TaskCategory


def test_stats_track_hits_and_misses() -> None:
    cache = ResultCache(clock=FakeClock())
    cache.set("a", 1)

    assert cache.get("a") == 1
    assert cache.get("b") is None

    assert cache.get_stats() == {"keys": 1, "hits": 1, "misses": 1, "hit_rate": 50.0, "size": 1}


def test_get_returns_stored_object() -> None:
    """It should hand back the stored object rather than a copy."""

    cache = ResultCache(clock=FakeClock())
    categories = (TaskCategory(name="Research & Information Synthesis", confidence=0.9),)
    cache.cache_categories("compare vector databases", categories)

    assert cache.get_cached_categories("compare vector databases") is categories


def test_cached_categories_are_read_only() -> None:
    """It should store categories as an immutable tuple."""

    cache = ResultCache(clock=FakeClock())
    cache.cache_categories("p", [TaskCategory(name="General Q&A")])

    cached = cache.get_cached_categories("p")
    assert isinstance(cached, tuple)
    with pytest.raises(ValidationError):
        cached[0].confidence = 0.1


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = ResultCache(ttl_s=10, clock=clock)
    cache.set("a", "value")

    clock.advance(10)
    assert cache.get("a") == "value"

    clock.advance(1)
    assert cache.get("a") is None
    assert cache.get_stats()["keys"] == 0


def test_categories_use_their_own_ttl() -> None:
    clock = FakeClock()
    cache = ResultCache(ttl_s=10, categories_ttl_s=100, clock=clock)
    cache.cache_categories("p", [TaskCategory(name="General Q&A")])
    cache.cache_enhancement("p", EnhancementResult(original_prompt="p", enhanced_prompt="p"))

    clock.advance(50)

    assert cache.get_cached_categories("p") is not None
    assert cache.get_cached_enhancement("p") is None


def test_responses_are_keyed_by_model() -> None:
    cache = ResultCache(clock=FakeClock())
    cache.cache_response("prompt", "model-a", {"content": "a"})

    assert cache.get_cached_response("prompt", "model-a") == {"content": "a"}
    assert cache.get_cached_response("prompt", "model-b") is None


def test_key_formats() -> None:
    digest = prompt_hash("hello")
    assert len(digest) == 16
    assert ResultCache.categories_key("hello") == f"categories:{digest}"
    assert ResultCache.enhancement_key("hello") == f"enhancement:{digest}"
    assert ResultCache.response_key("hello", "gpt") == f"response:{digest}:gpt"


def test_resize_evicts_oldest_and_least_used() -> None:
    clock = FakeClock()
    cache = ResultCache(clock=clock)
    for key in ("a", "b", "c"):
        cache.set(key, key)
        clock.advance(1)
    cache.get("c")

    assert cache.resize(1) == 2
    assert list(cache.export_cache()) == ["c"]
    assert cache.resize(5) == 0


def test_set_evicts_when_full() -> None:
    clock = FakeClock()
    cache = ResultCache(max_size=2, clock=clock)
    for key in ("a", "b", "c"):
        cache.set(key, key)
        clock.advance(1)

    assert sorted(cache.export_cache()) == ["b", "c"]

    cache.set("c", "updated")
    assert sorted(cache.export_cache()) == ["b", "c"]


def test_prune_drops_only_expired_entries() -> None:
    clock = FakeClock()
    cache = ResultCache(clock=clock)
    cache.set("short", 1, ttl_s=5)
    cache.set("long", 2)

    clock.advance(10)

    assert cache.prune() == 1
    assert list(cache.export_cache()) == ["long"]


def test_clear_resets_entries_and_counters() -> None:
    cache = ResultCache(clock=FakeClock())
    cache.set("a", 1)
    cache.get("a")
    cache.get("missing")

    cache.clear()

    assert cache.get_stats() == {"keys": 0, "hits": 0, "misses": 0, "hit_rate": 0.0, "size": 0}


def test_import_skips_invalid_entries() -> None:
    clock = FakeClock()
    cache = ResultCache(clock=clock)
    now_ms = clock() * 1000

    imported = cache.import_cache(
        {
            "good": {"value": [1, 2], "timestamp": now_ms, "ttl": 60, "hit_count": 3},
            "not-a-dict": "oops",
            "no-value": {"timestamp": now_ms},
        }
    )

    assert imported == 1
    assert cache.get("good") == [1, 2]
    assert cache.export_cache()["good"]["hit_count"] == 4


def test_detailed_stats_rank_keys_by_hits() -> None:
    cache = ResultCache(clock=FakeClock())
    cache.set("cold", "x")
    cache.set("hot", {"a": 1})
    cache.get("hot")
    cache.get("hot")

    detailed = cache.get_detailed_stats(top=1)

    assert detailed["top_keys"] == [{"key": "hot", "hits": 2, "age_ms": 0}]
    assert detailed["basic"]["hits"] == 2
    assert detailed["memory_usage"] > 0
