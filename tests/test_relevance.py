"""Tests for relevance scoring and ranking."""

from __future__ import annotations

import pytest

from webcontext.models.content import ContentMetadata, ScrapedContent
from webcontext.models.search import SearchQuery
from webcontext.ranking.relevance import RelevanceRanker, stable_rank


def _content(url: str, words: int, *, description: str = "", keywords: list[str] | None = None) -> ScrapedContent:
    return ScrapedContent(
        url=url,
        title="t",
        content=" ".join(["w"] * words),
        metadata=ContentMetadata(description=description, keywords=keywords or []),
        word_count=words,
    )


def test_on_topic_query_ranks_above_unrelated_one() -> None:
    """It should rank a FastAPI query above a cooking query for a FastAPI prompt."""

    ranker = RelevanceRanker()
    queries = [
        SearchQuery(query="cooking recipes guide"),
        SearchQuery(query="FastAPI WebSocket best practices"),
    ]
    ranked = ranker.rank_queries(queries, "FastAPI WebSocket server tutorial")

    assert [q.query for q in ranked] == ["FastAPI WebSocket best practices", "cooking recipes guide"]
    assert [q.priority for q in ranked] == [1, 2]
    assert ranked[0].relevance_score > ranked[1].relevance_score


def test_rank_queries_is_stable_for_equal_scores() -> None:
    """It should keep input order when scores tie."""

    ranker = RelevanceRanker()
    queries = [SearchQuery(query="cooking recipes guide"), SearchQuery(query="gardening tips guide")]
    ranked = ranker.rank_queries(queries, "FastAPI WebSocket server tutorial")
    assert [q.query for q in ranked] == ["cooking recipes guide", "gardening tips guide"]


def test_stable_rank_preserves_ties() -> None:
    items = ["a", "b", "c", "d"]
    scores = {"a": 0.5, "b": 0.9, "c": 0.5, "d": 0.9}
    assert [i for i, _ in stable_rank(items, scores.__getitem__)] == ["b", "d", "a", "c"]


@pytest.mark.parametrize(
    ("query", "prompt"),
    [
        ("MCP server log python api", "MCP server logging in python with an api and database"),
        ("", "anything"),
        ("something", ""),
        ("python python python", "python"),
    ],
)
def test_query_scores_are_bounded(query: str, prompt: str) -> None:
    score = RelevanceRanker().score_query(query, prompt)
    assert 0.0 <= score <= 1.0


def test_domain_bonus_is_capped() -> None:
    bonus = RelevanceRanker.domain_bonus(
        "MCP server log python api database", "MCP server thought log python api database"
    )
    assert bonus == 1.0


def test_domain_bonus_matches_language_by_token() -> None:
    """It should not treat 'js' inside another word as a language match."""

    assert RelevanceRanker.domain_bonus("json schema tips", "parse json with jsonschema") == 0.0
    assert RelevanceRanker.domain_bonus("python packaging", "python wheels") == pytest.approx(0.2)


def test_content_score_components() -> None:
    ranker = RelevanceRanker()
    rich = _content("https://github.com/org/repo", 1000, description="d", keywords=["k"])
    assert ranker.score_content(rich) == pytest.approx(0.8)

    short_docs = _content("https://docs.python.org/3/library/asyncio.html", 50)
    assert ranker.score_content(short_docs) == pytest.approx((50 / 1000 * 0.3 + 0.15) * 0.5)


def test_rank_content_orders_best_first_and_sets_scores() -> None:
    ranker = RelevanceRanker()
    weak = _content("https://example.com/a", 120)
    strong = _content("https://stackoverflow.com/q/1", 900, description="d")
    ranked = ranker.rank_content([weak, strong])

    assert [c.url for c in ranked] == [strong.url, weak.url]
    assert all(0.0 <= c.relevance_score <= 1.0 for c in ranked)
    assert ranked[0].relevance_score > 0
