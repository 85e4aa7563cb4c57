"""Relevance scoring shared by query planning and content ranking."""

from __future__ import annotations

from typing import Callable, Sequence, TypeVar

from webcontext.logging import get_logger
from webcontext.models.content import ScrapedContent
from webcontext.models.search import SearchQuery
from webcontext.utils.text import significant_words, tokenize

logger = get_logger(__name__)

T = TypeVar("T")

PROGRAMMING_LANGUAGES = ("python", "javascript", "typescript", "node", "js", "ts")
TECH_TERMS = ("api", "database", "framework", "library", "protocol", "specification")
AUTHORITATIVE_DOMAINS = ("github.com", "stackoverflow.com")
DOCUMENTATION_MARKERS = ("docs.", "documentation")
BLOG_MARKERS = ("blog", "medium.com")

# Query-vs-prompt weights
W_EXACT = 0.4
W_DOMAIN = 0.3
W_SEMANTIC = 0.2
W_COMPLETENESS = 0.1


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def stable_rank(items: Sequence[T], score: Callable[[T], float]) -> list[tuple[T, float]]:
    """Score items and sort descending; equal scores keep their input order."""

    scored = [(item, score(item)) for item in items]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


class RelevanceRanker:
    """Scores queries against a prompt and scraped pages against a request.

    Both scores are in ``[0, 1]``.
    """

    def score_query(self, query: str, prompt: str) -> float:
        """Score how well a search query matches the user's prompt."""

        prompt_terms = set(significant_words(prompt))
        query_terms = set(significant_words(query))

        exact = len(prompt_terms & query_terms) / max(len(prompt_terms), 1)
        score = exact * W_EXACT
        score += self.domain_bonus(query, prompt) * W_DOMAIN
        score += self.semantic_similarity(query, prompt) * W_SEMANTIC
        score += self.completeness(query, prompt) * W_COMPLETENESS
        return _clamp(score)

    @staticmethod
    def domain_bonus(query: str, prompt: str) -> float:
        """Bonus for shared domain context: protocol, server, logging, language, tech nouns."""

        lower_query = query.lower()
        lower_prompt = prompt.lower()
        query_tokens = set(tokenize(query))
        prompt_tokens = set(tokenize(prompt))

        bonus = 0.0
        mcp_markers = ("mcp", "model context protocol")
        if any(m in lower_prompt for m in mcp_markers) and any(m in lower_query for m in mcp_markers):
            bonus += 0.5

        if "server" in lower_prompt and "server" in lower_query:
            bonus += 0.3

        log_markers = ("log", "thought")
        if any(m in lower_prompt for m in log_markers) and any(m in lower_query for m in log_markers):
            bonus += 0.3

        prompt_lang = next((lang for lang in PROGRAMMING_LANGUAGES if lang in prompt_tokens), None)
        if prompt_lang is not None and prompt_lang in query_tokens:
            bonus += 0.2

        shared_tech = [t for t in TECH_TERMS if t in prompt_tokens and t in query_tokens]
        bonus += len(shared_tech) * 0.1

        return min(bonus, 1.0)

    @staticmethod
    def semantic_similarity(query: str, prompt: str) -> float:
        """Word overlap plus a bonus when shared words appear in the same order."""

        query_words = significant_words(query)
        prompt_words = significant_words(prompt)
        if not query_words or not prompt_words:
            return 0.0

        common = [w for w in query_words if w in prompt_words]
        overlap = len(common) / max(len(query_words), len(prompt_words))

        order_bonus = 0.0
        if len(common) > 1:
            query_pos = [query_words.index(w) for w in common]
            prompt_pos = [prompt_words.index(w) for w in common]
            increasing = all(b > a for a, b in zip(query_pos, query_pos[1:])) and all(
                b > a for a, b in zip(prompt_pos, prompt_pos[1:])
            )
            if increasing:
                order_bonus = 0.2

        return min(overlap + order_bonus, 1.0)

    @staticmethod
    def completeness(query: str, prompt: str) -> float:
        """Share of the prompt's concepts the query covers."""

        prompt_words = significant_words(prompt)
        if not prompt_words:
            return 1.0
        query_words = set(significant_words(query))
        covered = [w for w in prompt_words if w in query_words]
        return len(covered) / len(prompt_words)

    def score_content(self, content: ScrapedContent) -> float:
        """Score a scraped page by size, metadata and source type."""

        score = min(content.word_count / 1000, 1.0) * 0.3
        if content.metadata.description:
            score += 0.2
        if content.metadata.keywords:
            score += 0.1

        url = content.url.lower()
        if any(d in url for d in AUTHORITATIVE_DOMAINS):
            score += 0.2
        if any(m in url for m in DOCUMENTATION_MARKERS):
            score += 0.15
        if any(m in url for m in BLOG_MARKERS):
            score += 0.1

        if content.word_count < 100:
            score *= 0.5
        return _clamp(score)

    def rank_queries(self, queries: Sequence[SearchQuery], prompt: str) -> list[SearchQuery]:
        """Order queries by relevance to the prompt and renumber priorities from 1."""

        ranked = stable_rank(queries, lambda q: self.score_query(q.query, prompt))
        out = [
            q.model_copy(update={"priority": i, "relevance_score": s})
            for i, (q, s) in enumerate(ranked, start=1)
        ]
        logger.debug(
            "Queries reordered by relevance",
            extra={
                "original_order": [q.query for q in queries],
                "ranked": [(q.query, round(q.relevance_score or 0.0, 3)) for q in out],
            },
        )
        return out

    def rank_content(self, contents: Sequence[ScrapedContent]) -> list[ScrapedContent]:
        """Attach relevance scores to pages and order them best first."""

        ranked = stable_rank(contents, self.score_content)
        return [c.model_copy(update={"relevance_score": s}) for c, s in ranked]
