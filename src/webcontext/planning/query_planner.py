"""Search query planning.

The planner asks the text generator for a handful of focused web search queries
and falls back to keyword templates whenever the model is unavailable or its reply
is unusable.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Sequence

from webcontext.categories import CODE_GENERATION, RESEARCH, TECHNICAL_DOCUMENTATION
from webcontext.llm.client import GenerationOptions, TextGenerator
from webcontext.logging import get_logger
from webcontext.models.category import TaskCategory
from webcontext.models.search import SearchQuery
from webcontext.ranking.relevance import RelevanceRanker
from webcontext.utils.text import extract_keywords, longest_keywords, parse_query_lines, tokenize

logger = get_logger(__name__)

MAX_QUERIES = 3
MAX_FALLBACK_QUERIES = 2

_TECH_KEYWORD_RE = re.compile(
    r"^(javascript|typescript|python|react|node|api|server|database|framework|library)$",
    re.IGNORECASE,
)
_BACKEND_RE = re.compile(r"server|api|backend", re.IGNORECASE)

QUERY_PROMPT = """You are an expert at creating effective web search queries to find the most current and relevant information.

User's prompt: "{prompt}"
Task category: {category}

Based on this prompt and category, generate 1-3 broad search queries that would help find relevant information to enhance the user's prompt. Focus on:

1. Best practices and documentation
2. Official guides and tutorials
3. Real-world examples and practical guidance
4. Implementation patterns and techniques

For each search query, consider:
- Include relevant technical terms and keywords
- Add qualifiers like "tutorial", "best practices", "documentation", "guide"
- Make queries broad enough to find useful results
- Avoid overly specific phrases or exact quotes

Return ONLY the search queries, one per line, without quotes or additional text.

Example format:
MCP protocol specification documentation
Python server logging best practices tutorial"""


def build_query_prompt(prompt: str, category: TaskCategory) -> str:
    return QUERY_PROMPT.format(prompt=prompt, category=category.name)


def prompt_fallback_queries(prompt: str, year: int | None = None) -> list[SearchQuery]:
    """Category-free queries built from the prompt's three longest keywords."""

    terms = " ".join(longest_keywords(prompt, limit=3))
    if not terms:
        return []
    year = year or dt.date.today().year
    return [
        SearchQuery(query=f"{terms} {year} latest", category="general", priority=1),
        SearchQuery(
            query=f"{terms} best practices documentation {year}", category="general", priority=2
        ),
    ]


class QueryPlanner:
    """Plan up to three ranked search queries for a categorised prompt."""

    def __init__(
        self,
        generator: TextGenerator | None = None,
        *,
        ranker: RelevanceRanker | None = None,
        model: str | None = None,
    ) -> None:
        self._generator = generator
        self._ranker = ranker or RelevanceRanker()
        self._model = model

    async def plan(self, prompt: str, categories: Sequence[TaskCategory]) -> list[SearchQuery]:
        """Return ranked queries, best first. Never raises."""

        try:
            if self._generator is None or not categories:
                return self.fallback_queries(prompt, categories)
            return await self._plan_with_llm(self._generator, prompt, categories)
        except Exception as e:
            logger.warning("Query planning failed", extra={"error": str(e)})
            return []

    async def _plan_with_llm(
        self, generator: TextGenerator, prompt: str, categories: Sequence[TaskCategory]
    ) -> list[SearchQuery]:
        top = categories[0]
        try:
            response = await generator.generate(
                build_query_prompt(prompt, top),
                GenerationOptions(model=self._model, max_tokens=200, temperature=0.3),
            )
        except Exception as e:
            logger.warning("LLM search query generation failed, using fallback", extra={"error": str(e)})
            return self.fallback_queries(prompt, categories)

        lines = parse_query_lines(response.content, limit=MAX_QUERIES)
        if not lines:
            logger.info("No usable queries in LLM reply, using fallback")
            return self.fallback_queries(prompt, categories)

        candidates = [SearchQuery(query=line, category=top.name) for line in lines]
        ranked = self._ranker.rank_queries(candidates, prompt)
        logger.info("Search queries planned", extra={"queries": [q.query for q in ranked]})
        return ranked

    def fallback_queries(self, prompt: str, categories: Sequence[TaskCategory]) -> list[SearchQuery]:
        """Rule-based queries keyed on the top category; empty without categories."""

        if not categories:
            return []
        top = categories[0]
        keywords = extract_keywords(prompt)
        name = top.name.lower()

        if name == CODE_GENERATION.lower():
            queries = self._coding_queries(keywords)
        elif name == TECHNICAL_DOCUMENTATION.lower():
            queries = self._documentation_queries(prompt, keywords)
        elif name == RESEARCH.lower():
            queries = self._research_queries(keywords)
        else:
            queries = self._generic_queries(keywords, top)

        logger.debug(
            "Fallback search queries generated",
            extra={"category": top.name, "queries_generated": len(queries)},
        )
        return queries[:MAX_FALLBACK_QUERIES]

    @staticmethod
    def _coding_queries(keywords: list[str]) -> list[SearchQuery]:
        tech = [kw for kw in keywords if _TECH_KEYWORD_RE.match(kw)]
        if not tech:
            return []
        main = tech[0]
        queries = [
            SearchQuery(query=f"{main} best practices documentation", category=CODE_GENERATION, priority=1)
        ]
        if any(_BACKEND_RE.search(kw) for kw in keywords):
            queries.append(
                SearchQuery(query=f"{main} server development tutorial", category=CODE_GENERATION, priority=2)
            )
        return queries

    @staticmethod
    def _documentation_queries(prompt: str, keywords: list[str]) -> list[SearchQuery]:
        queries: list[SearchQuery] = []
        # "mcp" is too short to survive keyword extraction, so look at the raw prompt.
        if "mcp" in tokenize(prompt) or "model context protocol" in prompt.lower():
            queries.append(
                SearchQuery(
                    query="MCP Model Context Protocol specification documentation",
                    category=TECHNICAL_DOCUMENTATION,
                    priority=1,
                )
            )
        if keywords:
            queries.append(
                SearchQuery(
                    query=f"{keywords[0]} official documentation",
                    category=TECHNICAL_DOCUMENTATION,
                    priority=len(queries) + 1,
                )
            )
        return queries

    @staticmethod
    def _research_queries(keywords: list[str]) -> list[SearchQuery]:
        main = " ".join(keywords[:2])
        if not main:
            return []
        return [
            SearchQuery(query=f"{main} research guide", category=RESEARCH, priority=1),
            SearchQuery(query=f"{main} best practices tutorial", category=RESEARCH, priority=2),
        ]

    @staticmethod
    def _generic_queries(keywords: list[str], category: TaskCategory) -> list[SearchQuery]:
        main = " ".join(keywords[:3])
        if not main:
            return []
        return [SearchQuery(query=f"{main} best practices", category=category.name, priority=1)]
