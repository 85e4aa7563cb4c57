"""LLM tag-based task categorisation."""

from __future__ import annotations

from typing import Mapping, Sequence

from webcontext.categories import DEFAULT_CATEGORIES, DEFAULT_TAG_MAP
from webcontext.llm.client import GenerationOptions, TextGenerator
from webcontext.logging import get_logger
from webcontext.models.category import CategoryConfig, TaskCategory
from webcontext.utils.text import parse_tags

logger = get_logger(__name__)

TAGGING_PROMPT = """You are an expert prompt tagger. Given a user prompt, return ALL relevant high-level tags from the following list that apply. Respond with a comma-separated list of tags only, lowercase, no extra words.

Available tags: {tags}

User prompt: "{prompt}"

Relevant tags:"""

TAG_CONFIDENCE = 0.9


class TaskCategorizer:
    """Map a prompt to task categories via one tagging call.

    Returns an empty list (never raises) when no generator is configured or the call fails.
    """

    def __init__(
        self,
        generator: TextGenerator | None = None,
        *,
        categories: Mapping[str, CategoryConfig] = DEFAULT_CATEGORIES,
        tag_map: Mapping[str, Sequence[str]] = DEFAULT_TAG_MAP,
        model: str | None = None,
    ) -> None:
        self._generator = generator
        self._categories = categories
        self._tag_map = tag_map
        self._model = model

    @property
    def categories(self) -> Mapping[str, CategoryConfig]:
        return self._categories

    async def categorize(self, prompt: str) -> list[TaskCategory]:
        if self._generator is None:
            logger.warning("TaskCategorizer has no generator configured; returning no categories")
            return []

        llm_prompt = TAGGING_PROMPT.format(
            tags=", ".join(self._tag_map),
            prompt=prompt.replace("\n", " "),
        )
        try:
            response = await self._generator.generate(
                llm_prompt,
                GenerationOptions(model=self._model, max_tokens=50, temperature=0.0),
            )
        except Exception as e:
            logger.error("LLM tagging failed", extra={"error": str(e)})
            return []

        return self.categories_from_tags(parse_tags(response.content))

    def categories_from_tags(self, tags: Sequence[str]) -> list[TaskCategory]:
        """Resolve tags to categories, sorted by ascending priority."""

        matched: dict[str, list[str]] = {}
        for tag in tags:
            for key in self._tag_map.get(tag, ()):
                matched.setdefault(key, [])
                if tag not in matched[key]:
                    matched[key].append(tag)

        out: list[TaskCategory] = []
        for key, matched_tags in matched.items():
            cfg = self._categories.get(key)
            if cfg is None:
                continue
            out.append(
                TaskCategory(
                    name=cfg.name,
                    confidence=TAG_CONFIDENCE,
                    keywords_matched=matched_tags,
                    system_prompt=cfg.system_prompt,
                    priority=cfg.priority,
                )
            )
        out.sort(key=lambda c: c.priority)
        return out
