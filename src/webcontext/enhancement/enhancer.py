"""Iterative prompt enhancement with an explicit acceptance gate."""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass, field
from typing import Sequence

from webcontext.llm.client import GenerationOptions, TextGenerator
from webcontext.logging import get_logger
from webcontext.models.category import TaskCategory
from webcontext.models.enhancement import EnhancementOutcome
from webcontext.utils.text import extract_enhanced_prompt, tokenize

logger = get_logger(__name__)

AVAILABLE_STRATEGIES: tuple[str, ...] = (
    "clarity",
    "specificity",
    "context_enrichment",
    "structure",
    "examples",
    "constraints",
)
DEFAULT_STRATEGIES: tuple[str, ...] = ("clarity", "specificity", "context_enrichment")

STRATEGY_INSTRUCTIONS: dict[str, str] = {
    "clarity": (
        "Focus on making the prompt clearer and more understandable. Remove ambiguity, "
        "simplify complex language, and ensure the request is crystal clear."
    ),
    "specificity": (
        "Make the prompt more specific and detailed. Add context, specify desired format, "
        "include examples if helpful, and eliminate vague terms."
    ),
    "context_enrichment": (
        "Add relevant context and background information. Include constraints, requirements, "
        "and any domain-specific details that would help produce better results."
    ),
    "structure": (
        "Improve the structure and organization of the prompt. Use clear sections, bullet "
        "points, or numbered lists where appropriate."
    ),
    "examples": (
        "Add relevant examples or templates to guide the response. Include input-output "
        "examples or similar scenarios."
    ),
    "constraints": (
        "Add helpful constraints and requirements. Specify length, format, tone, style, or "
        "other parameters that would improve the output."
    ),
}
DEFAULT_INSTRUCTION = "Improve the prompt to make it more effective for the given task category."

ENHANCEMENT_PROMPT = """You are an expert prompt engineer. Your task is to enhance the following prompt using the "{strategy}" strategy for a {category} task.

Original prompt: "{prompt}"

Task category: {category}
System context: {system_context}...

Enhancement strategy: {strategy}

{instructions}

Please provide ONLY the enhanced prompt without any explanations or additional text. The enhanced prompt should be clear, specific, and optimized for the task category.

Enhanced prompt:"""

_STRUCTURE_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)]|#+)\s+", re.MULTILINE)
_CONSTRAINT_WORDS = frozenset({"must", "should", "format", "include", "avoid", "ensure", "example", "examples"})


@dataclass(frozen=True)
class EnhancementOptions:
    """Knobs for one enhancement request."""

    enable_web_search: bool = True
    max_search_results: int = 5
    max_scraped_content: int = 3
    max_iterations: int = 2
    cost_limit: float | None = 0.01
    strategies: tuple[str, ...] = DEFAULT_STRATEGIES
    quality_threshold: float = 0.8
    use_cache: bool = True


@dataclass(frozen=True)
class AcceptancePolicy:
    """Decides whether a rewritten prompt is a real improvement.

    The score is in ``[0, 1]``: up to 0.6 for relative growth of at least
    ``min_length_delta``, 0.3 for more structural markers (bullets, numbering,
    headings), 0.1 for more constraint words. Empty or unchanged candidates score 0.
    """

    min_improvement: float = 0.1
    min_length_delta: float = 0.05

    def evaluate(self, previous: str, candidate: str) -> float:
        before = previous.strip()
        after = candidate.strip()
        if not after or after == before:
            return 0.0

        score = 0.0
        delta = (len(after) - len(before)) / max(len(before), 1)
        if delta >= self.min_length_delta:
            score += min(delta, 1.0) * 0.6

        if len(_STRUCTURE_RE.findall(after)) > len(_STRUCTURE_RE.findall(before)):
            score += 0.3

        if _constraint_count(after) > _constraint_count(before):
            score += 0.1

        return min(score, 1.0)

    def accepts(self, score: float) -> bool:
        return score >= self.min_improvement


def _constraint_count(text: str) -> int:
    return sum(1 for w in tokenize(text) if w in _CONSTRAINT_WORDS)


def build_enhancement_prompt(prompt: str, category: TaskCategory, strategy: str) -> str:
    return ENHANCEMENT_PROMPT.format(
        strategy=strategy,
        category=category.name,
        prompt=prompt,
        system_context=category.system_prompt[:200],
        instructions=STRATEGY_INSTRUCTIONS.get(strategy, DEFAULT_INSTRUCTION),
    )


@dataclass
class _LoopState:
    prompt: str
    total_cost: float = 0.0
    calls: int = 0
    quality: float = 0.0
    model_used: str = ""
    applied: list[str] = field(default_factory=list)


class PromptEnhancer:
    """Rewrite a prompt over a few LLM passes, keeping only accepted rewrites."""

    def __init__(
        self,
        generator: TextGenerator,
        *,
        model: str | None = None,
        policy: AcceptancePolicy | None = None,
    ) -> None:
        self._generator = generator
        self._model = model
        self._policy = policy or AcceptancePolicy()

    @property
    def policy(self) -> AcceptancePolicy:
        return self._policy

    async def enhance_prompt(
        self,
        prompt: str,
        categories: Sequence[TaskCategory],
        options: EnhancementOptions | None = None,
    ) -> EnhancementOutcome:
        """Enhance ``prompt`` for its top category.

        Generator failures stop the loop; the best prompt so far is returned.
        """

        opts = options or EnhancementOptions()
        started = time.monotonic()

        if not categories or not opts.strategies:
            return EnhancementOutcome(
                original_prompt=prompt,
                enhanced_prompt=prompt,
                categories=list(categories),
                processing_time=_elapsed_ms(started),
            )

        top = categories[0]
        state = _LoopState(prompt=prompt)

        for iteration in range(opts.max_iterations):
            strategy = opts.strategies[iteration % len(opts.strategies)]

            if opts.cost_limit is not None and state.calls:
                avg_cost = state.total_cost / state.calls
                if state.total_cost + avg_cost > opts.cost_limit:
                    logger.debug(
                        "Estimated cost would exceed limit, stopping enhancement",
                        extra={"total_cost": state.total_cost, "cost_limit": opts.cost_limit},
                    )
                    break

            try:
                response = await self._generator.generate(
                    build_enhancement_prompt(state.prompt, top, strategy),
                    GenerationOptions(model=self._model, max_tokens=500, temperature=0.3),
                )
            except Exception as e:
                logger.error(
                    "Enhancement iteration failed",
                    extra={"iteration": iteration + 1, "strategy": strategy, "error": str(e)},
                )
                break

            state.calls += 1
            state.total_cost += response.cost
            state.model_used = response.model or state.model_used

            candidate = extract_enhanced_prompt(response.content)
            score = self._policy.evaluate(state.prompt, candidate)
            if self._policy.accepts(score):
                state.prompt = candidate
                state.applied.append(strategy)
                state.quality = score
                logger.debug(
                    "Prompt enhanced",
                    extra={"iteration": iteration + 1, "strategy": strategy, "improvement_score": score},
                )
            else:
                logger.debug(
                    "Enhancement rejected due to low improvement",
                    extra={"iteration": iteration + 1, "strategy": strategy, "improvement_score": score},
                )

            if opts.cost_limit is not None and state.total_cost >= opts.cost_limit:
                logger.debug("Cost limit reached, stopping enhancement", extra={"total_cost": state.total_cost})
                break
            if state.quality >= opts.quality_threshold:
                break

        return EnhancementOutcome(
            original_prompt=prompt,
            enhanced_prompt=state.prompt,
            categories=list(categories),
            model_used=state.model_used or (self._model or ""),
            provider=self._generator.name,
            estimated_tokens=self._estimate_tokens(state.prompt),
            estimated_cost=state.total_cost,
            enhancement_strategies=state.applied,
            quality_score=state.quality,
            processing_time=_elapsed_ms(started),
        )

    def _estimate_tokens(self, text: str) -> int:
        try:
            return self._generator.estimate_tokens(text)
        except Exception as e:
            logger.warning("Token estimation failed, using fallback", extra={"error": str(e)})
            return max(1, math.ceil(len(text) / 4))

    @staticmethod
    def available_strategies() -> list[str]:
        return list(AVAILABLE_STRATEGIES)


def _elapsed_ms(started: float) -> int:
    return max(1, int((time.monotonic() - started) * 1000))
