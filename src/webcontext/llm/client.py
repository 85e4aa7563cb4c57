"""OpenAI-compatible text generation client.

This wraps the `openai` Python SDK and exposes the narrow ``generate(prompt, options)``
capability the pipeline consumes. Anything with the same shape (see :class:`TextGenerator`)
can be plugged in instead.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Protocol

from openai import AsyncOpenAI

from webcontext.config import Settings
from webcontext.errors import ConfigurationError, EnhancementProviderError
from webcontext.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call generation options."""

    model: str | None = None
    max_tokens: int = 500
    temperature: float = 0.3


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting for one generation."""

    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output


@dataclass(frozen=True)
class GenerationResult:
    """Output of one generation call."""

    content: str
    tokens_used: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0
    model: str = ""
    provider: str = ""
    processing_time: int = 0


class TextGenerator(Protocol):
    """Text generation capability."""

    name: str

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        """Generate a completion for a single user prompt."""

    def estimate_tokens(self, text: str) -> int:
        """Rough token estimate for text."""


def require_openai_key(settings: Settings) -> str:
    """Return the configured OpenAI key.

    Raises:
        ConfigurationError: The key is not set.
    """

    if not settings.openai_api_key:
        raise ConfigurationError(
            "Missing WEBCONTEXT_OPENAI_API_KEY. "
            "Set it in environment variables or a .env file."
        )
    return settings.openai_api_key


class OpenAITextGenerator:
    """Text generator using the OpenAI-compatible Chat Completions API."""

    name = "openai"

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        api_key = require_openai_key(settings)
        self._client = AsyncOpenAI(api_key=api_key, base_url=settings.openai_base_url)

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        """Generate a completion.

        Args:
            prompt: User prompt.
            options: Generation options; ``options.model`` overrides the configured model.

        Returns:
            Content, token usage and estimated cost.

        Raises:
            EnhancementProviderError: If the API call fails.
        """

        model = options.model or self._settings.openai_model
        started = time.monotonic()
        try:
            resp = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                timeout=self._settings.openai_timeout_s,
            )
        except Exception as e:
            raise EnhancementProviderError(f"{self.name} generation failed: {e}") from e

        content = ""
        if resp.choices:
            choice = resp.choices[0]
            if choice.message and choice.message.content is not None:
                content = choice.message.content

        usage = TokenUsage(
            input=resp.usage.prompt_tokens if resp.usage else self.estimate_tokens(prompt),
            output=resp.usage.completion_tokens if resp.usage else self.estimate_tokens(content),
        )
        cost = (
            usage.input / 1000 * self._settings.openai_input_cost_per_1k
            + usage.output / 1000 * self._settings.openai_output_cost_per_1k
        )
        latency_ms = int((time.monotonic() - started) * 1000)

        logger.debug(
            "LLM completion successful",
            extra={"model": model, "latency_ms": latency_ms, "tokens": usage.total, "cost": cost},
        )

        return GenerationResult(
            content=content,
            tokens_used=usage,
            cost=cost,
            model=model,
            provider=self.name,
            processing_time=latency_ms,
        )

    def estimate_tokens(self, text: str) -> int:
        return max(1, math.ceil(len(text) / 4))

    async def aclose(self) -> None:
        await self._client.close()
