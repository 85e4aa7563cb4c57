"""Error taxonomy for the acquisition pipeline.

Only :class:`ConfigurationError` is meant to escape to callers, and only at
construction time. Everything else is recovered below the orchestrator and
reflected in result metadata.
"""

from __future__ import annotations


class WebContextError(RuntimeError):
    """Base class for all pipeline errors."""


class ConfigurationError(WebContextError, ValueError):
    """A required setting (credential, endpoint) is missing or invalid."""


class TransientNetworkError(WebContextError):
    """Timeouts, 5xx responses and other retryable network failures."""


class RateLimitedError(TransientNetworkError):
    """The search backend kept answering 429 after all retries."""

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class SearchBackendError(WebContextError):
    """The search backend returned a non-retryable error response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ContentQualityError(WebContextError):
    """Extracted page content did not pass the quality gate."""

    def __init__(self, message: str, *, word_count: int = 0) -> None:
        super().__init__(message)
        self.word_count = word_count


class AcquisitionFailure(WebContextError):
    """No browser launch strategy succeeded."""

    def __init__(
        self,
        message: str,
        *,
        platform: str = "",
        arch: str = "",
        strategies_attempted: int = 0,
    ) -> None:
        super().__init__(message)
        self.platform = platform
        self.arch = arch
        self.strategies_attempted = strategies_attempted


class EnhancementProviderError(WebContextError):
    """The text-generation capability failed."""
