"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `WEBCONTEXT_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """WebContext settings.

    All fields are environment-configurable. Prefix is `WEBCONTEXT_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="WEBCONTEXT_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    log_level: str = Field(default="INFO")

    # LLM
    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")
    openai_timeout_s: float = Field(default=60.0, ge=1.0, le=600.0)
    # USD per 1k tokens, used to report a cost for each generation
    openai_input_cost_per_1k: float = Field(default=0.00015, ge=0.0)
    openai_output_cost_per_1k: float = Field(default=0.0006, ge=0.0)

    # Search
    brave_api_key: str | None = Field(default=None)
    brave_base_url: str = Field(default="https://api.search.brave.com/res/v1")
    brave_timeout_s: float = Field(default=10.0, ge=1.0, le=120.0)
    brave_max_retries: int = Field(default=3, ge=0, le=10)
    brave_retry_delay_s: float = Field(default=1.0, ge=0.0, le=30.0)
    brave_rate_limit: float = Field(default=1.0, gt=0.0, le=100.0)
    search_fallback_engines: list[str] = Field(default_factory=list)
    max_search_results: int = Field(default=5, ge=1, le=20)

    # Scraping
    scrape_timeout_s: float = Field(default=20.0, ge=1.0, le=120.0)
    scrape_min_word_count: int = Field(default=50, ge=0)
    scrape_max_content_length: int = Field(default=5000, ge=100)
    scrape_max_urls: int = Field(default=3, ge=1, le=3)
    browser_headless: bool = Field(default=True)
    browser_proxy: str | None = Field(default=None)
    session_max_age_s: float = Field(default=300.0, ge=0.0)

    # Enhancement
    enhancement_max_iterations: int = Field(default=2, ge=1, le=10)
    enhancement_quality_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    enhancement_cost_limit: float | None = Field(default=0.01, ge=0.0)
    enhancement_strategies: list[str] = Field(
        default_factory=lambda: ["clarity", "specificity", "context_enrichment"]
    )
    acceptance_min_improvement: float = Field(default=0.1, ge=0.0, le=1.0)
    acceptance_min_length_delta: float = Field(default=0.05, ge=0.0)

    # Cache
    cache_enabled: bool = Field(default=True)
    cache_ttl_s: float = Field(default=3600.0, gt=0.0)
    cache_categories_ttl_s: float = Field(default=3600.0, gt=0.0)
    cache_max_size: int = Field(default=1000, ge=1)

    # Networking
    http_user_agent: str = Field(
        default="Mozilla/5.0 (compatible; WebContext/0.1; +https://github.com/webcontext)"
    )


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("WEBCONTEXT_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
