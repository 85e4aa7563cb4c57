"""Enhancement result models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from webcontext.models.category import TaskCategory
from webcontext.models.content import ScrapedContent
from webcontext.models.search import SearchQuery


class ProcessingMetadata(BaseModel):
    """Timing and yield of one pipeline run. Times are milliseconds."""

    model_config = ConfigDict(frozen=True)

    run_id: str = ""
    search_time: int = 0
    scraping_time: int = 0
    total_time: int = 0
    urls_processed: int = 0
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class EnhancementResult(BaseModel):
    """Final output of the orchestrator. Immutable once returned."""

    model_config = ConfigDict(frozen=True)

    original_prompt: str
    enhanced_prompt: str
    categories: tuple[TaskCategory, ...] = ()
    web_context: tuple[ScrapedContent, ...] = Field(default=(), max_length=3)
    search_queries: tuple[SearchQuery, ...] = ()
    processing_metadata: ProcessingMetadata = Field(default_factory=ProcessingMetadata)


class EnhancementOutcome(BaseModel):
    """Result of one prompt-enhancer call."""

    original_prompt: str
    enhanced_prompt: str
    categories: list[TaskCategory] = Field(default_factory=list)
    model_used: str = ""
    provider: str = ""
    estimated_tokens: int = 0
    estimated_cost: float = 0.0
    enhancement_strategies: list[str] = Field(default_factory=list)
    quality_score: float = 0.0
    processing_time: int = 0
