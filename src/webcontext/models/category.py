"""Task category models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CategoryConfig(BaseModel):
    """Static definition of a task category."""

    name: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    system_prompt: str = ""
    priority: int = 1


class TaskCategory(BaseModel):
    """A category matched for a specific prompt."""

    model_config = ConfigDict(frozen=True)

    name: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    keywords_matched: tuple[str, ...] = ()
    system_prompt: str = ""
    priority: int = 1
