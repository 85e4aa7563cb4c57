"""Prompt categorisation and search query planning."""

from __future__ import annotations

from webcontext.planning.categorizer import TaskCategorizer
from webcontext.planning.query_planner import QueryPlanner, prompt_fallback_queries

__all__ = ["QueryPlanner", "TaskCategorizer", "prompt_fallback_queries"]
