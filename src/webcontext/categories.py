"""Default task category registry and tag map.

The registry is read-only data; deployments can pass their own mapping to
:class:`webcontext.planning.categorizer.TaskCategorizer`.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from webcontext.models.category import CategoryConfig

CODE_GENERATION = "Code Generation & Debugging"
TECHNICAL_DOCUMENTATION = "Technical Documentation"
RESEARCH = "Research & Information Synthesis"

DEFAULT_CATEGORIES: Mapping[str, CategoryConfig] = MappingProxyType(
    {
        "code_generation": CategoryConfig(
            name=CODE_GENERATION,
            description="Programming, debugging, and code-related tasks",
            keywords=["code", "write", "app"],
            system_prompt=(
                "You are an expert software engineer with deep knowledge of multiple programming "
                "languages and best practices. Help with code generation, debugging, and "
                "optimization. Always provide clean, efficient, and well-documented code."
            ),
            priority=1,
        ),
        "technical_documentation": CategoryConfig(
            name=TECHNICAL_DOCUMENTATION,
            description="API docs, guides, and technical writing",
            keywords=["documentation", "api", "guide"],
            system_prompt=(
                "You are a technical writer. Produce precise, well-structured documentation "
                "with examples, clear headings, and accurate terminology."
            ),
            priority=2,
        ),
        "research": CategoryConfig(
            name=RESEARCH,
            description="Gathering, comparing, and summarising information",
            keywords=["research", "information", "synthesis"],
            system_prompt=(
                "You are a research analyst. Synthesise information from multiple sources, "
                "note uncertainty, and cite where claims come from."
            ),
            priority=3,
        ),
        "data_analysis": CategoryConfig(
            name="Data Analysis & Visualization",
            description="Working with datasets, statistics, and charts",
            keywords=["data", "analysis", "chart"],
            system_prompt=(
                "You are a data analyst. Explain methods, state assumptions, and suggest "
                "appropriate visualisations."
            ),
            priority=4,
        ),
        "creative_writing": CategoryConfig(
            name="Creative Writing",
            description="Stories, poems, and other creative text",
            keywords=["story", "creative", "plot"],
            system_prompt="You are a creative writer with a strong sense of voice, pacing, and imagery.",
            priority=5,
        ),
        "general_qa": CategoryConfig(
            name="General Q&A",
            description="Conversational questions and answers",
            keywords=["chat", "question", "answer"],
            system_prompt="You are a helpful assistant. Answer clearly and concisely.",
            priority=6,
        ),
    }
)

DEFAULT_TAG_MAP: Mapping[str, list[str]] = MappingProxyType(
    {
        "coding": ["code_generation"],
        "debugging": ["code_generation"],
        "programming": ["code_generation"],
        "api": ["code_generation", "technical_documentation"],
        "documentation": ["technical_documentation"],
        "docs": ["technical_documentation"],
        "research": ["research"],
        "comparison": ["research"],
        "data": ["data_analysis"],
        "analysis": ["data_analysis"],
        "creative": ["creative_writing"],
        "story": ["creative_writing"],
        "question": ["general_qa"],
        "chat": ["general_qa"],
    }
)
