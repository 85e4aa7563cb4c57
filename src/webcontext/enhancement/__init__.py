"""Prompt enhancement."""

from __future__ import annotations

from webcontext.enhancement.enhancer import AcceptancePolicy, EnhancementOptions, PromptEnhancer

__all__ = ["AcceptancePolicy", "EnhancementOptions", "PromptEnhancer"]
