"""Page scraping and HTML extraction."""

from __future__ import annotations

from webcontext.scraping.extractor import ContentExtractor, ScrapingOptions
from webcontext.scraping.html import ExtractedPage, extract_page_content, title_from_url

__all__ = [
    "ContentExtractor",
    "ExtractedPage",
    "ScrapingOptions",
    "extract_page_content",
    "title_from_url",
]
