"""HTML content extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from webcontext.utils.text import collapse_whitespace, count_words, truncate

BOILERPLATE_SELECTORS: tuple[str, ...] = (
    "nav", "header", "footer", "aside",
    ".ads", ".advertisement", ".ad", ".banner",
    ".sidebar", ".menu", ".navigation", ".nav",
    "script", "style", "noscript",
    ".social", ".share", ".sharing",
    ".comments", ".comment-section",
    ".popup", ".modal", ".overlay",
    '[role="banner"]', '[role="navigation"]', '[role="complementary"]',
)

# Tried in order; the first region with enough text wins.
CONTENT_SELECTORS: tuple[str, ...] = (
    "main",
    "article",
    '[role="main"]',
    ".content",
    ".main-content",
    ".post-content",
    ".entry-content",
    ".article-body",
    ".article-content",
    ".text-content",
    "#content",
    "#main-content",
    ".container .content",
    'div[class*="content"]',
)

MIN_REGION_CHARS = 200
MIN_MAIN_CHARS = 100

_WORD_START_RE = re.compile(r"\b\w")


@dataclass(frozen=True)
class ExtractedPage:
    """Readable text and metadata pulled from one HTML document."""

    title: str
    content: str
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    word_count: int = 0


def _meta_content(soup: BeautifulSoup, name: str) -> str:
    tag = soup.find("meta", attrs={"name": name})
    if tag is None:
        return ""
    value = tag.get("content") or ""
    return value.strip() if isinstance(value, str) else ""


def extract_page_content(html: str, url: str, max_length: int = 10_000) -> ExtractedPage:
    """Strip boilerplate, find the main region and return cleaned text.

    Args:
        html: Raw page HTML.
        url: Page URL, used for the title fallback.
        max_length: Truncate content beyond this many characters.
    """

    soup = BeautifulSoup(html, "lxml")

    for selector in BOILERPLATE_SELECTORS:
        for el in soup.select(selector):
            el.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""
    description = _meta_content(soup, "description")
    keywords = [k.strip() for k in _meta_content(soup, "keywords").split(",") if k.strip()]

    main = ""
    for selector in CONTENT_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        text = el.get_text(" ")
        if len(text) > MIN_REGION_CHARS:
            main = text
            break

    if len(main) < MIN_MAIN_CHARS:
        body = soup.body or soup
        main = body.get_text(" ")

    content = truncate(collapse_whitespace(main), max_length)
    return ExtractedPage(
        title=title or title_from_url(url),
        content=content,
        description=description,
        keywords=keywords,
        word_count=count_words(content),
    )


def title_from_url(url: str) -> str:
    """Title-cased last path segment, else the hostname."""

    try:
        parts = urlsplit(url)
    except ValueError:
        return "Unknown Title"
    segments = [p for p in parts.path.split("/") if p and p != "index.html"]
    if segments:
        return _WORD_START_RE.sub(lambda m: m.group().upper(), re.sub(r"[-_]", " ", segments[-1]))
    return parts.hostname or "Unknown Title"
