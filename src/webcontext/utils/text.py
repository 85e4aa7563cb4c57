"""Pure text helpers: term extraction and parsing of free-form LLM replies.

The parsers here never raise and never call the network; they turn whatever a model
returned into clean values or an empty result.

Query-line grammar (:func:`parse_query_lines`)::

    reply      := line ("\\n" line)*
    line       := ws* [numbering ws*] [quote] text [quote] ws*
    numbering  := digits ("." | ")") | "-"
    quote      := '"' | "'"

    Lines that are empty or start with "#" or "*" are ignored. A candidate is kept
    when 10 < len(text) < 200. At most ``limit`` non-ignored lines are considered.

Tag grammar (:func:`parse_tags`)::

    reply      := [prefix] tag (delimiter+ tag)*
    prefix     := "tags:" | "tag:" | "relevant tags:" | "relevant tag:"   (case-insensitive)
    delimiter  := "," | ";" | "|" | whitespace
"""

from __future__ import annotations

import re

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
        "her", "was", "one", "our", "out", "day", "get", "has", "him", "his",
        "how", "its", "may", "new", "now", "old", "see", "two", "who", "boy",
        "did", "use", "way", "she", "many", "oil", "sit", "set", "run", "eat",
        "help", "make", "need", "want", "with", "this", "that", "they", "have",
        "from", "know", "been", "good", "much", "some", "time",
        "very", "when", "come", "here", "just", "like", "long", "over", "also",
        "back", "call", "came", "each", "find", "give", "hand", "high", "keep",
        "last", "left", "life", "live", "look", "made", "most", "move", "must",
        "name", "never", "only", "open", "part", "place", "right", "said", "same",
        "seem", "show", "small", "sound", "still", "such", "take", "than", "them",
        "well", "went", "were", "what", "where", "which", "while", "will", "word",
        "work", "world", "would", "write", "year",
    }
)

# Generic search modifiers; they say nothing about the topic.
COMMON_SEARCH_WORDS: frozenset[str] = frozenset(
    {
        "tutorial", "guide", "documentation", "best", "practices",
        "example", "how", "what", "where", "when", "why",
        "official", "latest", "current", "modern",
    }
)

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")
_NUMBERING_RE = re.compile(r"^(?:\d+[.)]|-)\s*")
_TAG_PREFIX_RE = re.compile(r"^(?:relevant\s+)?tags?:\s*", re.IGNORECASE)
_TAG_SPLIT_RE = re.compile(r"[,;|\s]+")

ENHANCED_PROMPT_PREFIXES: tuple[str, ...] = (
    "Enhanced prompt:",
    "Here is the enhanced prompt:",
    "Enhanced version:",
    "Improved prompt:",
    "Here's the enhanced prompt:",
    "The enhanced prompt is:",
    "Enhanced:",
)


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens with punctuation treated as whitespace."""

    return [w for w in _NON_WORD_RE.sub(" ", text.lower()).split() if w]


def is_stop_word(word: str) -> bool:
    return word.lower() in STOP_WORDS


def significant_words(text: str) -> list[str]:
    """Words that carry topic meaning, in order, duplicates kept.

    Drops words of 2 characters or fewer, stop words and generic search modifiers.
    """

    return [
        w
        for w in tokenize(text)
        if len(w) > 2 and w not in STOP_WORDS and w not in COMMON_SEARCH_WORDS
    ]


def extract_keywords(text: str, *, limit: int = 5) -> list[str]:
    """Distinct non-stop-words longer than 3 characters, in prompt order."""

    seen: dict[str, None] = {}
    for w in tokenize(text):
        if len(w) > 3 and w not in STOP_WORDS:
            seen.setdefault(w, None)
    return list(seen)[:limit]


def longest_keywords(text: str, *, limit: int = 3) -> list[str]:
    """The ``limit`` longest keywords, returned in prompt order.

    Ties in length go to the word that appears first.
    """

    words = extract_keywords(text, limit=len(text))
    chosen = sorted(range(len(words)), key=lambda i: (-len(words[i]), i))[:limit]
    return [words[i] for i in sorted(chosen)]


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def count_words(text: str) -> int:
    return len(text.split()) if text else 0


def truncate(text: str, max_chars: int, *, suffix: str = "...") -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars] + suffix


def parse_query_lines(text: str, *, limit: int = 3) -> list[str]:
    """Parse search-query candidates from a model reply. See module docstring for grammar."""

    if not text:
        return []

    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line and not line.startswith(("#", "*"))]

    queries: list[str] = []
    for line in lines[:limit]:
        candidate = _NUMBERING_RE.sub("", line).strip()
        if candidate[:1] in ("\"", "'"):
            candidate = candidate[1:]
        if candidate[-1:] in ("\"", "'"):
            candidate = candidate[:-1]
        candidate = candidate.strip()
        if 10 < len(candidate) < 200:
            queries.append(candidate)
    return queries


def parse_tags(text: str) -> list[str]:
    """Parse a tag list from a model reply. See module docstring for grammar."""

    if not text:
        return []
    cleaned = _TAG_PREFIX_RE.sub("", text.strip().lower())
    return [t for t in (part.strip() for part in _TAG_SPLIT_RE.split(cleaned)) if t]


def extract_enhanced_prompt(text: str) -> str:
    """Strip a leading "Enhanced prompt:"-style label and wrapping double quotes."""

    enhanced = text.strip()
    lowered = enhanced.lower()
    for prefix in ENHANCED_PROMPT_PREFIXES:
        if lowered.startswith(prefix.lower()):
            enhanced = enhanced[len(prefix) :].strip()
            break

    if len(enhanced) >= 2 and enhanced.startswith("\"") and enhanced.endswith("\""):
        enhanced = enhanced[1:-1]
    return enhanced
