"""Keyword extraction, relevance scoring and snippet selection for context search."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List, Sequence

QUOTED_PATTERN = re.compile(r'"([^"]+)"')
CAMEL_CASE_PATTERN = re.compile(r"\b[a-z][a-z0-9]*(?:[A-Z][a-z0-9]*)+\b")
SNAKE_CASE_PATTERN = re.compile(r"\b[A-Za-z0-9]+(?:_[A-Za-z0-9]+)+\b")
PUNCTUATION_PATTERN = re.compile(r"[^\w\s]")

WHOLE_WORD_WEIGHT = 3
SUBSTRING_WEIGHT = 1
TITLE_WEIGHT = 2
SNIPPET_STEP = 50
DEFAULT_SNIPPET_LENGTH = 200
ELLIPSIS = "..."

STOP_WORDS = frozenset(
    {
        # articles / determiners
        "the", "a", "an", "this", "that", "these", "those", "any", "some", "all",
        # pronouns
        "i", "me", "my", "mine", "you", "your", "yours", "we", "our", "ours",
        "he", "him", "his", "she", "her", "they", "them", "their", "it", "its",
        # auxiliaries
        "is", "are", "was", "were", "be", "been", "being", "am",
        "have", "has", "had", "do", "does", "did", "can", "could", "would", "should", "will",
        # common query verbs
        "what", "which", "who", "when", "where", "why", "how",
        "write", "wrote", "written", "tell", "show", "find", "give", "get",
        "know", "remember", "recall", "about", "say", "said", "mention", "mentioned",
        # prepositions / conjunctions
        "in", "on", "at", "to", "for", "of", "with", "by", "from", "into", "and", "or",
        "not", "there", "than", "then",
    }
)


def extract_keywords(query: str | None) -> List[str]:
    """
    Turn a free-text query into keyword tokens, unique ignoring case.

    Quoted substrings and camelCase / snake_case identifiers are kept verbatim so
    exact references survive; everything else is lowercased, stripped of
    punctuation and filtered against ``STOP_WORDS`` and a minimum length of 3.
    """
    if not query or not query.strip():
        return []

    verbatim: List[str] = []
    for match in QUOTED_PATTERN.finditer(query):
        phrase = match.group(1).strip()
        if phrase:
            verbatim.append(phrase)
    verbatim.extend(CAMEL_CASE_PATTERN.findall(query))
    verbatim.extend(SNAKE_CASE_PATTERN.findall(query))

    words = [
        word
        for word in PUNCTUATION_PATTERN.sub(" ", query.lower()).split()
        if len(word) > 2 and word not in STOP_WORDS
    ]

    return _unique_ignoring_case([*verbatim, *words])


def _unique_ignoring_case(tokens: Iterable[str]) -> List[str]:
    """Drop tokens equal to an earlier one ignoring case; the first spelling is kept."""
    seen: dict[str, str] = {}
    for token in tokens:
        if token:
            seen.setdefault(token.casefold(), token)
    return list(seen.values())


@lru_cache(maxsize=512)
def _whole_word_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)", re.IGNORECASE)


@lru_cache(maxsize=512)
def _substring_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(re.escape(keyword), re.IGNORECASE)


def count_occurrences(text: str, keyword: str) -> int:
    """Count non-overlapping case-insensitive occurrences of ``keyword``."""
    if not text or not keyword:
        return 0
    return len(_substring_pattern(keyword).findall(text))


def calculate_relevance(text: str | None, keywords: Iterable[str]) -> int:
    """Score ``text``: whole-word hits weigh 3, bare substring hits weigh 1."""
    if not text:
        return 0
    score = 0
    for keyword in _unique_ignoring_case(keywords):
        exact = len(_whole_word_pattern(keyword).findall(text))
        partial = max(count_occurrences(text, keyword) - exact, 0)
        score += exact * WHOLE_WORD_WEIGHT + partial * SUBSTRING_WEIGHT
    return score


def score_item(title: str | None, body: str | None, keywords: Sequence[str]) -> int:
    """Combined score for an item: body score plus a doubled title score."""
    title = title or ""
    full_text = f"{title} {body or ''}"
    return calculate_relevance(full_text, keywords) + calculate_relevance(title, keywords) * TITLE_WEIGHT


def extract_snippet(
    text: str | None,
    keywords: Sequence[str],
    max_length: int = DEFAULT_SNIPPET_LENGTH,
) -> str:
    """
    Return the keyword-densest ``max_length`` window of ``text``.

    Windows advance in ``SNIPPET_STEP`` increments; the first best-scoring one
    wins. The start is moved back to the beginning of the word it cuts and the
    end pulled back to the last whole word, so the body never exceeds
    ``max_length``. Ellipses mark truncation on either side.
    """
    if not text:
        return ""
    if max_length <= 0:
        return ""
    if len(text) <= max_length:
        return text

    best_start = 0
    best_score = 0
    for offset in range(0, len(text) - max_length, SNIPPET_STEP):
        window = text[offset : offset + max_length]
        score = sum(count_occurrences(window, keyword) for keyword in keywords)
        if score > best_score:
            best_score = score
            best_start = offset

    start = best_start
    if start > 0 and not text[start - 1].isspace():
        boundary = text.rfind(" ", 0, start)
        start = boundary + 1 if boundary >= 0 else 0

    end = min(start + max_length, len(text))
    if end < len(text) and not text[end].isspace():
        boundary = text.rfind(" ", start, end)
        if boundary > start:
            end = boundary

    snippet = text[start:end].strip()
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(text):
        snippet = snippet + ELLIPSIS
    return snippet


__all__ = [
    "STOP_WORDS",
    "extract_keywords",
    "count_occurrences",
    "calculate_relevance",
    "score_item",
    "extract_snippet",
]
