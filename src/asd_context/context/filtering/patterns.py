"""Search-pattern derivation and flexible text matching.

Everything here is pure: no I/O, no logging, and no function raises on
user-supplied patterns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SEPARATOR_RE = re.compile(r"[-_\s]+")
_WORD_SPLIT_RE = re.compile(r"[-\s]+")

SKIPPED_KEYS = frozenset({"filtering", "metadata", "__internal"})
MIN_TOKEN_LENGTH = 3


@dataclass(frozen=True)
class SearchPattern:
    """A literal string or a regular expression derived from a requirement."""

    text: str
    is_regex: bool = False

    @property
    def source(self) -> str:
        return self.text if self.is_regex else re.escape(self.text)

    def compile(self) -> re.Pattern[str]:
        return re.compile(self.source, re.IGNORECASE)

    def __str__(self) -> str:
        return self.text


def generate_search_patterns(requirement: str) -> list[SearchPattern]:
    """Derive search patterns from a requirement, most specific first.

    Order: the literal requirement, a whitespace-flexible regex in which each
    run of ``-``, ``_`` or whitespace matches ``\\s+``, every token longer than
    two characters, and the hyphen-separated parts.  Patterns with the same
    case-insensitive regex source are kept once.
    """
    candidates = [SearchPattern(requirement)]

    parts = [p for p in _SEPARATOR_RE.split(requirement) if p]
    if len(parts) > 1:
        candidates.append(
            SearchPattern(r"\s+".join(re.escape(p) for p in parts), is_regex=True)
        )

    candidates.extend(
        SearchPattern(word)
        for word in _WORD_SPLIT_RE.split(requirement)
        if len(word) >= MIN_TOKEN_LENGTH
    )

    if "-" in requirement:
        candidates.extend(SearchPattern(part) for part in requirement.split("-") if part)

    seen: set[str] = set()
    patterns: list[SearchPattern] = []
    for pattern in candidates:
        if not pattern.text.strip():
            continue
        key = pattern.source.lower()
        if key in seen:
            continue
        seen.add(key)
        patterns.append(pattern)
    return patterns


def find_pattern_matches(text: str, pattern: SearchPattern) -> list[re.Match[str]]:
    """All non-overlapping case-insensitive occurrences of *pattern* in *text*."""
    return list(pattern.compile().finditer(text))


def matches_pattern(text: str, pattern: str) -> bool:
    """Case-insensitive flexible match used for requirement and include/exclude checks.

    Tries a plain substring first, then a regex in which ``*`` and ``-`` match
    any run of characters.  If the regex cannot be compiled, any single word
    of the pattern appearing in the text counts as a match.
    """
    if not text or not pattern:
        return False

    haystack = text.lower()
    needle = pattern.lower()
    if needle in haystack:
        return True

    regex = re.escape(needle).replace(r"\*", ".*").replace(r"\-", ".*")
    try:
        return re.search(regex, haystack) is not None
    except re.error:
        return any(word and word in haystack for word in _WORD_SPLIT_RE.split(needle))


def extract_searchable_text(obj: Any) -> str:
    """Flatten a nested structure into one space-joined string.

    Mapping keys are included alongside their values; ``filtering``,
    ``metadata`` and ``__internal`` subtrees are skipped.
    """
    if obj is None:
        return ""
    if isinstance(obj, str):
        return obj
    if isinstance(obj, bool):
        return "true" if obj else "false"
    if isinstance(obj, (int, float)):
        return str(obj)
    if hasattr(obj, "model_dump"):
        return extract_searchable_text(obj.model_dump(mode="json"))
    if isinstance(obj, dict):
        parts: list[str] = []
        for key, value in obj.items():
            if key in SKIPPED_KEYS:
                continue
            parts.append(str(key))
            parts.append(extract_searchable_text(value))
        return " ".join(parts)
    if isinstance(obj, (list, tuple, set)):
        return " ".join(extract_searchable_text(item) for item in obj)
    return ""
