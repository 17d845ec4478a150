"""Relevance scoring and agent-specific annotation of context layers."""

from __future__ import annotations

from asd_context.context.filtering.filter import RelevanceFilter, basic_relevance_score
from asd_context.context.filtering.patterns import (
    SearchPattern,
    extract_searchable_text,
    find_pattern_matches,
    generate_search_patterns,
    matches_pattern,
)
from asd_context.context.filtering.relevance import (
    HIGH_PRIORITY_THRESHOLD,
    MEDIUM_PRIORITY_THRESHOLD,
    calculate_content_relevance,
    calculate_requirement_score,
    priority_bucket,
)

__all__ = [
    "HIGH_PRIORITY_THRESHOLD",
    "MEDIUM_PRIORITY_THRESHOLD",
    "RelevanceFilter",
    "SearchPattern",
    "basic_relevance_score",
    "calculate_content_relevance",
    "calculate_requirement_score",
    "extract_searchable_text",
    "find_pattern_matches",
    "generate_search_patterns",
    "matches_pattern",
    "priority_bucket",
]
