"""Relevance scoring of layer content against agent context requirements."""

from __future__ import annotations

from typing import Any, Sequence

from asd_context.context.filtering.patterns import (
    extract_searchable_text,
    find_pattern_matches,
    generate_search_patterns,
)
from asd_context.context.models import RelevanceScore, RequirementScore

PATTERN_MATCH_WEIGHT = 0.1
PATTERN_SCORE_CAP = 0.5
EXACT_PHRASE_BONUS = 0.3

HIGH_PRIORITY_THRESHOLD = 0.7
MEDIUM_PRIORITY_THRESHOLD = 0.3

CONTENT_TYPE_BONUS = {
    "critical": 1.2,
    "agent_specific": 1.1,
}


def _overlaps(span: tuple[int, int], credited: list[tuple[int, int]]) -> bool:
    start, end = span
    return any(start < c_end and c_start < end for c_start, c_end in credited)


def calculate_requirement_score(content_text: str, requirement: str) -> RequirementScore:
    """Score how well *content_text* covers one requirement.

    Each derived pattern adds ``min(count * 0.1, 0.5)``, counting only
    occurrences that do not overlap text already credited to an earlier
    pattern.  The exact phrase anywhere in the text adds 0.3.  Capped at 1.
    """
    patterns = generate_search_patterns(requirement)
    score = 0.0
    matches: list[str] = []
    credited: list[tuple[int, int]] = []

    for pattern in patterns:
        fresh = [
            m for m in find_pattern_matches(content_text, pattern)
            if not _overlaps(m.span(), credited)
        ]
        if not fresh:
            continue
        credited.extend(m.span() for m in fresh)
        matches.extend(m.group(0) for m in fresh)
        score += min(len(fresh) * PATTERN_MATCH_WEIGHT, PATTERN_SCORE_CAP)

    if requirement and requirement.lower() in content_text.lower():
        score += EXACT_PHRASE_BONUS
        matches.append(requirement)

    return RequirementScore(
        requirement=requirement,
        score=min(score, 1.0),
        matches=matches,
        patterns=[str(p) for p in patterns],
    )


def calculate_content_relevance(
    content: Any,
    requirements: Sequence[str],
    content_type: str,
) -> RelevanceScore:
    """Score arbitrary content against all requirements.

    The overall score is the mean requirement score times the content-type
    bonus (critical ×1.2, agent_specific ×1.1), clamped to 1.  Content with
    no requirements, or no content at all, scores 0.
    """
    has_content = content is not None and content != ""
    result = RelevanceScore(
        content_type=content_type,
        total_requirements=len(requirements),
        has_content=has_content,
    )
    if not has_content or not requirements:
        return result

    text = extract_searchable_text(content)
    total = 0.0
    matched_terms: list[str] = []
    for requirement in requirements:
        requirement_score = calculate_requirement_score(text, requirement)
        result.requirement_scores[requirement] = requirement_score
        total += requirement_score.score
        for term in requirement_score.matches:
            if term not in matched_terms:
                matched_terms.append(term)

    overall = total / len(requirements) * CONTENT_TYPE_BONUS.get(content_type, 1.0)
    result.overall_score = min(overall, 1.0)
    result.matched_terms = matched_terms
    return result


def priority_bucket(score: float) -> str:
    """Map an overall score to ``high``, ``medium`` or ``low``."""
    if score >= HIGH_PRIORITY_THRESHOLD:
        return "high"
    if score >= MEDIUM_PRIORITY_THRESHOLD:
        return "medium"
    return "low"
