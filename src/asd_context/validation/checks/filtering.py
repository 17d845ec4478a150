"""Filtering section checks."""

from __future__ import annotations

from typing import Any, Mapping

from asd_context.validation.models import ValidationResult


def check_filtering(filtering: Any, result: ValidationResult) -> None:
    if not isinstance(filtering, Mapping):
        result.warnings.append("No filtering information available")
        return

    if not filtering.get("applied"):
        result.warnings.append("Context filtering was not applied")

    scores = filtering.get("relevance_scores") or {}
    for layer, score in scores.items():
        value = score.get("overall_score") if isinstance(score, Mapping) else None
        if not _is_unit_interval(value):
            result.warnings.append(f"Invalid relevance score for {layer}: {value}")


def _is_unit_interval(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return 0 <= value <= 1
