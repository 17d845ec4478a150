"""Readiness assessment for automated (gatherer-backed) injection."""

from __future__ import annotations

from typing import Any, Mapping

from asd_context.context.models import AutomationContext, ReadinessCheck, ReadinessReport
from asd_context.validation.models import ValidationResult

SPECIFICATION_WEIGHT = 0.35
CHECKLIST_WEIGHT = 0.35
RELEVANCE_WEIGHT = 0.15
VALIDATION_WEIGHT = 0.15

MIN_RELEVANCE = 0.6
READY_THRESHOLD = 0.7


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


def assess_readiness(
    gathered: Mapping[str, Any],
    validation: ValidationResult | None,
) -> ReadinessReport:
    """Score whether gathered task context is enough to start work.

    The task checklist counts when present, even if empty.
    """
    task_specific = _section(gathered, "task_specific")
    task = task_specific.get("task")
    relevance = _section(gathered, "validation").get("relevance_score")

    has_relevance = isinstance(relevance, (int, float)) and not isinstance(relevance, bool)
    outcomes = [
        ("specification", bool(task_specific.get("specification")), SPECIFICATION_WEIGHT,
         "Missing task specification"),
        ("checklist", isinstance(task, Mapping) and task.get("checklist") is not None,
         CHECKLIST_WEIGHT, "Missing task checklist"),
        ("relevance", has_relevance and relevance >= MIN_RELEVANCE, RELEVANCE_WEIGHT,
         f"Low context relevance score: {relevance}"),
        ("validation", validation is not None and validation.is_valid, VALIDATION_WEIGHT,
         "Standard context validation failed"),
    ]
    checks = [
        ReadinessCheck(name=name, passed=passed, weight=weight, detail="" if passed else issue)
        for name, passed, weight, issue in outcomes
    ]

    score = round(sum(c.weight for c in checks if c.passed), 6)
    return ReadinessReport(
        is_ready=score >= READY_THRESHOLD,
        score=min(score, 1.0),
        issues=[c.detail for c in checks if not c.passed],
        checks=checks,
    )


def build_automation_context(
    gathered: Mapping[str, Any],
    validation: ValidationResult | None,
) -> AutomationContext:
    return AutomationContext(
        enabled=True,
        task_specific=dict(gathered),
        validation=assess_readiness(gathered, validation),
    )
