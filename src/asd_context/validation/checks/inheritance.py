"""Inheritance section checks."""

from __future__ import annotations

from typing import Any, Mapping

from asd_context.validation.models import ValidationResult

EXPECTED_LEVELS = ("project", "spec", "task")


def check_inheritance(inheritance: Any, result: ValidationResult) -> None:
    if not isinstance(inheritance, Mapping):
        result.warnings.append("No inheritance information available")
        return

    if not inheritance.get("applied"):
        result.warnings.append("Context inheritance was not applied")

    hierarchy = inheritance.get("hierarchy")
    if not isinstance(hierarchy, list):
        result.warnings.append("Invalid inheritance hierarchy structure")
        hierarchy = []

    missing = [level for level in EXPECTED_LEVELS if level not in hierarchy]
    if missing:
        result.warnings.append(f"Inheritance missing levels: {', '.join(missing)}")
