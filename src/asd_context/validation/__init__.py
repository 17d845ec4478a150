"""Validation module: bundle checks, header schemas, and file validation.

Factory function::

    from asd_context.validation import create_validator
    validator = create_validator(settings)
    result = validator.validate_injected_context(bundle)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from asd_context.validation.models import (
    FileValidationResult,
    IssueSeverity,
    LayerValidation,
    ValidationResult,
    ValidationSummary,
)
from asd_context.validation.schemas import ENUM_RULES, SCHEMAS, validate_context_schema

if TYPE_CHECKING:
    from asd_context.core.config import AppSettings
    from asd_context.validation.engine import ContextValidator


def create_validator(settings: AppSettings | None = None) -> ContextValidator:
    """Create a ContextValidator using the engine budgets from *settings*."""
    from asd_context.validation.engine import ContextValidator

    if settings is None:
        return ContextValidator()
    return ContextValidator(
        total_budget_ms=settings.engine.performance_budget_ms,
        layer_budget_ms=settings.engine.layer_budget_ms,
    )


__all__ = [
    "ENUM_RULES",
    "SCHEMAS",
    "FileValidationResult",
    "IssueSeverity",
    "LayerValidation",
    "ValidationResult",
    "ValidationSummary",
    "create_validator",
    "validate_context_schema",
]
