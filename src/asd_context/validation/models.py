"""Validation data models: layer results, bundle results, and file reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

LAYER_NAMES = ("critical", "task_specific", "agent_specific", "process")


class IssueSeverity(str, Enum):
    """Severity of a validation issue."""

    ERROR = "error"
    WARNING = "warning"


class IssueSink(Protocol):
    """Anything that accumulates ``errors`` and ``warnings``."""

    errors: list[str]
    warnings: list[str]


@dataclass
class LayerValidation:
    """Checks for a single context layer."""

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    content_check: dict[str, bool] = field(default_factory=dict)


@dataclass
class ValidationResult:
    """Outcome of validating an injected context bundle.

    Errors make the bundle invalid; warnings never do.  The bundle is
    returned to the caller either way.
    """

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    layers: dict[str, LayerValidation] = field(default_factory=dict)
    performance: dict[str, float] = field(default_factory=dict)
    validated_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def add(self, severity: IssueSeverity, message: str) -> None:
        if severity == IssueSeverity.ERROR:
            self.errors.append(message)
        else:
            self.warnings.append(message)

    def finalize(self) -> ValidationResult:
        self.is_valid = not self.errors
        return self


@dataclass
class FileValidationResult:
    """Outcome of validating one context file on disk."""

    file_path: str
    expected_type: str
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    actual_type: str | None = None
    header: dict[str, Any] = field(default_factory=dict)
    body: str = ""


@dataclass
class ValidationSummary:
    """Aggregated results for a batch of context files."""

    total_files: int = 0
    valid_files: int = 0
    invalid_files: int = 0
    warnings: int = 0
    results: list[FileValidationResult] = field(default_factory=list)

    def invalid_results(self) -> list[FileValidationResult]:
        """Return only the results that failed validation."""
        return [r for r in self.results if not r.is_valid]
