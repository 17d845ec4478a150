"""Context validator: dispatches bundle checks and validates files on disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from asd_context import frontmatter
from asd_context.exceptions import ParseError
from asd_context.validation.checks.filtering import check_filtering
from asd_context.validation.checks.inheritance import check_inheritance
from asd_context.validation.checks.layers import check_layers
from asd_context.validation.checks.performance import (
    DEFAULT_LAYER_BUDGET_MS,
    DEFAULT_TOTAL_BUDGET_MS,
    check_performance,
)
from asd_context.validation.checks.structure import check_structure
from asd_context.validation.models import (
    FileValidationResult,
    IssueSeverity,
    ValidationResult,
    ValidationSummary,
)
from asd_context.validation.schemas import validate_context_schema

if TYPE_CHECKING:
    from asd_context.context.models import ContextBundle

log = logging.getLogger(__name__)


def infer_expected_type(path: Path) -> str:
    """Guess the schema for a context file from its name and location."""
    name = path.name
    if name.endswith("-context.md"):
        return "spec" if name.startswith("FEAT-") else "task"
    if name == "project.md":
        return "project"
    if "agents" in path.parts:
        return "agent"
    return "unknown"


class ContextValidator:
    """Validates injected bundles and context files.

    Validation is pure computation over a JSON-shaped view of the bundle.
    Each check runs independently; an unexpected failure in one check is
    recorded as an error and does not stop the others.
    """

    def __init__(
        self,
        *,
        total_budget_ms: float = DEFAULT_TOTAL_BUDGET_MS,
        layer_budget_ms: float = DEFAULT_LAYER_BUDGET_MS,
    ) -> None:
        self._total_budget_ms = total_budget_ms
        self._layer_budget_ms = layer_budget_ms

    def validate_injected_context(
        self,
        bundle: ContextBundle | Mapping[str, Any],
    ) -> ValidationResult:
        """Run structure, layer, inheritance, filtering and performance checks."""
        data: Mapping[str, Any]
        if hasattr(bundle, "model_dump"):
            data = bundle.model_dump(mode="json", exclude={"validation", "automation"})
        else:
            data = bundle

        metadata = data.get("metadata") if isinstance(data, Mapping) else None
        performance = metadata.get("performance") if isinstance(metadata, Mapping) else None
        result = ValidationResult(performance=dict(performance or {}))

        checks: list[tuple[str, Callable[[], None]]] = [
            ("structure", lambda: check_structure(data, result)),
            ("layers", lambda: check_layers(data.get("layers"), result)),
            ("inheritance", lambda: check_inheritance(data.get("inheritance"), result)),
            ("filtering", lambda: check_filtering(data.get("filtering"), result)),
            (
                "performance",
                lambda: check_performance(
                    performance,
                    result,
                    total_budget_ms=self._total_budget_ms,
                    layer_budget_ms=self._layer_budget_ms,
                ),
            ),
        ]
        for name, check in checks:
            try:
                check()
            except Exception as exc:
                log.exception("Validation check %s failed", name)
                result.add(IssueSeverity.ERROR, f"Context validation failed: {exc}")

        return result.finalize()

    def validate_context_schema(
        self,
        header: Mapping[str, Any],
        schema_type: str,
        result: ValidationResult,
    ) -> None:
        validate_context_schema(header, schema_type, result)

    # ── Files ───────────────────────────────────────────────────────

    def validate_context_file(self, path: Path, expected_type: str) -> FileValidationResult:
        """Validate one context file against *expected_type*.

        A missing file yields an invalid result.  A malformed header raises
        :class:`ParseError`.
        """
        result = FileValidationResult(file_path=str(path), expected_type=expected_type)

        if not path.is_file():
            result.errors.append(f"Context file does not exist: {path}")
            result.is_valid = False
            return result

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            result.errors.append(f"Failed to validate context file: {exc}")
            result.is_valid = False
            return result

        document = frontmatter.parse(text, strict=True, source=str(path))
        result.header = document.header
        result.body = document.body

        if not document.header:
            result.errors.append("Context file missing YAML frontmatter")
        else:
            result.actual_type = document.get("context_type") or document.get("agent_type")
            validate_context_schema(document.header, expected_type, result)

        if not document.body.strip():
            result.warnings.append("Context file has no markdown content")

        result.is_valid = not result.errors
        return result

    def validate_context_files(self, paths: Iterable[Path]) -> ValidationSummary:
        """Validate many files, inferring each expected type from its path."""
        summary = ValidationSummary()
        for path in paths:
            expected = infer_expected_type(path)
            try:
                result = self.validate_context_file(path, expected)
            except ParseError as exc:
                result = FileValidationResult(
                    file_path=str(path),
                    expected_type=expected,
                    is_valid=False,
                    errors=[f"Failed to validate context file: {exc}"],
                )

            summary.results.append(result)
            summary.total_files += 1
            if result.is_valid:
                summary.valid_files += 1
            else:
                summary.invalid_files += 1
            summary.warnings += len(result.warnings)

        log.info(
            "Validated %d context files: %d valid, %d invalid",
            summary.total_files,
            summary.valid_files,
            summary.invalid_files,
        )
        return summary
