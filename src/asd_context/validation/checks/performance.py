"""Performance budget checks against ``metadata.performance``."""

from __future__ import annotations

from typing import Any, Mapping

from asd_context.validation.models import LAYER_NAMES, ValidationResult

DEFAULT_TOTAL_BUDGET_MS = 500
DEFAULT_LAYER_BUDGET_MS = 100


def check_performance(
    performance: Any,
    result: ValidationResult,
    *,
    total_budget_ms: float = DEFAULT_TOTAL_BUDGET_MS,
    layer_budget_ms: float = DEFAULT_LAYER_BUDGET_MS,
) -> None:
    if not isinstance(performance, Mapping) or not performance:
        result.warnings.append("No performance metrics available")
        return

    total = performance.get("total")
    if total and total > total_budget_ms:
        result.warnings.append(
            f"Context injection took {total}ms, exceeding {total_budget_ms}ms target"
        )

    for layer in LAYER_NAMES:
        elapsed = performance.get(layer)
        if elapsed and elapsed > layer_budget_ms:
            result.warnings.append(f"Layer {layer} took {elapsed}ms, consider optimization")
