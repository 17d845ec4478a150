"""Startup validation: fail-fast on critical misconfigurations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from asd_context.core.config import AppSettings

log = logging.getLogger(__name__)


def validate_settings(settings: AppSettings) -> None:
    """Validate application settings at startup. Raises ValueError on fatal misconfig."""
    _check_budgets(settings)
    _check_project_root(settings)


def _check_budgets(settings: AppSettings) -> None:
    """Budgets must nest: layer <= standard <= automated."""
    engine = settings.engine
    if engine.layer_budget_ms > engine.performance_budget_ms:
        raise ValueError(
            f"ASD_ENGINE_LAYER_BUDGET_MS ({engine.layer_budget_ms}) exceeds "
            f"ASD_ENGINE_PERFORMANCE_BUDGET_MS ({engine.performance_budget_ms})."
        )
    if engine.performance_budget_ms > engine.automation_budget_ms:
        raise ValueError(
            f"ASD_ENGINE_PERFORMANCE_BUDGET_MS ({engine.performance_budget_ms}) exceeds "
            f"ASD_ENGINE_AUTOMATION_BUDGET_MS ({engine.automation_budget_ms})."
        )


def _check_project_root(settings: AppSettings) -> None:
    """Root must be a directory; a missing ``.asd`` only warns."""
    root = settings.project.root
    if not root.is_dir():
        raise ValueError(f"ASD_PROJECT_ROOT does not exist or is not a directory: {root}")
    if not (root / ".asd").is_dir():
        log.warning(
            "No .asd directory under %s. All context layers will be empty. "
            "Run `asd-context init` to create the layout.",
            root,
        )
