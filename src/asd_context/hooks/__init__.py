"""Cross-cutting hooks: logging setup and per-request run tracking."""

from __future__ import annotations

from asd_context.hooks.logging_config import setup_logging
from asd_context.hooks.run_tracker import (
    InjectionRun,
    InjectionStage,
    end_run,
    get_current_run,
    record_warning,
    start_run,
    track_stage,
)

__all__ = [
    "setup_logging",
    "InjectionRun",
    "InjectionStage",
    "start_run",
    "end_run",
    "get_current_run",
    "track_stage",
    "record_warning",
]
