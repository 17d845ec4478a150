"""Structured logging configuration using structlog.

JSON lines when stderr is piped, colored console output on a terminal.
Every event logged during an injection carries the request identity
(``agent_type``, ``spec_id``, ``task_id``) and the current pipeline stage.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, MutableMapping

import structlog

from asd_context.hooks.run_tracker import get_current_run

if TYPE_CHECKING:
    from asd_context.core.config import ObservabilityConfig


def add_run_context(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Stamp the active :class:`InjectionRun` onto the event; explicit keys win."""
    run = get_current_run()
    if run is None:
        return event_dict
    event_dict.setdefault("agent_type", run.agent_type)
    event_dict.setdefault("stage", run.stage.value)
    if run.spec_id:
        event_dict.setdefault("spec_id", run.spec_id)
    if run.task_id:
        event_dict.setdefault("task_id", run.task_id)
    return event_dict


def setup_logging(config: ObservabilityConfig) -> None:
    """Route stdlib logging (``asd_context.*`` loggers included) through structlog."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        add_run_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    renderer: Any
    if sys.stderr.isatty():
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("asd_context").setLevel(level)
