"""Per-request injection tracker using ContextVars.

Stage timings and soft-failure warnings are recorded on the active
:class:`InjectionRun` without threading it through every call.  Layer loads
run as separate asyncio tasks; each task inherits a copy of the context, so
they all see (and append to) the same run object.

Usage::

    run = start_run("backend-developer", spec_id="FEAT-012")
    with track_stage("critical"):
        ...
    record_warning("Failed to load critical context from project.md: ...")
    run = end_run()
    print(run.performance)
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from enum import Enum
from typing import Generator

import structlog

log = logging.getLogger(__name__)


class InjectionStage(str, Enum):
    """Pipeline states for one injection request."""

    INIT = "init"
    LOAD_LAYERS = "load_layers"
    APPLY_INHERITANCE = "apply_inheritance"
    FILTER = "filter"
    VALIDATE = "validate"
    CACHE = "cache"
    DONE = "done"
    ERROR = "error"


@dataclass
class InjectionRun:
    agent_type: str
    spec_id: str | None = None
    task_id: str | None = None
    stage: InjectionStage = InjectionStage.INIT
    performance: dict[str, float] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.perf_counter)
    _token: Token | None = field(default=None, repr=False)

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000

    def advance(self, stage: InjectionStage) -> None:
        log.debug("Injection %s → %s", self.stage.value, stage.value)
        self.stage = stage
        structlog.contextvars.bind_contextvars(stage=stage.value)


_current_run: ContextVar[InjectionRun | None] = ContextVar("asd_current_run", default=None)


def get_current_run() -> InjectionRun | None:
    """Get the active InjectionRun, or None if no run is active."""
    return _current_run.get()


def start_run(
    agent_type: str,
    *,
    spec_id: str | None = None,
    task_id: str | None = None,
) -> InjectionRun:
    """Create and activate a new InjectionRun for the current context.

    Runs nest: :func:`end_run` restores whichever run was active before.
    """
    run = InjectionRun(agent_type=agent_type, spec_id=spec_id, task_id=task_id)
    run._token = _current_run.set(run)
    structlog.contextvars.bind_contextvars(agent_type=agent_type)
    return run


def end_run() -> InjectionRun | None:
    """Deactivate the current run and return it. Returns None if no run is active."""
    run = _current_run.get()
    if run is None:
        return None

    if run._token is not None:
        _current_run.reset(run._token)
        run._token = None
    else:
        _current_run.set(None)

    outer = _current_run.get()
    if outer is None:
        structlog.contextvars.unbind_contextvars("agent_type", "stage")
    else:
        structlog.contextvars.bind_contextvars(agent_type=outer.agent_type, stage=outer.stage.value)
    return run


@contextmanager
def track_stage(name: str) -> Generator[None, None, None]:
    """Record the wall time of the enclosed block as ``performance[name]`` in ms.

    No-op if no run is active.
    """
    run = _current_run.get()
    start = time.perf_counter()
    try:
        yield
    finally:
        if run is not None:
            run.performance[name] = round((time.perf_counter() - start) * 1000, 3)


def record_warning(message: str) -> None:
    """Log a soft failure and attach it to the active run, if any."""
    log.warning(message)
    run = _current_run.get()
    if run is not None:
        run.warnings.append(message)
