"""Context triggers: lifecycle events that write context and state files.

Each event name maps to one async handler.  Handlers validate their payload,
write through :meth:`ContextStore.update_context`, and keep the JSON state
under ``.asd/state`` current so later injections see fresh assignments and
progress.

State file layout::

    assignments.json  {spec_id: {task_id: {agent, status, assigned_at, updated_at}}}
    progress.json     {task_id: {spec_id, ..., updated_at}}

Usage::

    triggers = ContextTriggerSystem(ContextStore(ProjectRoot(".")))
    await triggers.initialize()
    await triggers.fire_trigger("task_start", {
        "spec_id": "FEAT-012", "task_id": "TASK-002", "agent_type": "backend-developer",
    })
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, Field

from asd_context.context.store import ContextKind, ContextStore, dedupe
from asd_context.core.context_config import (
    ContextConfig,
    default_context_config,
    load_context_config,
)
from asd_context.exceptions import ConfigError, TriggerError
from asd_context.validation import create_validator
from asd_context.validation.models import ValidationSummary

log = logging.getLogger(__name__)

TriggerHandler = Callable[[Mapping[str, Any]], Awaitable[Any]]
Listener = Callable[[dict[str, Any]], None]

UPDATED_BY = "context_trigger_system"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TriggerEvent(str, Enum):
    TASK_START = "task_start"
    TASK_PROGRESS = "task_progress"
    TASK_COMPLETE = "task_complete"
    CONTEXT_ADD = "context_add"
    ASSIGN = "assign"
    COMPLETE = "complete"
    RESEARCH = "research"
    CONTEXT_VALIDATE = "context_validate"


# ── Payloads ────────────────────────────────────────────────────────


class TaskStartEvent(BaseModel):
    spec_id: str = Field(min_length=1)
    task_id: str = Field(min_length=1)
    agent_type: str = Field(min_length=1)
    priority: str = "P2"
    title: str = ""
    subtasks_total: int = Field(default=0, ge=0)


class TaskProgressEvent(BaseModel):
    task_id: str = Field(min_length=1)
    spec_id: str | None = None
    progress: dict[str, Any] | None = None
    notes: list[Any] = Field(default_factory=list)
    blockers: list[Any] | None = None
    decisions: list[Any] = Field(default_factory=list)


class TaskCompleteEvent(BaseModel):
    spec_id: str = Field(min_length=1)
    task_id: str = Field(min_length=1)
    agent_type: str = ""
    completion_notes: str = ""
    handoff_to: str | None = None
    research_findings: list[Any] = Field(default_factory=list)
    decisions: list[Any] = Field(default_factory=list)


class ContextAddEvent(BaseModel):
    context_type: ContextKind
    context_id: str = ""
    updates: dict[str, Any] = Field(default_factory=dict)


class AssignmentEvent(BaseModel):
    spec_id: str = Field(min_length=1)
    task_id: str = Field(min_length=1)
    agent_type: str = Field(min_length=1)
    priority: str = "P2"


class ResearchEvent(BaseModel):
    finding: str = Field(min_length=1)
    spec_id: str | None = None
    task_id: str | None = None
    source: str = "manual"
    agent_type: str | None = None


class ValidationEvent(BaseModel):
    files: list[Path] = Field(default_factory=list)


def _task_body(task_id: str) -> str:
    return (
        f"# Task Context: {task_id}\n\n"
        "## Implementation Notes\n\n"
        f"*Task started {_now()}*\n\n"
        "## Research Findings\n\n"
        "## Decisions Made\n\n"
        "## Next Steps\n"
    )


# ── Trigger system ──────────────────────────────────────────────────


class ContextTriggerSystem:
    """Dispatches lifecycle events to handlers that update context files.

    Handlers raise on bad input or failed writes; :meth:`fire_trigger`
    turns that into a ``False`` return plus a ``trigger_error`` notification.
    """

    def __init__(self, store: ContextStore, *, validator: Any = None) -> None:
        self._store = store
        self._validator = validator
        self._handlers: dict[str, TriggerHandler] = {}
        self._listeners: dict[str, list[Listener]] = {}
        self._config: ContextConfig = default_context_config()
        self._initialized = False

        self.register_trigger(TriggerEvent.TASK_START, self.handle_task_start)
        self.register_trigger(TriggerEvent.TASK_PROGRESS, self.handle_task_progress)
        self.register_trigger(TriggerEvent.TASK_COMPLETE, self.handle_task_complete)
        self.register_trigger(TriggerEvent.CONTEXT_ADD, self.handle_context_add)
        self.register_trigger(TriggerEvent.ASSIGN, self.handle_assignment)
        self.register_trigger(TriggerEvent.COMPLETE, self.handle_task_complete)
        self.register_trigger(TriggerEvent.RESEARCH, self.handle_research)
        self.register_trigger(TriggerEvent.CONTEXT_VALIDATE, self.handle_validation)

    async def initialize(self) -> bool:
        """Load ``context-config.json`` and create the ``.asd`` tree."""
        if self._initialized:
            return True

        config_path = self._store.get_context_paths().config / "context-config.json"
        try:
            self._config = load_context_config(config_path)
        except ConfigError as exc:
            log.warning("Failed to load trigger configuration: %s", exc)
            self._config = default_context_config()

        if not await self._store.initialize_context_structure():
            return False

        self._initialized = True
        self._emit("initialized", {})
        return True

    @property
    def enabled(self) -> bool:
        return self._config.context_system.enabled

    # ── Registration ────────────────────────────────────────────────

    def register_trigger(self, event: str, handler: TriggerHandler) -> None:
        """Bind *handler* to *event*, replacing any existing handler."""
        self._handlers[str(getattr(event, "value", event))] = handler

    def add_listener(self, event: str, callback: Listener) -> None:
        """Subscribe to a notification such as ``handoff_ready`` or ``trigger_error``."""
        self._listeners.setdefault(event, []).append(callback)

    def _emit(self, event: str, payload: dict[str, Any]) -> None:
        for callback in self._listeners.get(event, []):
            try:
                callback(payload)
            except Exception:
                log.exception("Listener for %s failed", event)

    # ── Dispatch ────────────────────────────────────────────────────

    async def fire_trigger(self, event: str, data: Mapping[str, Any] | None = None) -> bool:
        """Run the handler for *event*. Returns False if it is unknown or fails."""
        name = str(getattr(event, "value", event))
        handler = self._handlers.get(name)
        if handler is None:
            log.warning("No trigger handler found for event: %s", name)
            return False
        if not self.enabled:
            log.info("Context system disabled; ignoring trigger %s", name)
            return False

        payload = dict(data or {})
        try:
            await handler(payload)
        except Exception as exc:
            log.error("Trigger %s failed: %s", name, exc)
            self._emit("trigger_error", {"event": name, "data": payload, "error": str(exc)})
            return False

        self._emit("trigger_fired", {"event": name, "data": payload})
        return True

    def get_status(self) -> dict[str, Any]:
        return {
            "initialized": self._initialized,
            "enabled": self.enabled,
            "triggers_registered": sorted(self._handlers),
            "trigger_config": self._config.update_triggers,
        }

    # ── Handlers ────────────────────────────────────────────────────

    async def handle_task_start(self, data: Mapping[str, Any]) -> None:
        event = TaskStartEvent.model_validate(data)
        existing = self._store.read_context("task", event.task_id)

        updates: dict[str, Any] = {
            "header": {
                "context_type": "task",
                "task_id": event.task_id,
                "spec_id": event.spec_id,
                "task_title": event.title or event.task_id,
                "assigned_agent": event.agent_type,
                "status": "in_progress",
                "priority": event.priority,
                "started": _now(),
                "progress": {
                    "subtasks_completed": 0,
                    "subtasks_total": event.subtasks_total,
                    "percentage": 0,
                },
            }
        }
        if existing is None:
            updates["body"] = _task_body(event.task_id)

        await self._update("task", event.task_id, updates)
        await self.update_assignment_tracking(
            event.spec_id, event.task_id, event.agent_type, "in_progress"
        )
        log.info("Task %s started by %s", event.task_id, event.agent_type)

    async def handle_task_progress(self, data: Mapping[str, Any]) -> None:
        event = TaskProgressEvent.model_validate(data)
        existing = self._store.read_context("task", event.task_id)
        current = existing.header if existing is not None else {}

        header: dict[str, Any] = {}
        if event.progress is not None:
            header["progress"] = event.progress
        if event.notes:
            header["implementation_notes"] = dedupe(
                [*_as_list(current.get("implementation_notes")), *event.notes]
            )
        if event.decisions:
            header["decisions_made"] = dedupe(
                [*_as_list(current.get("decisions_made")), *event.decisions]
            )
        if event.blockers is not None:
            header["blockers"] = event.blockers

        await self._update("task", event.task_id, {"header": header})

        spec_id = event.spec_id or current.get("spec_id")
        if spec_id and event.progress is not None:
            await self.update_progress_tracking(str(spec_id), event.task_id, event.progress)

    async def handle_task_complete(self, data: Mapping[str, Any]) -> None:
        event = TaskCompleteEvent.model_validate(data)
        existing = self._store.read_context("task", event.task_id)
        current = existing.header if existing is not None else {}

        header: dict[str, Any] = {
            "status": "completed",
            "completed_at": _now(),
            "completion_notes": event.completion_notes,
            "handoff_to": event.handoff_to,
        }
        if event.research_findings:
            header["research_findings"] = dedupe(
                [*_as_list(current.get("research_findings")), *event.research_findings]
            )
        if event.decisions:
            header["decisions_made"] = dedupe(
                [*_as_list(current.get("decisions_made")), *event.decisions]
            )
        await self._update("task", event.task_id, {"header": header})

        if not await self.rollup_task_context_to_spec(
            event.spec_id,
            event.task_id,
            research_findings=event.research_findings,
            decisions=event.decisions,
            completion_notes=event.completion_notes,
        ):
            raise TriggerError(f"Failed to roll up {event.task_id} into {event.spec_id}")

        agent = event.agent_type or str(current.get("assigned_agent") or "")
        await self.update_assignment_tracking(event.spec_id, event.task_id, agent, "completed")
        await self.update_progress_tracking(event.spec_id, event.task_id, {"status": "completed"})

        if event.handoff_to:
            self._emit(
                "handoff_ready",
                {
                    "from_task": event.task_id,
                    "to_task": event.handoff_to,
                    "spec_id": event.spec_id,
                    "completed_by": agent,
                },
            )

    async def handle_context_add(self, data: Mapping[str, Any]) -> None:
        event = ContextAddEvent.model_validate(data)
        if event.context_type != "project" and not event.context_id:
            raise ValueError(f"Context id is required for {event.context_type} context")

        header = {**event.updates, "updated_by": UPDATED_BY}
        await self._update(event.context_type, event.context_id, {"header": header})

    async def handle_assignment(self, data: Mapping[str, Any]) -> None:
        event = AssignmentEvent.model_validate(data)
        await self._update(
            "task",
            event.task_id,
            {
                "header": {
                    "spec_id": event.spec_id,
                    "assigned_agent": event.agent_type,
                    "assigned_at": _now(),
                    "status": "in_progress",
                    "priority": event.priority,
                }
            },
        )
        await self.update_assignment_tracking(
            event.spec_id, event.task_id, event.agent_type, "in_progress"
        )

    async def handle_research(self, data: Mapping[str, Any]) -> None:
        event = ResearchEvent.model_validate(data)
        if not event.task_id and not event.spec_id:
            raise ValueError("Research capture requires a spec_id or task_id")

        kind: ContextKind = "task" if event.task_id else "spec"
        context_id = event.task_id or event.spec_id or ""
        entry = {
            "finding": event.finding,
            "timestamp": _now(),
            "source": event.source,
            "agent": event.agent_type,
            "context": f"{event.spec_id}:{event.task_id}" if event.task_id else event.spec_id,
        }

        existing = self._store.read_context(kind, context_id)
        findings = _as_list(existing.header.get("research_findings")) if existing else []
        await self._update(kind, context_id, {"header": {"research_findings": [*findings, entry]}})
        log.info("Research captured for %s %s", kind, context_id)

    async def handle_validation(self, data: Mapping[str, Any]) -> ValidationSummary:
        event = ValidationEvent.model_validate(data)
        files = event.files or sorted(self._store.get_context_paths().base.rglob("*.md"))

        validator = self._validator or create_validator()
        summary = validator.validate_context_files(files)
        if summary.invalid_files:
            log.warning("Context validation issues: %d invalid files", summary.invalid_files)
        else:
            log.info("Context validation passed: %d files valid", summary.valid_files)

        self._emit("validation_complete", {"summary": summary})
        return summary

    # ── State tracking ──────────────────────────────────────────────

    async def update_assignment_tracking(
        self, spec_id: str, task_id: str, agent_type: str, status: str
    ) -> bool:
        """Record who holds *task_id* in ``assignments.json``."""
        path = self._store.get_context_paths().state / "assignments.json"
        try:
            assignments = _read_json_object(path)
            spec_entry = assignments.setdefault(spec_id, {})
            previous = spec_entry.get(task_id) or {}
            now = _now()
            spec_entry[task_id] = {
                "agent": agent_type,
                "status": status,
                "assigned_at": previous.get("assigned_at", now),
                "updated_at": now,
            }
            _write_json(path, assignments)
        except (OSError, ValueError) as exc:
            log.error("Failed to update assignment tracking: %s", exc)
            return False
        return True

    async def update_progress_tracking(
        self, spec_id: str, task_id: str, progress: Mapping[str, Any]
    ) -> bool:
        """Merge *progress* into ``progress.json`` under *task_id*."""
        path = self._store.get_context_paths().state / "progress.json"
        try:
            state = _read_json_object(path)
            entry = state.get(task_id) or {}
            state[task_id] = {**entry, **dict(progress), "spec_id": spec_id, "updated_at": _now()}
            _write_json(path, state)
        except (OSError, ValueError) as exc:
            log.error("Failed to update progress tracking: %s", exc)
            return False
        return True

    async def rollup_task_context_to_spec(
        self,
        spec_id: str,
        task_id: str,
        *,
        research_findings: list[Any] | None = None,
        decisions: list[Any] | None = None,
        completion_notes: str = "",
    ) -> bool:
        """Append a finished task's findings and decisions to its spec context.

        Mapping entries are tagged with ``source_task``.  Existing spec
        entries are kept; repeats are dropped.
        """
        findings = [_tag(item, task_id) for item in research_findings or []]
        made = [_tag(item, task_id) for item in decisions or []]
        if not findings and not made and not completion_notes:
            return True

        try:
            existing = self._store.read_context("spec", spec_id)
        except (OSError, ValueError) as exc:
            log.error("Failed to read spec context %s: %s", spec_id, exc)
            return False
        current = existing.header if existing is not None else {}

        header: dict[str, Any] = {}
        if findings:
            header["research_findings"] = dedupe(
                [*_as_list(current.get("research_findings")), *findings]
            )
        if made:
            header["implementation_decisions"] = dedupe(
                [*_as_list(current.get("implementation_decisions")), *made]
            )
        completion = {"task_id": task_id, "completed_at": _now(), "notes": completion_notes}
        header["task_completions"] = [*_as_list(current.get("task_completions")), completion]

        if not await self._store.update_context("spec", spec_id, {"header": header}):
            return False
        log.info("Rolled up %s into spec %s", task_id, spec_id)
        return True

    # ── Internal ────────────────────────────────────────────────────

    async def _update(self, kind: ContextKind, context_id: str, updates: Mapping[str, Any]) -> None:
        if not await self._store.update_context(kind, context_id, updates):
            raise TriggerError(f"Failed to update {kind} context {context_id}")


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _tag(item: Any, task_id: str) -> Any:
    if isinstance(item, Mapping):
        return {**item, "source_task": task_id}
    return item


def _read_json_object(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must hold a JSON object")
    return data


def _write_json(path: Path, data: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
