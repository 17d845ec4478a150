"""Context file storage: static, dynamic, and semi-dynamic context.

Static context is the project document, dynamic context is the JSON state
under ``.asd/state``, and semi-dynamic context is the research findings and
decisions accumulated in spec and task context documents.  Every read is
soft: a missing or malformed source yields an empty structure and a warning.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Literal, Mapping

from asd_context import frontmatter
from asd_context.context.models import Document, Inheritance, TaskSpecificLayer
from asd_context.hooks.run_tracker import record_warning
from asd_context.interfaces import IProjectRootProvider

log = logging.getLogger(__name__)

ContextKind = Literal["project", "spec", "task"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Paths ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ContextPaths:
    """Fixed ``.asd`` layout under a project root."""

    base: Path
    context: Path
    agents: Path
    processes: Path
    state: Path
    config: Path

    @classmethod
    def from_root(cls, root: Path) -> ContextPaths:
        base = root / ".asd"
        return cls(
            base=base,
            context=base / "context",
            agents=base / "agents",
            processes=base / "processes",
            state=base / "state",
            config=base / "config",
        )

    @property
    def project(self) -> Path:
        return self.context / "project.md"

    def spec_context(self, spec_id: str) -> Path:
        return self.context / "specs" / f"{spec_id}-context.md"

    def task_context(self, task_id: str) -> Path:
        return self.context / "tasks" / f"{task_id}-context.md"

    def agent_definition(self, agent_type: str) -> Path:
        return self.agents / f"{agent_type}.md"

    def for_kind(self, kind: str, context_id: str) -> Path:
        if kind == "spec":
            return self.spec_context(context_id)
        if kind == "task":
            return self.task_context(context_id)
        if kind == "project":
            return self.project
        raise ValueError(f"Unknown context type: {kind}")

    def directories(self) -> list[Path]:
        return [
            self.base,
            self.context,
            self.context / "specs",
            self.context / "tasks",
            self.agents,
            self.processes,
            self.state,
            self.config,
        ]


# ── Context kinds ───────────────────────────────────────────────────


@dataclass
class StaticContext:
    project: Document | None = None
    constraints: list[Any] = field(default_factory=list)
    loaded_at: str = field(default_factory=_now)


@dataclass
class DynamicContext:
    assignments: dict[str, Any] = field(default_factory=dict)
    progress: dict[str, Any] = field(default_factory=dict)
    loaded_at: str = field(default_factory=_now)


@dataclass
class SemiDynamicContext:
    research_findings: list[Any] = field(default_factory=list)
    implementation_decisions: list[Any] = field(default_factory=list)
    loaded_at: str = field(default_factory=_now)


def dedupe(items: Iterable[Any]) -> list[Any]:
    """Drop repeated elements, keeping first occurrences.

    Unhashable elements (mappings, lists) compare by their canonical JSON.
    """
    seen: set[Any] = set()
    unique: list[Any] = []
    for item in items:
        try:
            marker: Any = ("h", item)
            hash(marker)
        except TypeError:
            marker = ("j", json.dumps(item, sort_keys=True, default=str))
        if marker in seen:
            continue
        seen.add(marker)
        unique.append(item)
    return unique


# ── Store ───────────────────────────────────────────────────────────


class ContextStore:
    """Reads and writes context files under the project's ``.asd`` directory."""

    def __init__(self, root: IProjectRootProvider) -> None:
        self._root = root

    def get_context_paths(self) -> ContextPaths:
        return ContextPaths.from_root(self._root.get_project_root())

    async def initialize_context_structure(self) -> bool:
        """Create the ``.asd`` directory tree. Returns False on failure."""
        try:
            for directory in self.get_context_paths().directories():
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log.error("Failed to initialize context structure: %s", exc)
            return False
        return True

    # ── Loads ───────────────────────────────────────────────────────

    async def load_static(self) -> StaticContext:
        """Load the project document and its header ``constraints``."""
        static = StaticContext()
        path = self.get_context_paths().project
        try:
            static.project = self._read_document(path)
        except (OSError, UnicodeDecodeError) as exc:
            record_warning(f"Failed to load project static context: {exc}")
            return static

        if static.project is None:
            log.debug("No project context at %s", path)
        else:
            static.constraints.extend(static.project.get_list("constraints"))
        return static

    async def load_dynamic(self) -> DynamicContext:
        """Load ``assignments.json`` and ``progress.json``; each degrades to ``{}``."""
        state_dir = self.get_context_paths().state
        return DynamicContext(
            assignments=self._read_state(state_dir / "assignments.json", "assignments"),
            progress=self._read_state(state_dir / "progress.json", "progress"),
        )

    async def load_semi_dynamic(
        self,
        spec_id: str | None = None,
        task_id: str | None = None,
    ) -> SemiDynamicContext:
        """Collect research findings and decisions from spec and task context."""
        semi = SemiDynamicContext()
        paths = self.get_context_paths()

        if spec_id:
            spec = self._read_soft(paths.spec_context(spec_id), f"spec context for {spec_id}")
            if spec is not None:
                semi.research_findings.extend(spec.get_list("research_findings"))
                semi.implementation_decisions.extend(spec.get_list("implementation_decisions"))

        if task_id:
            task = self._read_soft(paths.task_context(task_id), f"task context for {task_id}")
            if task is not None:
                semi.implementation_decisions.extend(task.get_list("implementation_notes"))
                semi.research_findings.extend(task.get_list("research_findings"))
                semi.implementation_decisions.extend(task.get_list("decisions_made"))

        return semi

    def read_context(self, kind: ContextKind, context_id: str) -> Document | None:
        """Current project, spec or task document, or None if it does not exist.

        Raises:
            ValueError: If *kind* is not a context kind.
        """
        return self._read_document(self.get_context_paths().for_kind(kind, context_id))

    # ── Writes ──────────────────────────────────────────────────────

    async def update_context(
        self,
        kind: ContextKind,
        context_id: str,
        updates: Mapping[str, Any],
    ) -> bool:
        """Merge ``updates["header"]`` into a context document and rewrite it.

        ``updates["body"]`` replaces the body when given; otherwise the
        existing body is kept.  ``last_updated`` is always stamped.
        Returns False on any failure; never raises.
        """
        try:
            path = self.get_context_paths().for_kind(kind, context_id)

            existing = self._read_document(path) or Document()
            header = {
                **existing.header,
                **dict(updates.get("header") or {}),
                "last_updated": _now(),
            }
            body = updates.get("body")
            if body is None:
                body = existing.body

            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(frontmatter.serialize(header, body), encoding="utf-8")
        except (OSError, ValueError, TypeError) as exc:
            log.error("Failed to update %s context for %s: %s", kind, context_id, exc)
            return False

        log.info("Updated %s context %s", kind, context_id)
        return True

    # ── Inheritance ─────────────────────────────────────────────────

    async def apply_inheritance(
        self,
        task_layer: TaskSpecificLayer,
        spec_id: str | None = None,
        task_id: str | None = None,
    ) -> Inheritance:
        """Merge project → spec → task context into one :class:`Inheritance`.

        A level joins ``hierarchy`` only when its document was loaded.
        Constraints, decisions and research findings are deduplicated.
        """
        static, semi, dynamic = await asyncio.gather(
            self.load_static(),
            self.load_semi_dynamic(spec_id, task_id),
            self.load_dynamic(),
        )

        inheritance = Inheritance()
        constraints: list[Any] = []
        decisions: list[Any] = []
        findings: list[Any] = []

        # Level 1: project
        if static.project is not None:
            inheritance.hierarchy.append("project")
            constraints.extend(static.constraints)
            decisions.extend(static.project.get_list("architecture_decisions"))

        # Level 2: spec
        spec = task_layer.spec
        if spec_id and spec is not None:
            inheritance.hierarchy.append("spec")
            constraints.extend(spec.get_list("constraints"))
            decisions.extend(spec.get_list("implementation_decisions"))
            findings.extend(spec.get_list("research_findings"))

        # Level 3: task
        task = task_layer.task
        if task_id and task is not None:
            inheritance.hierarchy.append("task")
            decisions.extend(task.get_list("implementation_notes"))
            decisions.extend(task.get_list("decisions_made"))
            findings.extend(task.get_list("research_findings"))

            progress = task.get("progress", {})
            inheritance.progress = progress if isinstance(progress, dict) else {"value": progress}
            inheritance.blockers = task.get_list("blockers")
            inheritance.next_steps = task.get_list("next_steps")

        findings.extend(semi.research_findings)
        decisions.extend(semi.implementation_decisions)

        if spec_id and spec_id in dynamic.assignments:
            inheritance.current_assignments = dynamic.assignments[spec_id]
        if task_id and task_id in dynamic.progress:
            inheritance.current_progress = dynamic.progress[task_id]

        inheritance.constraints = dedupe(constraints)
        inheritance.decisions = dedupe(decisions)
        inheritance.research_findings = dedupe(findings)
        return inheritance

    # ── Internal ────────────────────────────────────────────────────

    @staticmethod
    def _read_document(path: Path) -> Document | None:
        """Parse a header/body file, or None if it does not exist."""
        if not path.is_file():
            return None
        return frontmatter.parse(path.read_text(encoding="utf-8"), source=str(path))

    def _read_soft(self, path: Path, label: str) -> Document | None:
        try:
            return self._read_document(path)
        except (OSError, UnicodeDecodeError) as exc:
            record_warning(f"Failed to load {label}: {exc}")
            return None

    @staticmethod
    def _read_state(path: Path, label: str) -> dict[str, Any]:
        if not path.is_file():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            record_warning(f"Failed to load {label}: {exc}")
            return {}
        if not isinstance(data, dict):
            record_warning(f"Failed to load {label}: expected a JSON object in {path.name}")
            return {}
        return data
