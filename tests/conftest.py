"""Shared fixtures for asd-context tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from asd_context.core.config import AppSettings, EngineConfig, ProjectConfig
from asd_context.frontmatter import serialize
from asd_context.interfaces import ProjectRoot

WriteDoc = Callable[..., Path]


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Empty project with the ``.asd`` directory layout."""
    asd = tmp_path / ".asd"
    for sub in ("context/specs", "context/tasks", "agents", "processes", "state", "config"):
        (asd / sub).mkdir(parents=True)
    return tmp_path


@pytest.fixture
def root_provider(project_root: Path) -> ProjectRoot:
    return ProjectRoot(project_root)


@pytest.fixture
def settings(project_root: Path) -> AppSettings:
    """Default settings rooted at the temporary project."""
    return AppSettings(project=ProjectConfig(root=project_root), engine=EngineConfig())


@pytest.fixture
def write_doc(project_root: Path) -> WriteDoc:
    """Write a header/body document under ``.asd`` and return its path."""

    def _write(rel_path: str, header: dict[str, Any] | None = None, body: str = "") -> Path:
        path = project_root / ".asd" / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(serialize(header or {}, body), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_json(project_root: Path) -> Callable[[str, Any], Path]:
    """Write a JSON file under ``.asd`` and return its path."""

    def _write(rel_path: str, data: Any) -> Path:
        path = project_root / ".asd" / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def backend_agent(write_doc: WriteDoc) -> Path:
    """``backend-developer`` agent definition with two context requirements."""
    return write_doc(
        "agents/backend-developer.md",
        {
            "agent_type": "backend-developer",
            "capabilities": ["api-design", "database-modeling"],
            "specialization_areas": ["rest", "persistence"],
            "context_requirements": ["api-design", "rate-limiting"],
            "workflow_steps": ["implement", "test"],
            "validation_requirements": ["tests pass"],
            "handoff_checklist": ["docs updated"],
        },
        "# Backend Developer\n\nBuilds services.\n",
    )
