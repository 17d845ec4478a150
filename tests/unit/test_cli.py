"""Tests for the asd-context CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from asd_context.cli import main as cli_main
from asd_context.frontmatter import parse

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from replacing pytest's root log handlers."""
    monkeypatch.setattr(cli_main, "setup_logging", lambda config: None)


class TestInit:
    def test_creates_layout(self, tmp_path: Path) -> None:
        result = runner.invoke(cli_main.app, ["init", "--root", str(tmp_path)])
        assert result.exit_code == 0
        assert (tmp_path / ".asd/context/specs").is_dir()
        assert (tmp_path / ".asd/state").is_dir()


class TestInject:
    def test_prints_summary(self, project_root: Path, backend_agent) -> None:
        result = runner.invoke(
            cli_main.app, ["inject", "backend-developer", "--root", str(project_root)]
        )
        assert result.exit_code == 0
        assert "Context for backend-developer" in result.output
        assert "Validation:" in result.output

    def test_writes_json(self, project_root: Path, backend_agent, tmp_path: Path) -> None:
        out = tmp_path / "bundle.json"
        result = runner.invoke(
            cli_main.app,
            [
                "inject",
                "backend-developer",
                "--spec",
                "FEAT-012",
                "--task",
                "TASK-002",
                "--root",
                str(project_root),
                "--output",
                str(out),
            ],
        )
        assert result.exit_code == 0
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["metadata"]["agent_type"] == "backend-developer"
        assert data["metadata"]["task_id"] == "TASK-002"
        assert set(data["layers"]) == {"critical", "task_specific", "agent_specific", "process"}

    def test_empty_agent_type_fails(self, project_root: Path) -> None:
        result = runner.invoke(cli_main.app, ["inject", "", "--root", str(project_root)])
        assert result.exit_code == 1

    def test_bad_root_fails_startup_checks(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli_main.app, ["inject", "qa-engineer", "--root", str(tmp_path / "missing")]
        )
        assert result.exit_code == 2


class TestValidate:
    def test_all_valid(self, project_root: Path, write_doc) -> None:
        write_doc(
            "context/specs/FEAT-012-context.md",
            {
                "context_type": "spec",
                "spec_id": "FEAT-012",
                "spec_title": "Rate limiting",
                "priority": "P1",
                "status": "active",
            },
            "# Spec\n",
        )
        result = runner.invoke(cli_main.app, ["validate", "--root", str(project_root)])
        assert result.exit_code == 0
        assert "1 files, 1 valid, 0 invalid" in result.output

    def test_invalid_file_exits_nonzero(self, project_root: Path, write_doc) -> None:
        path = write_doc("context/tasks/TASK-002-context.md", {"context_type": "task"}, "body\n")
        result = runner.invoke(cli_main.app, ["validate", str(path), "--root", str(project_root)])
        assert result.exit_code == 1


class TestUpdate:
    def test_sets_header_fields(self, project_root: Path) -> None:
        result = runner.invoke(
            cli_main.app,
            [
                "update",
                "spec",
                "FEAT-012",
                "--set",
                "status=active",
                "--set",
                "assigned_agents=[backend-developer, qa-engineer]",
                "--root",
                str(project_root),
            ],
        )
        assert result.exit_code == 0
        path = project_root / ".asd/context/specs/FEAT-012-context.md"
        header = parse(path.read_text(encoding="utf-8")).header
        assert header["status"] == "active"
        assert header["assigned_agents"] == ["backend-developer", "qa-engineer"]

    def test_rejects_malformed_assignment(self, project_root: Path) -> None:
        result = runner.invoke(
            cli_main.app, ["update", "spec", "FEAT-012", "--set", "oops", "--root", str(project_root)]
        )
        assert result.exit_code != 0

    def test_unknown_kind(self, project_root: Path) -> None:
        result = runner.invoke(
            cli_main.app, ["update", "epic", "E-1", "--set", "a=1", "--root", str(project_root)]
        )
        assert result.exit_code == 1


class TestTrigger:
    def test_task_start_writes_context_and_state(self, project_root: Path) -> None:
        result = runner.invoke(
            cli_main.app,
            [
                "trigger",
                "task_start",
                "--set",
                "spec_id=FEAT-012",
                "--set",
                "task_id=TASK-002",
                "--set",
                "agent_type=backend-developer",
                "--root",
                str(project_root),
            ],
        )
        assert result.exit_code == 0, result.output
        path = project_root / ".asd/context/tasks/TASK-002-context.md"
        assert parse(path.read_text(encoding="utf-8")).header["status"] == "in_progress"
        state = json.loads((project_root / ".asd/state/assignments.json").read_text(encoding="utf-8"))
        assert state["FEAT-012"]["TASK-002"]["agent"] == "backend-developer"

    def test_missing_fields_fail(self, project_root: Path) -> None:
        result = runner.invoke(
            cli_main.app, ["trigger", "assign", "--set", "task_id=TASK-002", "--root", str(project_root)]
        )
        assert result.exit_code == 1

    def test_unknown_event_fails(self, project_root: Path) -> None:
        result = runner.invoke(cli_main.app, ["trigger", "deploy", "--root", str(project_root)])
        assert result.exit_code == 1
