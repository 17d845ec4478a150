"""Tests for loading .asd/config/context-config.json."""

from __future__ import annotations

from pathlib import Path

import pytest

from asd_context.core.context_config import default_context_config, load_context_config
from asd_context.exceptions import ConfigError


class TestDefaults:
    def test_layer_defaults(self) -> None:
        config = default_context_config()
        assert config.context_system.performance.injection_timeout_ms == 500
        assert config.layer("critical").sources == ["project.md", "urgent-constraints.md"]
        assert config.layer("process").max_size_kb == 25

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_context_config(tmp_path / "context-config.json")
        assert config == default_context_config()


class TestLoad:
    def test_overrides_named_layers_only(self, write_json) -> None:
        path = write_json(
            "config/context-config.json",
            {
                "context_system": {"performance": {"cache_ttl_seconds": 60}},
                "context_layers": {
                    "critical": {"priority": 1, "max_size_kb": 10, "sources": ["rules.md"]},
                },
            },
        )

        config = load_context_config(path)

        assert config.context_system.performance.cache_ttl_seconds == 60
        assert config.context_system.performance.cache_enabled is True
        assert config.layer("critical").sources == ["rules.md"]
        assert config.layer("process") == default_context_config().layer("process")

    def test_undecodable_json(self, project_root: Path) -> None:
        path = project_root / ".asd/config/context-config.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(ConfigError) as info:
            load_context_config(path)
        assert info.value.path == str(path)

    def test_non_object(self, write_json) -> None:
        path = write_json("config/context-config.json", [1, 2])
        with pytest.raises(ConfigError, match="must be a JSON object"):
            load_context_config(path)

    def test_invalid_layer(self, write_json) -> None:
        path = write_json("config/context-config.json", {"context_layers": {"critical": {"sources": []}}})
        with pytest.raises(ConfigError, match="Invalid context config"):
            load_context_config(path)

    def test_disabled_flag(self, write_json) -> None:
        path = write_json("config/context-config.json", {"context_system": {"enabled": False}})
        assert load_context_config(path).context_system.enabled is False


class TestUpdateTriggers:
    def test_default_trigger_map(self) -> None:
        triggers = default_context_config().update_triggers
        assert triggers["task_lifecycle"]["task_complete"] == [
            "finalize_task_context",
            "update_spec_context",
            "trigger_handoff",
        ]
        assert triggers["cli_commands"]["asd_research"] == ["capture_research_findings"]

    def test_file_replaces_trigger_map(self, write_json) -> None:
        path = write_json(
            "config/context-config.json",
            {"update_triggers": {"task_lifecycle": {"task_start": ["create_task_context"]}}},
        )
        assert load_context_config(path).update_triggers == {
            "task_lifecycle": {"task_start": ["create_task_context"]}
        }

    def test_malformed_trigger_map(self, write_json) -> None:
        path = write_json("config/context-config.json", {"update_triggers": {"task_lifecycle": ["x"]}})
        with pytest.raises(ConfigError, match="Invalid context config"):
            load_context_config(path)
