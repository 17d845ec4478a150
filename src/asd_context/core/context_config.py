"""Project-level context configuration (``.asd/config/context-config.json``).

Loaded values override the built-in defaults field by field; keys the file
does not mention keep their default.  ``context_system.enabled = false``
turns off injection and context triggers for the project.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from asd_context.exceptions import ConfigError

log = logging.getLogger(__name__)


class PerformanceSettings(BaseModel):
    injection_timeout_ms: int = 500
    cache_enabled: bool = True
    cache_ttl_seconds: int = 300


class ContextSystemSettings(BaseModel):
    version: str = "1.0.0"
    enabled: bool = True
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)


class LayerSettings(BaseModel):
    """Per-layer source list and size ceiling."""

    max_size_kb: int
    sources: list[str] = Field(default_factory=list)


def _default_layers() -> dict[str, LayerSettings]:
    return {
        "critical": LayerSettings(
            max_size_kb=50,
            sources=["project.md", "urgent-constraints.md"],
        ),
        "task_specific": LayerSettings(
            max_size_kb=100,
            sources=["specs/{spec_id}-context.md", "tasks/{task_id}-context.md"],
        ),
        "agent_specific": LayerSettings(
            max_size_kb=75,
            sources=["agents/{agent_type}.md"],
        ),
        "process": LayerSettings(
            max_size_kb=25,
            sources=[
                "processes/task-handoff-template.md",
                "processes/validation-checklist.md",
            ],
        ),
    }


def _default_update_triggers() -> dict[str, dict[str, list[str]]]:
    return {
        "task_lifecycle": {
            "task_start": ["create_task_context", "update_agent_assignment"],
            "task_progress": ["update_task_context", "log_progress"],
            "task_complete": ["finalize_task_context", "update_spec_context", "trigger_handoff"],
        },
        "cli_commands": {
            "asd_context_add": ["append_to_context"],
            "asd_assign": ["update_assignments"],
            "asd_complete": ["update_completion_status"],
            "asd_research": ["capture_research_findings"],
        },
    }


class ContextConfig(BaseModel):
    """Typed view of ``context-config.json``."""

    context_system: ContextSystemSettings = Field(default_factory=ContextSystemSettings)
    context_layers: dict[str, LayerSettings] = Field(default_factory=_default_layers)
    update_triggers: dict[str, dict[str, list[str]]] = Field(
        default_factory=_default_update_triggers
    )

    def layer(self, name: str) -> LayerSettings:
        """Return settings for a layer, falling back to the built-in default."""
        if name in self.context_layers:
            return self.context_layers[name]
        return _default_layers()[name]


def default_context_config() -> ContextConfig:
    return ContextConfig()


def load_context_config(path: Path) -> ContextConfig:
    """Load and validate a context configuration file.

    A missing file yields the defaults.  A file that exists but cannot be
    decoded or validated raises :class:`ConfigError`.

    Layers named in the file replace the default entry for that layer;
    unnamed layers keep their defaults.  ``update_triggers`` replaces the
    default trigger map as a whole.
    """
    if not path.is_file():
        log.debug("No context config at %s, using defaults", path)
        return default_context_config()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read context config: {exc}", path=str(path)) from exc

    if not isinstance(raw, dict):
        raise ConfigError("Context config must be a JSON object", path=str(path))

    layers = _default_layers()
    try:
        for name, layer_data in (raw.get("context_layers") or {}).items():
            layers[name] = LayerSettings.model_validate(layer_data)
        system = ContextSystemSettings.model_validate(raw.get("context_system") or {})
        config = ContextConfig(context_system=system, context_layers=layers)
        if raw.get("update_triggers") is not None:
            config.update_triggers = ContextConfig.model_validate(
                {"update_triggers": raw["update_triggers"]}
            ).update_triggers
    except (PydanticValidationError, AttributeError) as exc:
        raise ConfigError(f"Invalid context config: {exc}", path=str(path)) from exc

    log.info("Loaded context config from %s (version %s)", path, system.version)
    return config
