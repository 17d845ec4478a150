"""Nested pydantic-settings configuration for the context engine.

Each sub-config reads its own ``ASD_<GROUP>_*`` env vars::

    export ASD_PROJECT_ROOT=/path/to/repo
    export ASD_ENGINE_CACHE_TTL_MS=60000
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class ProjectConfig(BaseSettings):
    """Project location.

    Env vars use ``ASD_PROJECT_`` prefix.
    """

    model_config = {"env_prefix": "ASD_PROJECT_"}

    root: Path = Path(".")

    def get_project_root(self) -> Path:
        return self.root


class EngineConfig(BaseSettings):
    """Injection pipeline tuning.

    Env vars use ``ASD_ENGINE_`` prefix.  Budgets are advisory: exceeding
    them only produces a logged warning.
    """

    model_config = {"env_prefix": "ASD_ENGINE_"}

    cache_enabled: bool = True
    cache_ttl_ms: int = Field(default=300_000, gt=0)
    performance_budget_ms: int = Field(default=500, gt=0)
    automation_budget_ms: int = Field(default=3_000, gt=0)
    layer_budget_ms: int = Field(default=100, gt=0)
    recommendation_preview_limit: int = Field(default=3, ge=0)


class ObservabilityConfig(BaseSettings):
    """Logging configuration.

    Env vars use ``ASD_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "ASD_OBSERVABILITY_"}

    log_level: str = "INFO"


class AppSettings(BaseSettings):
    """Top-level application settings aggregating all sub-configs."""

    project: ProjectConfig = ProjectConfig()
    engine: EngineConfig = EngineConfig()
    observability: ObservabilityConfig = ObservabilityConfig()
