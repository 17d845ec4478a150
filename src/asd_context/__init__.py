"""asd-context: layered context composition for agent-driven development.

Public API::

    from asd_context import (
        AppSettings, ProjectRoot,
        ContextEngine, create_context_engine,
        ContextStore, ContextTriggerSystem, RelevanceFilter, ContextValidator,
        ContextBundle, AgentDefinition, Document, Inheritance,
        ContextEngineError, ParseError, ConfigError, InjectionError,
    )

    engine = ContextEngine(ProjectRoot("/path/to/repo"))
    bundle = await engine.inject_context("backend-developer", "FEAT-012", "TASK-002")
"""

from __future__ import annotations

from asd_context.context.filtering import RelevanceFilter
from asd_context.context.models import (
    AgentDefinition,
    ContextBundle,
    Document,
    Inheritance,
    LayerName,
    RecommendationSet,
    RelevanceScore,
)
from asd_context.context.store import ContextStore
from asd_context.context.triggers import ContextTriggerSystem
from asd_context.core.config import AppSettings
from asd_context.engine import ContextEngine, create_context_engine
from asd_context.exceptions import ConfigError, ContextEngineError, InjectionError, ParseError
from asd_context.interfaces import ProjectRoot
from asd_context.validation.engine import ContextValidator
from asd_context.validation.models import ValidationResult

__version__ = "0.1.0"

__all__ = [
    "AgentDefinition",
    "AppSettings",
    "ConfigError",
    "ContextBundle",
    "ContextEngine",
    "ContextEngineError",
    "ContextStore",
    "ContextTriggerSystem",
    "ContextValidator",
    "Document",
    "Inheritance",
    "InjectionError",
    "LayerName",
    "ParseError",
    "ProjectRoot",
    "RecommendationSet",
    "RelevanceFilter",
    "RelevanceScore",
    "ValidationResult",
    "create_context_engine",
]
