"""Context composition: data models, storage, caching, and relevance filtering."""

from __future__ import annotations

from asd_context.context.models import (
    AgentDefinition,
    ContextBundle,
    Document,
    Inheritance,
    LayerName,
    LayerSet,
    RelevanceScore,
)

__all__ = [
    "AgentDefinition",
    "ContextBundle",
    "Document",
    "Inheritance",
    "LayerName",
    "LayerSet",
    "RelevanceScore",
]
