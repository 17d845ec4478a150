"""Contracts for the collaborators the engine consumes but does not own."""

from __future__ import annotations

from asd_context.interfaces.collaborators import (
    IDocumentLoader,
    IProjectRootProvider,
    ITaskGatherer,
    ITaskRouter,
    ProjectRoot,
)

__all__ = [
    "IDocumentLoader",
    "IProjectRootProvider",
    "ITaskGatherer",
    "ITaskRouter",
    "ProjectRoot",
]
