"""Context engine: injection pipeline, automation, and recommendations.

Factory function::

    from asd_context.engine import create_context_engine
    engine = create_context_engine(settings)
    bundle = await engine.inject_context("backend-developer", "FEAT-012", "TASK-002")
"""

from __future__ import annotations


from asd_context.core.config import AppSettings
from asd_context.engine.automation import assess_readiness
from asd_context.engine.injector import ContextEngine
from asd_context.interfaces import ITaskGatherer, ITaskRouter


def create_context_engine(
    settings: AppSettings | None = None,
    *,
    gatherer: ITaskGatherer | None = None,
    router: ITaskRouter | None = None,
) -> ContextEngine:
    """Create a ContextEngine rooted at ``settings.project.root``."""
    settings = settings or AppSettings()
    return ContextEngine(settings.project, settings=settings, gatherer=gatherer, router=router)


__all__ = [
    "ContextEngine",
    "assess_readiness",
    "create_context_engine",
]
