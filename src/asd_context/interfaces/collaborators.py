"""Collaborator protocols: document loading, task gathering, routing, project root."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from asd_context.context.models import Document


@runtime_checkable
class IProjectRootProvider(Protocol):
    """Anything that can report the project root directory."""

    def get_project_root(self) -> Path:
        ...


@runtime_checkable
class IDocumentLoader(Protocol):
    """Format-agnostic document loading."""

    async def load_document(self, path: Path) -> Document:
        """Load *path* into a :class:`Document`.

        Raises:
            FileNotFoundError: If the path does not exist.
            OSError: On any other read failure.
        """
        ...


@runtime_checkable
class ITaskGatherer(Protocol):
    """Gathers task-specific material for automated agents."""

    async def gather_task_context(
        self,
        *,
        spec_id: str,
        task_id: str,
        agent_type: str,
        include_files: bool = True,
        use_cache: bool = True,
    ) -> Mapping[str, Any]:
        """Return a mapping with ``task_specific``, ``validation`` and ``metadata`` keys.

        ``task_specific`` holds ``specification`` and ``task``;
        ``validation`` holds ``relevance_score``, ``is_sufficient`` and
        ``completeness``; ``metadata.performance`` holds timings.
        """
        ...


@runtime_checkable
class ITaskRouter(Protocol):
    """Recommends the next tasks for an agent."""

    async def get_next_task(
        self,
        agent_type: str,
        preferences: Mapping[str, Any] | None = None,
    ) -> Sequence[Mapping[str, Any]]:
        """Return candidates ordered best-first, each with ``spec_id`` and ``task_id``."""
        ...


class ProjectRoot:
    """Fixed project root."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    def get_project_root(self) -> Path:
        return self._path

    def __repr__(self) -> str:
        return f"ProjectRoot({str(self._path)!r})"
