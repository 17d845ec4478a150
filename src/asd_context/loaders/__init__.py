"""Document loaders, selected by file extension.

Usage::

    from asd_context.loaders import DefaultDocumentLoader, create_document_loader

    loader = create_document_loader(Path("project.md"))
    doc = await loader.load_document(Path("project.md"))

    # Or dispatch per call:
    doc = await DefaultDocumentLoader().load_document(Path("state.json"))
"""

from __future__ import annotations

from pathlib import Path

from asd_context.context.models import Document
from asd_context.interfaces import IDocumentLoader
from asd_context.loaders.structured import JSONDocumentLoader, YAMLDocumentLoader
from asd_context.loaders.text import MarkdownDocumentLoader, TextDocumentLoader

__all__ = [
    "DefaultDocumentLoader",
    "JSONDocumentLoader",
    "MarkdownDocumentLoader",
    "TextDocumentLoader",
    "YAMLDocumentLoader",
    "create_document_loader",
]

_LOADERS_BY_SUFFIX: dict[str, type] = {
    ".md": MarkdownDocumentLoader,
    ".markdown": MarkdownDocumentLoader,
    ".json": JSONDocumentLoader,
    ".yaml": YAMLDocumentLoader,
    ".yml": YAMLDocumentLoader,
}


def create_document_loader(path: Path) -> IDocumentLoader:
    """Pick a loader for *path* by extension; unknown extensions load as text."""
    loader_cls = _LOADERS_BY_SUFFIX.get(path.suffix.lower(), TextDocumentLoader)
    return loader_cls()


class DefaultDocumentLoader:
    """Dispatches each ``load_document`` call on the path's extension."""

    async def load_document(self, path: Path) -> Document:
        return await create_document_loader(path).load_document(path)
