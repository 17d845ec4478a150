"""Markdown and plain-text loaders."""

from __future__ import annotations

from pathlib import Path

from asd_context import frontmatter
from asd_context.context.models import Document


class MarkdownDocumentLoader:
    """Markdown with optional YAML frontmatter (lossy header parse)."""

    async def load_document(self, path: Path) -> Document:
        text = path.read_text(encoding="utf-8")
        document = frontmatter.parse(text, source=str(path))
        return document.model_copy(update={"format": "markdown"})


class TextDocumentLoader:
    """Whole file as body, empty header."""

    async def load_document(self, path: Path) -> Document:
        text = path.read_text(encoding="utf-8")
        return Document(header={}, body=text, path=str(path), format="text")
