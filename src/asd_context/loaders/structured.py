"""JSON and YAML loaders.

A top-level mapping becomes the document header; any other top-level value
is kept under ``header["data"]``.  The raw text is kept as the body.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from asd_context.context.models import Document


def _as_header(data: Any) -> dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, dict):
        return {str(k): v for k, v in data.items()}
    return {"data": data}


class JSONDocumentLoader:
    async def load_document(self, path: Path) -> Document:
        text = path.read_text(encoding="utf-8")
        return Document(header=_as_header(json.loads(text)), body=text, path=str(path), format="json")


class YAMLDocumentLoader:
    async def load_document(self, path: Path) -> Document:
        text = path.read_text(encoding="utf-8")
        return Document(header=_as_header(yaml.safe_load(text)), body=text, path=str(path), format="yaml")
