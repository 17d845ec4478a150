"""Header/body document codec.

A document starts with a ``---`` line, a YAML block, a closing ``---`` line,
then free text.  Text without that framing is all body.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import yaml

from asd_context.context.models import Document
from asd_context.exceptions import ParseError

log = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---(?:\r?\n)?(.*)\Z", re.DOTALL)


def parse(text: str, *, strict: bool = False, source: str = "") -> Document:
    """Split *text* into header mapping and body.

    On a malformed header the lossy path logs and returns the whole text as
    body; with ``strict=True`` a :class:`ParseError` is raised instead.
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return Document(header={}, body=text, path=source)

    raw_header, body = match.group(1), match.group(2)
    try:
        header = yaml.safe_load(raw_header)
    except yaml.YAMLError as exc:
        return _fail(text, f"Failed to parse YAML frontmatter: {exc}", strict, source)

    if header is None:
        header = {}
    if not isinstance(header, dict):
        return _fail(
            text,
            f"Frontmatter must be a mapping, got {type(header).__name__}",
            strict,
            source,
        )

    return Document(header={str(k): v for k, v in header.items()}, body=body, path=source)


def serialize(header: dict[str, Any], body: str) -> str:
    """Emit *header* and *body* in the delimited format read by :func:`parse`."""
    if not header:
        dumped = "{}\n"
    else:
        dumped = yaml.safe_dump(
            header,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            width=10_000,
        )
    return f"---\n{dumped}---\n{body}"


def _fail(text: str, message: str, strict: bool, source: str) -> Document:
    if strict:
        raise ParseError(message, source=source)
    log.warning("%s%s", message, f" ({source})" if source else "")
    return Document(header={}, body=text, path=source)
