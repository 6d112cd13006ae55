"""Narrow frontmatter parser for fragment markdown files.

Fragment files start with a ``---`` delimited header of ``key: value``
lines.  Only the subset the index needs is understood:

* scalars, optionally wrapped in one layer of ``"`` or ``'`` quotes
* single-level string lists, either as indented ``- item`` lines under an
  empty ``key:`` or inline as ``key: [a, "b"]``

Anything else is ignored.  Malformed or partial headers never raise; the
affected field is simply absent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

DELIMITER = "---"

_KEY_RE = re.compile(r"^([A-Za-z_][\w.-]*)\s*:(.*)$")
_ITEM_RE = re.compile(r"^\s*-\s+(.*)$")

MetaValue = str | list[str]


@dataclass(frozen=True)
class Frontmatter:
    """Parsed header metadata plus the remaining body text."""

    metadata: dict[str, MetaValue] = field(default_factory=dict)
    body: str = ""

    def scalar(self, key: str) -> str | None:
        """Return a non-empty string value, or ``None``.

        A list where a scalar is expected counts as absent.
        """
        value = self.metadata.get(key)
        if isinstance(value, str) and value:
            return value
        return None

    def string_list(self, key: str) -> list[str] | None:
        """Return a list value, or ``None`` when absent or not a list."""
        value = self.metadata.get(key)
        if isinstance(value, list):
            return list(value)
        return None


def strip_quotes(value: str) -> str:
    """Remove one layer of matching surrounding quotes."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _inline_list(value: str) -> list[str] | None:
    if not (value.startswith("[") and value.endswith("]")):
        return None
    inner = value[1:-1].strip()
    if not inner:
        return []
    return [strip_quotes(item.strip()) for item in inner.split(",")]


def _split_header(text: str) -> tuple[list[str], str] | None:
    """Return ``(header_lines, body)`` or ``None`` without a complete header."""
    lines = text.split("\n")
    if lines[0].rstrip() != DELIMITER:
        return None
    for i in range(1, len(lines)):
        if lines[i].rstrip() == DELIMITER:
            return lines[1:i], "\n".join(lines[i + 1 :])
    return None


def parse_frontmatter(text: str) -> Frontmatter:
    """Split *text* into header metadata and body.

    Args:
        text: Full file contents.

    Returns:
        ``Frontmatter``.  Without a recognisable header the metadata is
        empty and the body is the full text.
    """
    normalised = text.lstrip("\ufeff").replace("\r\n", "\n")
    split = _split_header(normalised)
    if split is None:
        return Frontmatter(metadata={}, body=text)

    header, body = split
    metadata: dict[str, MetaValue] = {}
    pending_key: str | None = None
    pending_items: list[str] = []

    for line in header:
        if pending_key is not None:
            item = _ITEM_RE.match(line)
            if item:
                pending_items.append(strip_quotes(item.group(1).strip()))
                continue
            # Any other line closes the list, then is read as a fresh line
            metadata[pending_key] = pending_items
            pending_key, pending_items = None, []

        match = _KEY_RE.match(line)
        if not match:
            continue

        key, raw_value = match.group(1), match.group(2).strip()
        if not raw_value:
            pending_key, pending_items = key, []
            continue

        inline = _inline_list(raw_value)
        metadata[key] = inline if inline is not None else strip_quotes(raw_value)

    if pending_key is not None and pending_items:
        metadata[pending_key] = pending_items

    return Frontmatter(metadata=metadata, body=body.strip())
