"""Path and identity mapping between the repository and the object store.

Repository paths live under the content root (``content/``); object-store
keys are the same paths with that root stripped.  Fragment files follow

    content/fragments/<category>/<id>.<lang>.md      (lang: en | ja)

and carry a stable identity.  Other content under the root (standards,
templates, ...) is valid to sync but is not represented in the index.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from codex_sync.validators import validate_relative_path

CONTENT_ROOT = "content/"
FRAGMENTS_PREFIX = "fragments/"

_FRAGMENT_RE = re.compile(
    r"^content/fragments/(?P<category>[^/]+)/(?P<id>[^/]+)\.(?P<lang>en|ja)\.md$"
)


class PathOutsideContentRoot(ValueError):
    """The path is not below the content root (or tries to escape it)."""


@dataclass(frozen=True)
class FragmentIdentity:
    """Identity extracted from a fragment path."""

    category: str
    id: str
    lang: str

    @property
    def store_key(self) -> str:
        return f"{FRAGMENTS_PREFIX}{self.category}/{self.id}.{self.lang}.md"


def is_under_content_root(repo_path: str) -> bool:
    """True if *repo_path* is a clean relative path below the content root."""
    if not isinstance(repo_path, str) or not repo_path.startswith(CONTENT_ROOT):
        return False
    if repo_path.endswith("/"):
        return False
    valid, _ = validate_relative_path(repo_path)
    return valid and len(repo_path) > len(CONTENT_ROOT)


def to_store_key(repo_path: str) -> str:
    """Map a repository path to its object-store key.

    ``content/fragments/a/b.en.md`` -> ``fragments/a/b.en.md``

    Raises:
        PathOutsideContentRoot: If the path is not below the content root.
    """
    if not is_under_content_root(repo_path):
        raise PathOutsideContentRoot(f"Invalid path: {repo_path}")
    return repo_path[len(CONTENT_ROOT) :]


def to_repo_path(store_key: str) -> str:
    """Inverse of ``to_store_key``."""
    return f"{CONTENT_ROOT}{store_key}"


def parse_fragment_identity(repo_path: str) -> FragmentIdentity | None:
    """Extract ``(category, id, lang)`` from a fragment path.

    Returns:
        ``FragmentIdentity``, or ``None`` for paths outside the fragment
        naming convention (index-exempt content).
    """
    match = _FRAGMENT_RE.match(repo_path)
    if not match:
        return None
    return FragmentIdentity(
        category=match.group("category"),
        id=match.group("id"),
        lang=match.group("lang"),
    )


def discover_fragment_paths(checkout_root: Path) -> list[str]:
    """Scan a repository checkout for fragment files.

    Args:
        checkout_root: Repository root (the directory containing ``content/``).

    Returns:
        Sorted repository-relative POSIX paths that match the fragment
        convention.
    """
    fragments_dir = checkout_root / CONTENT_ROOT / FRAGMENTS_PREFIX
    if not fragments_dir.is_dir():
        return []

    result: list[str] = []
    for path in fragments_dir.rglob("*.md"):
        if not path.is_file():
            continue
        rel = path.relative_to(checkout_root).as_posix()
        if parse_fragment_identity(rel) is not None:
            result.append(rel)
    return sorted(result)
