"""Pydantic models for forward sync and reverse export.

Defines the data contracts shared by the handlers, the HTTP layer and the
reporter:

- ``EntryAction``: What the upstream change detector saw happen to a path.
- ``EntryStatus``: Outcome of one forward-sync entry.
- ``SyncEntry``: One changed-file descriptor from a ``/sync`` request.
- ``EntryResult``: Outcome of syncing one entry.
- ``SyncResponse``: Per-entry ledger plus summary counts.
- ``ExportRequest``: Parsed ``/export`` body.
- ``ExportResult``: Outcome of a reverse-export run.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntryAction(str, Enum):
    """Change kinds reported for a path."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class EntryStatus(str, Enum):
    """Per-entry outcome of a forward sync."""

    INDEXED = "indexed"
    REMOVED = "removed"
    STORE_ONLY = "store-only"
    SKIPPED = "skipped"
    ERROR = "error"


class SyncEntry(BaseModel):
    """A changed file reported by CI.

    Attributes:
        path: Repository-relative path, e.g.
            ``content/fragments/services/totalsupport.en.md``.
        action: What happened to the file.
    """

    path: str
    action: EntryAction

    model_config = {"frozen": True}


class EntryResult(BaseModel):
    """Result of syncing one entry.

    Attributes:
        path: Repository-relative path from the request.
        action: The requested action.
        status: Outcome.
        error: Explanation for ``skipped`` and ``error`` outcomes.
    """

    path: str
    action: EntryAction
    status: EntryStatus
    error: str | None = None

    model_config = {"frozen": True}

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "action": self.action.value,
            "status": self.status.value,
        }
        if self.error:
            data["error"] = self.error
        return data


class SyncResponse(BaseModel):
    """Aggregate outcome of one ``/sync`` call.

    The response is a partial-success ledger: callers retry only the
    entries whose status is ``error`` or ``skipped``.
    """

    results: list[EntryResult] = []

    model_config = {"frozen": True}

    def _count(self, status: EntryStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def indexed(self) -> int:
        return self._count(EntryStatus.INDEXED)

    @property
    def removed(self) -> int:
        return self._count(EntryStatus.REMOVED)

    @property
    def store_only(self) -> int:
        return self._count(EntryStatus.STORE_ONLY)

    @property
    def skipped(self) -> int:
        return self._count(EntryStatus.SKIPPED)

    @property
    def errors(self) -> int:
        return self._count(EntryStatus.ERROR)

    def summary(self) -> dict[str, int]:
        return {
            "total": len(self.results),
            "indexed": self.indexed,
            "removed": self.removed,
            "errors": self.errors,
            "skipped": self.skipped,
            "storeOnly": self.store_only,
        }

    def to_json(self) -> dict[str, Any]:
        return {
            "summary": self.summary(),
            "results": [r.to_json() for r in self.results],
        }


class ExportRequest(BaseModel):
    """Which part of the object store to export.

    Attributes:
        prefix: Store key prefix, used when no collections are given.
        collections: Fragment categories; each expands to
            ``fragments/<category>/``.
    """

    prefix: str = "fragments/"
    collections: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def prefixes(self) -> list[str]:
        if self.collections:
            return [f"fragments/{c}/" for c in self.collections]
        return [self.prefix]


class ExportResult(BaseModel):
    """Outcome of a reverse export.

    ``branch`` is empty and ``pr_url`` is ``None`` when nothing differed.
    """

    branch: str = ""
    pr_url: str | None = None
    files_exported: int = 0
    files_unchanged: int = 0
    files: list[str] = []

    model_config = {"frozen": True}

    def to_json(self) -> dict[str, Any]:
        return {
            "branch": self.branch,
            "prUrl": self.pr_url,
            "filesExported": self.files_exported,
            "filesUnchanged": self.files_unchanged,
        }
