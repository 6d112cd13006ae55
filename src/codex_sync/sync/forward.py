"""Forward sync: git -> object store -> fragment index.

CI uploads changed files to the object store and then posts the changed
paths.  ``ForwardSyncHandler`` reads the bytes back, parses frontmatter and
upserts (or clears) the fragment index row for each entry.

Contract:

1. The whole batch is validated (``parse_entries``) before any I/O.  One bad
   path rejects the request.
2. Entries are processed independently and concurrently.  Entries touching
   the same fragment id are serialized within the batch.
3. Each entry ends as ``indexed``, ``removed``, ``store-only``, ``skipped``
   or ``error``; one entry's failure never aborts the others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from charset_normalizer import from_bytes

from codex_sync.config import DEFAULT_AUTHOR
from codex_sync.core.async_utils import gather_limited, run_sync_limited
from codex_sync.core.index import FragmentIndex, FragmentIndexRow
from codex_sync.core.storage import ObjectStore, ObjectStoreError
from codex_sync.sync.frontmatter import Frontmatter, parse_frontmatter
from codex_sync.sync.mapper import (
    FragmentIdentity,
    is_under_content_root,
    parse_fragment_identity,
    to_store_key,
)
from codex_sync.sync.models import (
    EntryAction,
    EntryResult,
    EntryStatus,
    SyncEntry,
    SyncResponse,
)

logger = logging.getLogger(__name__)

# Frontmatter keys copied onto the row when present (coalescing update)
SHARED_FIELDS = ("category", "type", "version", "status", "sensitivity", "author")


class InvalidSyncRequest(ValueError):
    """The ``/sync`` body is malformed; nothing was processed."""


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


def parse_entries(payload: Any, max_batch_size: int = 10000) -> list[SyncEntry]:
    """Validate a ``/sync`` body and return its entries.

    Args:
        payload: Decoded JSON body.
        max_batch_size: Upper bound on the number of entries.

    Raises:
        InvalidSyncRequest: On any malformed entry.  Validation covers the
            whole batch so no entry is applied when one is invalid.
    """
    entries = payload.get("entries") if isinstance(payload, dict) else None
    if not isinstance(entries, list) or not entries:
        raise InvalidSyncRequest("entries array required")
    if len(entries) > max_batch_size:
        raise InvalidSyncRequest(
            f"Too many entries: {len(entries)} (max {max_batch_size})"
        )

    parsed: list[SyncEntry] = []
    for raw in entries:
        if not isinstance(raw, dict) or not isinstance(raw.get("path"), str):
            raise InvalidSyncRequest("Each entry needs a string 'path'")
        path = raw["path"]
        if not is_under_content_root(path):
            raise InvalidSyncRequest(f"Invalid path: {path}")
        try:
            action = EntryAction(raw.get("action"))
        except ValueError:
            raise InvalidSyncRequest(
                f"Invalid action for {path}: {raw.get('action')!r}"
            ) from None
        parsed.append(SyncEntry(path=path, action=action))
    return parsed


# ---------------------------------------------------------------------------
# Decoding and row merging
# ---------------------------------------------------------------------------


def decode_text(data: bytes) -> str:
    """Decode object bytes, trying UTF-8 before charset detection."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass
    best = from_bytes(data).best()
    if best is None:
        return data.decode("utf-8", errors="replace")
    return str(best)


def merge_fragment(
    row: FragmentIndexRow | None,
    identity: FragmentIdentity,
    store_key: str,
    frontmatter: Frontmatter,
    now: str,
    default_author: str = DEFAULT_AUTHOR,
) -> FragmentIndexRow:
    """Fold one language file into the fragment's index row.

    An existing row gets this language's title/key/flag, and shared fields
    only where the frontmatter provides them.  A new row is seeded from
    the frontmatter with defaults for anything missing.
    """
    title = frontmatter.scalar("title") or identity.id
    shared = {name: frontmatter.scalar(name) for name in SHARED_FIELDS}
    tags = frontmatter.string_list("tags")

    if row is None:
        row = FragmentIndexRow(
            id=identity.id,
            category=shared["category"] or identity.category,
            type=shared["type"] or "content",
            version=shared["version"] or now[:7],
            status=shared["status"] or "production",
            sensitivity=shared["sensitivity"] or "normal",
            author=shared["author"] or default_author,
            tags=tags or [],
            created_at=frontmatter.scalar("created") or now,
            updated_at=now,
        )
    else:
        for name, value in shared.items():
            if value is not None:
                setattr(row, name, value)
        if tags is not None:
            row.tags = tags
        row.updated_at = now

    row.set_language(identity.lang, title, store_key)
    return row


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


class ForwardSyncHandler:
    """Apply a batch of changed-file descriptors to the fragment index.

    Args:
        store: Object store the CI process uploaded to.
        index: Fragment index to update.
        max_parallel: Entries processed concurrently.
        default_author: Author for new rows without one.
        clock: Returns the current UTC timestamp string.
    """

    def __init__(
        self,
        store: ObjectStore,
        index: FragmentIndex,
        max_parallel: int = 5,
        default_author: str = DEFAULT_AUTHOR,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        self.store = store
        self.index = index
        self.max_parallel = max_parallel
        self.default_author = default_author
        self._clock = clock

    async def sync(self, entries: list[SyncEntry]) -> SyncResponse:
        """Process *entries* concurrently; results keep request order."""
        semaphore = asyncio.Semaphore(self.max_parallel)
        locks: dict[str, asyncio.Lock] = {}

        async def _run(entry: SyncEntry) -> EntryResult:
            identity = parse_fragment_identity(entry.path)
            lock_key = identity.id if identity else entry.path
            lock = locks.setdefault(lock_key, asyncio.Lock())
            async with lock:
                return await run_sync_limited(
                    semaphore, self.sync_entry, entry
                )

        results = await gather_limited([_run(e) for e in entries])
        response = SyncResponse(results=results)
        logger.info("Sync batch done: %s", response.summary())
        return response

    def sync_entry(self, entry: SyncEntry) -> EntryResult:
        """Sync one entry.  Never raises; failures become ``error`` results."""
        try:
            if entry.action == EntryAction.REMOVED:
                status = self._remove(entry.path)
                return EntryResult(
                    path=entry.path, action=entry.action, status=status
                )
            return self._upsert(entry)
        except Exception as exc:
            logger.error("Error syncing %s: %s", entry.path, exc)
            return EntryResult(
                path=entry.path,
                action=entry.action,
                status=EntryStatus.ERROR,
                error=str(exc),
            )

    def _upsert(self, entry: SyncEntry) -> EntryResult:
        key = to_store_key(entry.path)
        data = self.store.get(key)
        if data is None:
            logger.warning("Object not uploaded yet: %s", key)
            return EntryResult(
                path=entry.path,
                action=entry.action,
                status=EntryStatus.SKIPPED,
                error=f"object not found: {key}",
            )

        identity = parse_fragment_identity(entry.path)
        if identity is None:
            return EntryResult(
                path=entry.path, action=entry.action, status=EntryStatus.STORE_ONLY
            )

        frontmatter = parse_frontmatter(decode_text(data))
        declared_id = frontmatter.scalar("id")
        if declared_id and declared_id != identity.id:
            logger.warning(
                "Frontmatter id %r differs from path id %r in %s; using path id",
                declared_id,
                identity.id,
                entry.path,
            )

        now = self._clock()
        self.index.modify(
            identity.id,
            lambda row: merge_fragment(
                row, identity, key, frontmatter, now, self.default_author
            ),
        )
        logger.debug("Indexed %s (%s)", identity.id, identity.lang)
        return EntryResult(
            path=entry.path, action=entry.action, status=EntryStatus.INDEXED
        )

    def _remove(self, repo_path: str) -> EntryStatus:
        identity = parse_fragment_identity(repo_path)
        if identity is None:
            return EntryStatus.STORE_ONLY

        key = to_store_key(repo_path)
        try:
            self.store.delete(key)
        except ObjectStoreError as exc:
            logger.warning("Could not delete %s from store: %s", key, exc)

        now = self._clock()

        def _clear(row: FragmentIndexRow | None) -> FragmentIndexRow | None:
            if row is None:
                return None
            row.clear_language(identity.lang)
            row.updated_at = now
            return row

        self.index.modify(identity.id, _clear)
        return EntryStatus.REMOVED
