"""Index seeding from a repository checkout.

Builds (or refreshes) the fragment index from the files on disk, for a
fresh environment or after the index was lost.  The checkout's
``content/`` directory stands in for the object store, so seeding runs
through exactly the same merge rules as ``/sync``.  Afterwards, languages
whose file no longer exists in the checkout are pruned, so a reseed leaves
the index matching the checkout.
"""

from __future__ import annotations

import logging
from pathlib import Path

from codex_sync.config import DEFAULT_AUTHOR
from codex_sync.core.async_utils import run_sync
from codex_sync.core.index import LANGUAGES, FragmentIndex, FragmentIndexRow
from codex_sync.core.storage import FilesystemObjectStore
from codex_sync.sync.forward import ForwardSyncHandler
from codex_sync.sync.mapper import (
    CONTENT_ROOT,
    FragmentIdentity,
    discover_fragment_paths,
    parse_fragment_identity,
    to_repo_path,
)
from codex_sync.sync.models import (
    EntryAction,
    EntryResult,
    EntryStatus,
    SyncEntry,
    SyncResponse,
)

logger = logging.getLogger(__name__)


def _stored_key(row: FragmentIndexRow, lang: str) -> str:
    key = getattr(row, f"r2_key_{lang}")
    if key:
        return key
    return FragmentIdentity(row.category or "", row.id, lang).store_key


def prune_index(index: FragmentIndex, paths: list[str]) -> list[EntryResult]:
    """Clear every indexed language whose file is not in *paths*.

    Rows left with no language are deleted.

    Returns:
        One ``removed`` result per pruned language.
    """
    present: set[tuple[str, str]] = set()
    for path in paths:
        identity = parse_fragment_identity(path)
        if identity is not None:
            present.add((identity.id, identity.lang))

    results: list[EntryResult] = []
    for row in index.list_rows():
        indexed = [lang for lang in LANGUAGES if row.has_language(lang)]
        stale = [lang for lang in indexed if (row.id, lang) not in present]
        if not stale:
            continue

        if stale == indexed:
            index.delete(row.id)
        else:

            def _clear(current, stale=stale):
                if current is None:
                    return None
                for lang in stale:
                    current.clear_language(lang)
                return current

            index.modify(row.id, _clear)

        for lang in stale:
            repo_path = to_repo_path(_stored_key(row, lang))
            logger.info("Pruned %s (no longer in checkout)", repo_path)
            results.append(
                EntryResult(
                    path=repo_path,
                    action=EntryAction.REMOVED,
                    status=EntryStatus.REMOVED,
                )
            )
    return results


async def seed_index(
    checkout: Path,
    index: FragmentIndex,
    max_parallel: int = 5,
    default_author: str = DEFAULT_AUTHOR,
) -> SyncResponse:
    """Index every fragment file found under *checkout*.

    Args:
        checkout: Repository root containing ``content/fragments/``.
        index: Fragment index to populate.
        max_parallel: Files processed concurrently.
        default_author: Author for rows whose frontmatter has none.

    Returns:
        One result per fragment file, followed by one ``removed`` result
        per language pruned from the index.

    Raises:
        FileNotFoundError: If *checkout* has no content directory.
    """
    content_dir = checkout / CONTENT_ROOT
    if not content_dir.is_dir():
        raise FileNotFoundError(f"No content directory in {checkout}")

    paths = discover_fragment_paths(checkout)
    logger.info("Seeding index from %d fragment files in %s", len(paths), checkout)

    handler = ForwardSyncHandler(
        FilesystemObjectStore(content_dir),
        index,
        max_parallel=max_parallel,
        default_author=default_author,
    )
    entries = [SyncEntry(path=p, action=EntryAction.ADDED) for p in paths]
    response = await handler.sync(entries)

    pruned = await run_sync(prune_index, index, paths)
    return SyncResponse(results=[*response.results, *pruned])
