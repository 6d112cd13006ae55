"""Reverse export: object store -> git branch + pull request.

Content edited through the runtime platform lands in the object store
first.  ``ReverseExportHandler`` compares every object under the requested
prefixes with the file at the repository's head commit and, when anything
differs, commits the changed files to a new branch and opens a pull
request.

The GitHub API offers no multi-step transaction.  Blobs, trees and commits
are content-addressed, so creating them and then failing leaves only
unreachable objects.  The visible side effects (branch ref, pull request)
come last; if the pull request cannot be opened the branch is deleted again.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from codex_sync.core.github import GitHubClient, GitHubError
from codex_sync.core.storage import ObjectStore, ObjectStoreError, is_folder_marker
from codex_sync.sync.mapper import to_repo_path
from codex_sync.sync.models import ExportRequest, ExportResult
from codex_sync.validators import validate_relative_path

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "codex-sync/export-"
FILE_MODE = "100644"


class InvalidExportRequest(ValueError):
    """The ``/export`` body is malformed."""


class ExportError(RuntimeError):
    """Reverse export aborted; no branch or pull request was left behind."""


def parse_export_request(payload: Any) -> ExportRequest:
    """Validate an ``/export`` body.

    ``None`` or ``{}`` selects the whole fragments subtree.

    Raises:
        InvalidExportRequest: For wrong types or unsafe prefixes.
    """
    if payload is None:
        return ExportRequest()
    if not isinstance(payload, dict):
        raise InvalidExportRequest("Request body must be a JSON object")

    prefix = payload.get("prefix")
    if prefix is None:
        prefix = "fragments/"
    if not isinstance(prefix, str):
        raise InvalidExportRequest("prefix must be a string")
    if prefix:
        valid, reason = validate_relative_path(prefix, "prefix")
        if not valid:
            raise InvalidExportRequest(reason)

    collections = payload.get("collections") or []
    if not isinstance(collections, list) or not all(
        isinstance(c, str) for c in collections
    ):
        raise InvalidExportRequest("collections must be a list of strings")
    for name in collections:
        if not name or "/" in name or name in (".", ".."):
            raise InvalidExportRequest(f"Invalid collection: {name!r}")

    return ExportRequest(prefix=prefix, collections=collections)


def branch_name(now: datetime) -> str:
    """Time-derived branch name, e.g. ``codex-sync/export-20260219143005``."""
    return f"{BRANCH_PREFIX}{now.strftime('%Y%m%d%H%M%S')}"


def build_pr_body(
    prefixes: list[str], files: list[str], unchanged: int
) -> str:
    """Pull request description listing every changed path."""
    scope = ", ".join(f"`{p}`" for p in prefixes)
    lines = [
        "## Summary",
        "",
        f"Exported {len(files)} file(s) from the object store (prefix: {scope}) "
        "that differ from the current git content.",
        f"{unchanged} file(s) were unchanged and skipped.",
        "",
        "## Files",
        "",
        *[f"- `{path}`" for path in files],
        "",
        "---",
        "*Auto-generated by codex-sync reverse export.*",
    ]
    return "\n".join(lines)


class ReverseExportHandler:
    """Diff the object store against the repository head and open a PR.

    Args:
        store: Object store holding runtime-edited content.
        github: Client bound to the target repository.
        clock: Returns the current UTC datetime (branch naming).
    """

    def __init__(
        self,
        store: ObjectStore,
        github: GitHubClient,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.store = store
        self.github = github
        self._clock = clock

    def export(self, request: ExportRequest | None = None) -> ExportResult:
        """Run one export.  Strictly sequential; every step needs the last.

        Raises:
            ExportError: If any step fails.  Nothing partial is returned.
        """
        request = request or ExportRequest()
        try:
            return self._export(request)
        except (GitHubError, ObjectStoreError) as exc:
            raise ExportError(str(exc)) from exc

    def _export(self, request: ExportRequest) -> ExportResult:
        # 1. Head of the default branch
        default_branch = self.github.get_default_branch()
        head_sha = self.github.get_branch_sha(default_branch)
        logger.info("Export base: %s@%s", default_branch, head_sha[:12])

        # 2. Objects to consider
        keys = sorted(
            {
                key
                for prefix in request.prefixes
                for key in self.store.list(prefix)
                if not is_folder_marker(key)
            }
        )

        # 3. Diff each object against the repository
        tree_entries: list[dict[str, str]] = []
        unchanged = 0
        for key in keys:
            content = self.store.get(key)
            if content is None:
                logger.debug("Object vanished during export: %s", key)
                continue

            repo_path = to_repo_path(key)
            current = self.github.get_file(repo_path, head_sha)
            if current == content:
                unchanged += 1
                continue

            blob_sha = self.github.create_blob(content)
            tree_entries.append(
                {"path": repo_path, "mode": FILE_MODE, "type": "blob", "sha": blob_sha}
            )
            logger.info(
                "%s %s", "New" if current is None else "Changed", repo_path
            )

        # 4. Nothing differs: no commit, no branch, no PR
        if not tree_entries:
            logger.info("Export found no changes (%d unchanged)", unchanged)
            return ExportResult(files_unchanged=unchanged)

        files = [entry["path"] for entry in tree_entries]
        scope = ", ".join(request.prefixes)

        # 5. Tree -> commit -> branch -> pull request
        base_tree = self.github.get_commit_tree(head_sha)
        tree_sha = self.github.create_tree(base_tree, tree_entries)
        commit_sha = self.github.create_commit(
            f"chore(codex-sync): export {len(files)} file(s) from CMS\n\n"
            f"Store prefix: {scope}",
            tree_sha,
            [head_sha],
        )

        branch = branch_name(self._clock())
        self.github.create_branch(branch, commit_sha)
        try:
            pr_url = self.github.create_pull_request(
                title=f"chore(codex-sync): export {len(files)} CMS-authored file(s) to git",
                body=build_pr_body(request.prefixes, files, unchanged),
                head=branch,
                base=default_branch,
            )
        except GitHubError:
            logger.error("Pull request failed, removing branch %s", branch)
            try:
                self.github.delete_branch(branch)
            except GitHubError as cleanup_exc:
                logger.error("Could not delete branch %s: %s", branch, cleanup_exc)
            raise

        logger.info("Opened %s from %s (%d files)", pr_url, branch, len(files))

        # 6. Result
        return ExportResult(
            branch=branch,
            pr_url=pr_url,
            files_exported=len(files),
            files_unchanged=unchanged,
            files=files,
        )
