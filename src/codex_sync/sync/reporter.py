"""Report formatting for forward sync and reverse export.

- ``format_sync_report`` -- human-readable summary of a ``/sync`` batch.
- ``format_export_result`` -- human-readable summary of an export run.
- ``report_to_json`` -- structured dict for CLI ``--json`` output.
"""

from __future__ import annotations

from typing import Any

from .models import EntryStatus, ExportResult, SyncResponse

# ------------------------------------------------------------------
# Human-readable output
# ------------------------------------------------------------------


def format_sync_report(response: SyncResponse) -> str:
    """Format a forward-sync response as text.

    Sections appear only when they hold at least one entry.  Indexed
    and store-only paths are summarised by count.

    Args:
        response: The completed sync response.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    summary = response.summary()
    lines.append(
        f"Synced {summary['total']} entries: "
        f"{summary['indexed']} indexed, {summary['removed']} removed, "
        f"{summary['storeOnly']} store-only, {summary['skipped']} skipped, "
        f"{summary['errors']} errors"
    )
    lines.append("")

    removed = [r for r in response.results if r.status == EntryStatus.REMOVED]
    if removed:
        lines.append("Removed:")
        for r in removed:
            lines.append(f"  {r.path}")
        lines.append("")

    skipped = [r for r in response.results if r.status == EntryStatus.SKIPPED]
    if skipped:
        lines.append("Skipped (retry later):")
        for r in skipped:
            lines.append(f"  {r.path}: {r.error}")
        lines.append("")

    failed = [r for r in response.results if r.status == EntryStatus.ERROR]
    if failed:
        lines.append("Errors:")
        for r in failed:
            lines.append(f"  {r.path}: {r.error}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_export_result(result: ExportResult) -> str:
    """Format a reverse-export result as text."""
    if not result.pr_url:
        return (
            f"No changes to export ({result.files_unchanged} files unchanged)."
        )

    lines = [
        f"Opened pull request: {result.pr_url}",
        f"Branch: {result.branch}",
        f"Exported {result.files_exported} files "
        f"({result.files_unchanged} unchanged):",
    ]
    lines.extend(f"  {path}" for path in result.files)
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncResponse | ExportResult) -> dict[str, Any]:
    """Convert a sync response or export result to a JSON-ready dict.

    Export results also carry the list of exported paths, which the
    HTTP response omits.
    """
    data = report.to_json()
    if isinstance(report, ExportResult):
        data["files"] = list(report.files)
    return data
