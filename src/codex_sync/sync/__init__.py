"""Content sync between the git repository and the runtime platform.

Modules:

- ``frontmatter`` -- ``parse_frontmatter``: flat YAML-subset header parser.
- ``mapper``      -- repository path <-> store key <-> fragment identity.
- ``models``      -- ``SyncEntry``, ``EntryResult``, ``SyncResponse``,
  ``ExportRequest``, ``ExportResult``: data contracts.
- ``forward``     -- ``ForwardSyncHandler``: git -> store -> index.
- ``export``      -- ``ReverseExportHandler``: store -> branch + PR.
- ``seed``        -- ``seed_index``: index a whole checkout.
- ``reporter``    -- Human-readable and JSON report formatting.
"""

from .export import (
    ExportError,
    InvalidExportRequest,
    ReverseExportHandler,
    parse_export_request,
)
from .forward import ForwardSyncHandler, InvalidSyncRequest, parse_entries
from .frontmatter import Frontmatter, parse_frontmatter
from .mapper import (
    FragmentIdentity,
    PathOutsideContentRoot,
    parse_fragment_identity,
    to_repo_path,
    to_store_key,
)
from .models import (
    EntryAction,
    EntryResult,
    EntryStatus,
    ExportRequest,
    ExportResult,
    SyncEntry,
    SyncResponse,
)
from .reporter import format_export_result, format_sync_report, report_to_json
from .seed import seed_index

__all__ = [
    "EntryAction",
    "EntryResult",
    "EntryStatus",
    "ExportError",
    "ExportRequest",
    "ExportResult",
    "ForwardSyncHandler",
    "FragmentIdentity",
    "Frontmatter",
    "InvalidExportRequest",
    "InvalidSyncRequest",
    "PathOutsideContentRoot",
    "ReverseExportHandler",
    "SyncEntry",
    "SyncResponse",
    "format_export_result",
    "format_sync_report",
    "parse_entries",
    "parse_export_request",
    "parse_fragment_identity",
    "parse_frontmatter",
    "report_to_json",
    "seed_index",
    "to_repo_path",
    "to_store_key",
]
