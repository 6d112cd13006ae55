"""Command-line entry point: ``codex-sync``.

Subcommands:

- ``serve``       -- run the HTTP service under uvicorn.
- ``seed``        -- index every fragment file of a repository checkout.
- ``export``      -- one reverse-export run (for scheduled jobs).
- ``init-config`` -- write a starter ``.codex_sync/config.yml``.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .config_loader import ensure_config
from .logger import setup_logging
from .sync.export import ExportError, ReverseExportHandler, parse_export_request
from .sync.mapper import CONTENT_ROOT
from .sync.reporter import format_export_result, format_sync_report, report_to_json
from .sync.seed import seed_index

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Collect config overrides from the common CLI flags."""
    overrides: dict[str, Any] = {}
    if args.store:
        overrides["store"] = args.store
    if args.database:
        overrides["database"] = args.database
    if args.debug:
        overrides["debug"] = True
    return overrides


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .server.app import create_app
    from .server.lifespan import resolve_config

    setup_logging(
        mode="server",
        debug=args.debug,
        log_file=args.log_file,
        debug_format="json" if args.json_logs else "text",
    )
    config = resolve_config(_overrides(args))
    app = create_app(config)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    from .server.lifespan import open_services, resolve_config

    setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)
    checkout = Path(args.checkout).expanduser().resolve()

    overrides = _overrides(args)
    # The checkout's content directory is the store for seeding
    overrides.setdefault("store", str(checkout / CONTENT_ROOT))
    config = resolve_config(overrides)
    services = open_services(config)
    try:
        response = asyncio.run(
            seed_index(
                checkout,
                services.index,
                max_parallel=config.max_parallel,
                default_author=config.default_author,
            )
        )
    finally:
        services.close()

    if args.json:
        _print_json(report_to_json(response))
    else:
        print(format_sync_report(response))
    return 1 if response.errors else 0


def cmd_export(args: argparse.Namespace) -> int:
    from .server.errors import GITHUB_NOT_CONFIGURED
    from .server.lifespan import open_services, resolve_config

    setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)
    config = resolve_config(_overrides(args))
    request = parse_export_request(
        {"prefix": args.prefix, "collections": args.collection or []}
    )

    services = open_services(config)
    try:
        if services.github is None:
            print(f"ERROR: {GITHUB_NOT_CONFIGURED}", file=sys.stderr)
            return 1
        handler = ReverseExportHandler(services.store, services.github)
        try:
            result = handler.export(request)
        except ExportError as e:
            print(f"ERROR: Export failed: {e}", file=sys.stderr)
            return 1
    finally:
        services.close()

    if args.json:
        _print_json(report_to_json(result))
    else:
        print(format_export_result(result))
    return 0


def cmd_init_config(args: argparse.Namespace) -> int:
    target = Path(args.path) if args.path else None
    path = ensure_config(target)
    print(f"Config file: {path}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--store",
        help="Override object store location (takes precedence over CODEX_SYNC_STORE)",
    )
    common.add_argument(
        "--database",
        help="Override index database (takes precedence over CODEX_SYNC_DATABASE)",
    )
    common.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    common.add_argument("--log-file", help="Also write logs to this file")

    parser = argparse.ArgumentParser(
        prog="codex-sync",
        description="codex-sync - keep git content and the runtime content platform in step",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the HTTP service
  codex-sync serve --port 8000

  # Build the fragment index from a checkout
  codex-sync seed ./website --database .codex_sync/index.db

  # Export runtime edits of one collection as a pull request
  codex-sync export --collection services --json
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"codex-sync version {__version__}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", parents=[common], help="Run the HTTP service")
    serve.add_argument("--host", default=DEFAULT_HOST)
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)
    serve.add_argument(
        "--json-logs", action="store_true", help="Emit logs as JSON lines"
    )
    serve.set_defaults(func=cmd_serve)

    seed = sub.add_parser(
        "seed", parents=[common], help="Index every fragment file of a checkout"
    )
    seed.add_argument("checkout", help="Repository root containing content/")
    seed.add_argument("--json", action="store_true", help="Print JSON output")
    seed.set_defaults(func=cmd_seed)

    export = sub.add_parser(
        "export", parents=[common], help="Export store edits as a pull request"
    )
    export.add_argument("--prefix", default="fragments/", help="Store key prefix")
    export.add_argument(
        "--collection",
        action="append",
        help="Fragment category to export (repeatable; overrides --prefix)",
    )
    export.add_argument("--json", action="store_true", help="Print JSON output")
    export.set_defaults(func=cmd_export)

    init = sub.add_parser("init-config", help="Write a starter config file")
    init.add_argument("--path", help="Target file (default: .codex_sync/config.yml)")
    init.set_defaults(func=cmd_init_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except ValueError as e:
        # Configuration and request validation errors
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
