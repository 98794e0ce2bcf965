"""Command-line interface for linkding bookmark sync.

Subcommands:

- ``sync`` -- run one two-way reconciliation.
- ``init --mode push|pull|merge`` -- bootstrap two-way sync.
- ``mirror`` -- rebuild the one-way tag-folder mirror.
- ``status`` -- show configuration and last-run metadata.
- ``watch`` -- keep running: periodic timer plus change-driven sync.
- ``config-init`` -- write a starter config file.

Every run goes through ``SyncScheduler`` so ``watch`` and one-shot
commands share the same single-flight rules.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from dotenv import load_dotenv

from . import __version__
from .config import load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import build_config
from .exceptions import LinkdingSyncError
from .logger import setup_logging
from .sync.models import InitialSyncMode
from .sync.reporter import (
    format_initial_report,
    format_mirror_report,
    format_reconcile_report,
    format_status,
    report_to_json,
)
from .sync.scheduler import SyncScheduler
from .sync.service import BookmarkSyncService, build_service

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linkding-sync",
        description="Sync a local bookmarks folder with a linkding server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create .linkding_sync/config.yml in the current directory
  linkding-sync config-init

  # First run: upload the local sync folder, tagging it on linkding
  linkding-sync init --mode push

  # Afterwards
  linkding-sync sync
  linkding-sync watch
        """,
    )
    parser.add_argument("--url", help="Override linkding URL")
    parser.add_argument(
        "--token",
        help="Override linkding API token (prefer LINKDING_TOKEN env var)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (development only)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print machine-readable JSON instead of text",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"linkding-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("sync", help="Run one two-way reconciliation")
    init = sub.add_parser("init", help="Bootstrap two-way sync")
    init.add_argument(
        "--mode",
        required=True,
        choices=[m.value for m in InitialSyncMode],
        help="push: local to linkding, pull: linkding to local, merge: join by URL",
    )
    sub.add_parser("mirror", help="Rebuild the one-way tag-folder mirror")
    sub.add_parser("status", help="Show sync configuration and state")
    sub.add_parser(
        "watch", help="Run periodic and change-driven sync until interrupted"
    )
    sub.add_parser("config-init", help="Write a starter config file")
    return parser


def _load_service(args: argparse.Namespace) -> BookmarkSyncService:
    load_dotenv()
    unified = build_config(load_hierarchical_config())
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        level=unified.logging.level,
    )
    config = load_config(
        url=args.url,
        token=args.token,
        insecure=args.insecure,
        debug=args.debug,
        yaml_fallbacks=unified.linkding.model_dump(exclude_none=True),
    )
    return build_service(config, unified)


def _emit(text: str, data: dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, indent=2, default=str))
    else:
        print(text)


async def run_command(
    args: argparse.Namespace, scheduler: SyncScheduler
) -> int:
    """Execute one subcommand; returns the process exit code."""
    match args.command:
        case "sync":
            report = await scheduler.run_reconciliation()
            _emit(format_reconcile_report(report), report_to_json(report), args.as_json)
            return 1 if report.errors else 0
        case "init":
            report = await scheduler.run_initial_sync(args.mode)
            _emit(format_initial_report(report), report_to_json(report), args.as_json)
            return 1 if report.errors else 0
        case "mirror":
            report = await scheduler.run_mirror()
            _emit(format_mirror_report(report), report_to_json(report), args.as_json)
            return 0
        case "status":
            status = scheduler.service.status()
            _emit(format_status(status), status, args.as_json)
            return 0
        case "watch":
            scheduler.start(auto_sync=True)
            print(
                "Watching for changes (Ctrl-C to stop)...",
                file=sys.stderr,
            )
            try:
                await asyncio.Event().wait()
            finally:
                await scheduler.stop()
            return 0
        case _:
            raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "config-init":
        print(f"Config file: {ensure_config()}")
        return 0

    try:
        service = _load_service(args)
        return asyncio.run(run_command(args, SyncScheduler(service)))
    except (LinkdingSyncError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
