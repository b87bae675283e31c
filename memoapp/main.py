"""Main entry point for the Memo Keeper maintenance command line."""

from __future__ import annotations

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Final

from PySide6.QtCore import QCoreApplication

from memoapp import __version__
from memoapp.db import get_data_dir, get_db_path
from memoapp.exc import ImportValidationFailure
from memoapp.services.notifications import Notifier
from memoapp.services.storage import DatabaseQuotaEstimator
from memoapp.services.workspace import Workspace
from memoapp.settings import (
    APPLICATION_NAME,
    ORGANIZATION_NAME,
    get_settings,
    int_setting,
)
from memoapp.storage.sql import SQLStore
from memoapp.utils import format_file_size, ms_to_utc_iso

if TYPE_CHECKING:
    from collections.abc import Sequence

#: Log line format.
LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
#: Description given to snapshots taken from the command line.
MANUAL_DESCRIPTION: Final[str] = "Manual snapshot"

logger = logging.getLogger(__name__)


def configure_logging(log_path: Path | None = None, verbose: bool = False) -> None:
    """
    Send ``memoapp`` log records to a rotating file and to the console.

    Calling this again does not add more handlers.

    Args:
        log_path: Log file; ``memoapp.log`` in the data directory if None

    Keyword Args:
        verbose: Log debug records to the console too

    """
    root = logging.getLogger("memoapp")
    root.setLevel(logging.DEBUG)
    if root.handlers:
        return
    if log_path is None:
        log_path = get_data_dir() / "memoapp.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = RotatingFileHandler(
        log_path, maxBytes=2 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(formatter)

    root.addHandler(file_handler)
    root.addHandler(console_handler)
    logger.debug(f"Logging to {log_path}")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the command line parser.

    Returns:
        The parser

    """
    parser = argparse.ArgumentParser(
        prog="memoapp", description="Maintain a Memo Keeper note collection."
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("--db", type=Path, help="database file to use")
    parser.add_argument("--settings", type=Path, help="INI settings file to use")
    parser.add_argument("--log", type=Path, help="log file to write")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="log debug output to stderr"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("stats", help="show collection and storage statistics")

    list_parser = commands.add_parser("list", help="list notes, newest first")
    list_parser.add_argument("--search", default="", help="only notes containing this")

    export_parser = commands.add_parser("export", help="export notes to JSON")
    export_parser.add_argument("file", nargs="?", type=Path, help="output file")

    import_parser = commands.add_parser(
        "import", help="replace all notes with an export file"
    )
    import_parser.add_argument("file", type=Path, help="export file to import")

    commands.add_parser("versions", help="list snapshots, newest first")

    snapshot_parser = commands.add_parser("snapshot", help="take a snapshot now")
    snapshot_parser.add_argument(
        "-d", "--description", default=MANUAL_DESCRIPTION, help="snapshot description"
    )

    restore_parser = commands.add_parser(
        "restore", help="replace all notes with a snapshot"
    )
    restore_parser.add_argument("snapshot_id", type=int, help="snapshot ID")
    return parser


def _show(text: str, severity: str) -> None:
    print(f"[{severity}] {text}")  # noqa: T201


def run(workspace: Workspace, args: argparse.Namespace) -> int:  # noqa: PLR0911
    """
    Run one command against an opened workspace.

    Args:
        workspace: The workspace
        args: Parsed command line arguments

    Returns:
        The process exit code

    """
    if args.command == "stats":
        stats = workspace.repository.statistics()
        print(  # noqa: T201
            f"Notes: {stats.note_count}\n"
            f"Images: {stats.image_count}\n"
            f"Files: {stats.file_count}\n"
            f"Attachments: {format_file_size(stats.attachment_bytes)} "
            f"(average {format_file_size(stats.average_bytes_per_note)} per note)"
        )
        if workspace.storage is not None:
            usage = workspace.storage.usage()
            if usage is not None:
                print(f"Storage: {usage!s}")  # noqa: T201
        return 0
    if args.command == "list":
        for note in workspace.search(args.search):
            print(  # noqa: T201
                f"{note.id}\t{note.display_date}\t{note.title or '(untitled)'}"
                f"\t{len(note.images)} images\t{len(note.files)} files"
            )
        return 0
    if args.command == "export":
        try:
            path = workspace.exporter.export_json(args.file)
        except ValueError as e:
            logger.error(str(e))
            return 1
        print(f"Exported {len(workspace.repository)} notes to {path}")  # noqa: T201
        return 0
    if args.command == "import":
        try:
            workspace.import_json(args.file)
        except ImportValidationFailure as e:
            logger.error(str(e))
            return 1
        return 0
    if args.command == "versions":
        for snapshot in workspace.versions.list_snapshots():
            print(  # noqa: T201
                f"{snapshot.id}\t{ms_to_utc_iso(snapshot.timestamp)}"
                f"\t{snapshot.description}\t{snapshot.note_count} notes"
                f"\t{snapshot.image_count} images"
            )
        return 0
    if args.command == "snapshot":
        if not workspace.versions.create_snapshot(args.description):
            print("No snapshot taken")  # noqa: T201
            return 1
        print("Snapshot taken")  # noqa: T201
        return 0
    if args.command == "restore":
        return 0 if workspace.restore_snapshot(args.snapshot_id) else 1
    msg = f"Unknown command: {args.command}"
    raise ValueError(msg)


def main(argv: Sequence[str] | None = None) -> int:
    """
    Run the Memo Keeper command line.

    Args:
        argv: Command line arguments; ``sys.argv[1:]`` if None

    Returns:
        The process exit code

    """
    args = build_parser().parse_args(argv)
    QCoreApplication.setOrganizationName(ORGANIZATION_NAME)
    QCoreApplication.setApplicationName(APPLICATION_NAME)
    configure_logging(args.log, verbose=args.verbose)

    settings = get_settings(args.settings)
    db_path = args.db if args.db is not None else get_db_path()
    store = SQLStore(db_path)
    notifier = Notifier()
    notifier.message.connect(_show)
    workspace = Workspace(
        store,
        notifier=notifier,
        settings=settings,
        estimator=DatabaseQuotaEstimator(
            db_path, int_setting(settings, "storage/quota_mb") * 1024 * 1024
        ),
    )
    try:
        workspace.open()
        return run(workspace, args)
    finally:
        workspace.shutdown()
        store.close()


if __name__ == "__main__":
    sys.exit(main())
