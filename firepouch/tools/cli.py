"""
Command line interface for Firepouch.

Usage:
    firepouch backup [--name NAME] [--collections a,b] [--exclude c] [--batch-size N]
                     [--archive [PATH]] [--s3-key KEY]
    firepouch restore (--name NAME | --archive PATH | --s3-key KEY)
                      [--collections a,b] [--exclude c] [--batch-size N]
    firepouch dump --name NAME [--output PATH]
    firepouch pack DIRECTORY [--output PATH]
    firepouch unpack ARCHIVE [--output DIR]

Connection settings come from the environment (see firepouch.config).

Exit codes:
    0 on success, 1 on any Firepouch error
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Sequence

import json_log_formatter

from ..archive.packager import pack_directory, unpack_archive
from ..config import FirepouchConfig, parse_name_list
from ..errors import FirepouchError
from ..service import Firepouch

logger = logging.getLogger(__name__)


def setup_logging(config: FirepouchConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: Firepouch configuration
        verbose: Force DEBUG level
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)
    if verbose:
        level = logging.DEBUG

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="firepouch",
        description="Back up and restore remote document collections",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_selection(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--collections", help="Comma separated collections to include")
        sub.add_argument("--exclude", help="Comma separated collections to skip")
        sub.add_argument("--batch-size", type=int, help="Documents per page/batch")

    backup = subparsers.add_parser("backup", help="Back up remote collections")
    backup.add_argument("--name", help="Store name or absolute path (generated if omitted)")
    add_selection(backup)
    backup.add_argument(
        "--archive",
        nargs="?",
        const="",
        help="Also zip the store (optionally to PATH)",
    )
    backup.add_argument("--s3-key", help="Also upload the zipped store under this key")

    restore = subparsers.add_parser("restore", help="Restore a backup to the remote")
    source = restore.add_mutually_exclusive_group(required=True)
    source.add_argument("--name", help="Store name or absolute path")
    source.add_argument("--archive", help="Zip archive to restore from")
    source.add_argument("--s3-key", help="Key of an uploaded archive")
    add_selection(restore)

    dump = subparsers.add_parser("dump", help="Export a store to JSON")
    dump.add_argument("--name", required=True, help="Store name or absolute path")
    dump.add_argument("--output", help="JSON file (default: inside the store)")

    pack = subparsers.add_parser("pack", help="Zip a store directory")
    pack.add_argument("directory", help="Directory to pack")
    pack.add_argument("--output", help="Archive path (default: <directory>.zip)")

    unpack = subparsers.add_parser("unpack", help="Extract an archive")
    unpack.add_argument("archive", help="Archive to extract")
    unpack.add_argument("--output", help="Target directory (default: new temp directory)")

    return parser


async def run_command(args: argparse.Namespace, config: FirepouchConfig) -> Any:
    """Execute one parsed command and return its result."""
    if args.command == "pack":
        return pack_directory(args.directory, args.output, config.archive.compression_level)
    if args.command == "unpack":
        return unpack_archive(args.archive, args.output)

    firepouch = Firepouch(config=config, require_remote=args.command != "dump")

    if args.command == "dump":
        return await firepouch.dump_to_json(args.name, args.output)

    selection = {
        "collections": parse_name_list(args.collections),
        "exclude": parse_name_list(args.exclude),
        "batch_size": args.batch_size,
    }

    if args.command == "backup":
        if args.s3_key:
            return await firepouch.create_backup_to_cloud(args.name, args.s3_key, **selection)
        if args.archive is not None:
            return await firepouch.create_backup_to_archive(
                args.name, args.archive or None, **selection
            )
        return await firepouch.create_backup(args.name, **selection)

    if args.archive:
        return await firepouch.restore_from_archive(args.archive, **selection)
    if args.s3_key:
        return await firepouch.restore_from_cloud(args.s3_key, **selection)
    return await firepouch.restore_backup(args.name, **selection)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = FirepouchConfig.from_env()
    except FirepouchError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config, verbose=args.verbose)
    config.log_config()

    try:
        result = asyncio.run(run_command(args, config))
    except FirepouchError as e:
        logger.error(f"{args.command} failed: {e}", extra={"code": e.code})
        print(f"{args.command} failed: {e}", file=sys.stderr)
        return 1

    print(_describe(args.command, result))
    return 0


def _describe(command: str, result: Any) -> str:
    if command == "backup":
        lines = [
            "Backup completed successfully",
            f"  Store: {result.location}",
            f"  Collections: {', '.join(result.collection_names) or 'none'}",
            f"  Documents: {result.total_documents}",
            f"  Duration: {result.duration_ms}ms",
        ]
        if result.archive_path:
            lines.append(f"  Archive: {result.archive_path}")
        if result.remote_key:
            lines.append(f"  Uploaded: {result.remote_key}")
        return "\n".join(lines)
    if command == "restore":
        return "\n".join([
            "Restore completed successfully",
            f"  Store: {result.store_name}",
            f"  Collections: {', '.join(result.collection_names) or 'none'}",
            f"  Documents: {result.total_documents}",
            f"  Duration: {result.duration_ms}ms",
        ])
    return str(result)


if __name__ == "__main__":
    sys.exit(main())
