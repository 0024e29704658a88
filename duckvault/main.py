"""
duckvault - command line entry point.

Usage:
    duckvault [global options] store PATH
    duckvault [global options] retrieve PATH
    duckvault [global options] info
    duckvault [global options] delete
    duckvault [global options] verify PATH [--table T] [--expected-rows N]
    duckvault [global options] sample PATH [--rows N]
    duckvault [global options] demo [--data-dir D] [--keep]

Configuration comes from environment variables (see config.py); global
options override the corresponding settings.

Exit codes:
    0  success
    1  operation failed (VaultError)
    2  invalid configuration
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from typing import Any

import json_log_formatter

from .config import ObjectStoreBackend, VaultConfig
from .errors import VaultError
from .snapshot import SnapshotStore, open_snapshot_store
from .tools import DemoTool, create_sample_database, sample_users
from .verify import Verifier

logger = logging.getLogger(__name__)


def setup_logging(config: VaultConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: duckvault configuration
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


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="duckvault",
        description="Store and retrieve DuckDB database snapshots in an object store",
    )
    parser.add_argument(
        "--backend",
        choices=[b.value for b in ObjectStoreBackend],
        help="Object store backend (OBJECT_STORE_BACKEND)",
    )
    parser.add_argument("--bucket", help="Bucket name (S3_BUCKET)")
    parser.add_argument("--name", help="Snapshot/database name (SNAPSHOT_NAME)")
    parser.add_argument("--endpoint", help="S3 endpoint URL, e.g. MinIO (S3_ENDPOINT)")
    parser.add_argument("--region", help="S3 region (S3_REGION)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("store", help="Upload a database file")
    p.add_argument("path", help="Local database file")

    p = sub.add_parser("retrieve", help="Download the snapshot to a file")
    p.add_argument("path", help="Destination file")

    sub.add_parser("info", help="Show snapshot metadata")
    sub.add_parser("delete", help="Delete the snapshot")

    p = sub.add_parser("verify", help="Verify a local database file")
    p.add_argument("path", help="Local database file")
    p.add_argument("--table", help="Relation to count (VERIFY_TABLE)")
    p.add_argument("--expected-rows", type=int, help="Required row count")

    p = sub.add_parser("sample", help="Create the sample users database")
    p.add_argument("path", help="Database file to create")
    p.add_argument("--rows", type=int, default=3, help="Number of users")

    p = sub.add_parser("demo", help="Run the full store/retrieve/verify round trip")
    p.add_argument("--data-dir", help="Directory for local files (DATA_DIR)")
    p.add_argument("--keep", action="store_true", help="Don't delete the snapshot afterwards")

    return parser


def apply_overrides(config: VaultConfig, args: argparse.Namespace) -> VaultConfig:
    """Return config with CLI options applied on top of the environment."""
    s3_changes: dict[str, Any] = {}
    if args.bucket:
        s3_changes["bucket"] = args.bucket
    if args.endpoint:
        s3_changes["endpoint_url"] = args.endpoint
    if args.region:
        s3_changes["region"] = args.region

    config = dataclasses.replace(config, s3=dataclasses.replace(config.s3, **s3_changes))
    if args.backend:
        config = dataclasses.replace(
            config,
            object_store=dataclasses.replace(
                config.object_store, backend=ObjectStoreBackend(args.backend)
            ),
        )
    if args.name:
        config = dataclasses.replace(
            config, snapshot=dataclasses.replace(config.snapshot, name=args.name)
        )
    if getattr(args, "table", None):
        config = dataclasses.replace(
            config, verifier=dataclasses.replace(config.verifier, table=args.table)
        )

    config.validate()
    return config


def _print_info(store: SnapshotStore, info: Any) -> None:
    print(f"Snapshot: {store.bucket}/{info.name}")
    print(f"  Size: {info.size_bytes} bytes")
    print(f"  ModTime: {info.modified_at}")
    print(f"  Description: {info.description}")
    print(f"  Content-Type: {info.content_type}")
    print(f"  Timestamp: {info.stored_at or 'none'}")
    print(f"  Checksum: {info.checksum or 'none'}")


async def run_command(config: VaultConfig, args: argparse.Namespace) -> int:
    """Execute one CLI command.

    Returns:
        Process exit code

    Raises:
        VaultError: If the operation fails
    """
    if args.command == "sample":
        count = create_sample_database(args.path, sample_users(args.rows))
        print(f"Sample database created: {args.path} ({count} users)")
        return 0

    if args.command == "verify":
        expected = args.expected_rows
        if expected is None:
            expected = config.verifier.expected_rows
        verifier = Verifier(table=config.verifier.table, expected_rows=expected)
        result = await verifier.verify_async(args.path)
        print(f"Database verified: found {result.row_count} {result.table}")
        return 0

    if args.command == "demo":
        result = await DemoTool(config, data_dir=args.data_dir, keep=args.keep).run()
        if result.success:
            print("Operation completed successfully!")
            print(f"  Size: {result.size_bytes} bytes")
            print(f"  Verified rows: {result.row_count}")
            print(f"  Deleted: {result.deleted}")
            print(f"  Duration: {result.duration_ms}ms")
            return 0
        print(f"Failed to {result.failed_step}: {result.error}", file=sys.stderr)
        return 1

    async with open_snapshot_store(config) as store:
        if args.command == "store":
            info = await store.store(args.path)
            print(f"Database stored: Size={info.size_bytes} bytes, ModTime={info.modified_at}")
        elif args.command == "retrieve":
            info = await store.retrieve(args.path)
            print(f"Database retrieved: {args.path} ({info.size_bytes} bytes)")
        elif args.command == "info":
            _print_info(store, await store.info())
        elif args.command == "delete":
            await store.delete()
            print(f"Snapshot deleted: {store.bucket}/{store.name}")
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = apply_overrides(VaultConfig.from_env(), args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(config, verbose=args.verbose)
    config.log_config()

    try:
        exit_code = asyncio.run(run_command(config, args))
    except VaultError as e:
        print(f"Failed to {e.operation or args.command}: {e.message}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
