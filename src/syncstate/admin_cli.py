#!/usr/bin/env python3
"""
Administrative CLI for the sync record store.

Usage:
    syncstate-admin init-indexes [--config config/syncstate.yaml] [--backend mongodb]
    syncstate-admin show --entity-type User --entity-id 42 [--json]
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import SyncStateConfig
from .core.exceptions import SyncStateError
from .core.logging import configure_logging
from .record_store import create_record_store


logger = logging.getLogger(__name__)

# The in-memory backend starts empty in every process, so it is not offered here
PERSISTENT_BACKENDS = ("mongodb", "sqlserver")


def cmd_init_indexes(args, config: SyncStateConfig) -> int:
    """Create the unique (entity_type, entity_id) index."""
    try:
        record_store = create_record_store(config, backend=args.backend)
    except (SyncStateError, ImportError) as e:
        logger.error(f"Failed to open sync store: {e}")
        return 1

    try:
        record_store.ensure_indexes()
    except SyncStateError as e:
        logger.error(f"Failed to create index: {e}")
        return 1
    finally:
        record_store.document_store.close()

    return 0


def cmd_show(args, config: SyncStateConfig) -> int:
    """Print the stored sync record of one entity."""
    try:
        record_store = create_record_store(config, backend=args.backend)
    except (SyncStateError, ImportError) as e:
        logger.error(f"Failed to open sync store: {e}")
        return 1

    try:
        record = record_store.load(args.entity_type, args.entity_id)
    except SyncStateError as e:
        logger.error(f"Failed to load sync record: {e}")
        return 1
    finally:
        record_store.document_store.close()

    if record is None:
        logger.error(f"No sync record for {args.entity_type}:{args.entity_id}")
        return 1

    if args.json:
        print(json.dumps(record.to_document(), indent=2, sort_keys=True))
        return 0

    print(f"{record.entity_type}:{record.entity_id} (version {record.version})")
    if not record.services:
        print("  (no services)")
    for service_id in sorted(record.services):
        entry = record.services[service_id]
        fingerprint = entry.fingerprint.hex() or "-"
        synced_at = entry.synced_at.isoformat() if entry.synced_at else "never"
        print(f"  {service_id}: {fingerprint} synced_at={synced_at}")
    return 0


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Sync state store administration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument("--backend", choices=PERSISTENT_BACKENDS,
                        help="Override the configured store backend")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init-indexes", help="Create the unique sync record index")

    show_parser = subparsers.add_parser("show", help="Show the sync record of an entity")
    show_parser.add_argument("--entity-type", required=True, help="Entity type name (e.g., User)")
    show_parser.add_argument("--entity-id", required=True, help="Entity identifier")
    show_parser.add_argument("--json", action="store_true", help="Output record as JSON")

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = SyncStateConfig(config_path=Path(args.config) if args.config else None)
    except SyncStateError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    backend = args.backend or config.backend
    if backend not in PERSISTENT_BACKENDS:
        logger.error(
            f"Backend '{backend}' holds no persisted records; "
            f"use one of: {', '.join(PERSISTENT_BACKENDS)}"
        )
        return 1

    if args.command == "init-indexes":
        return cmd_init_indexes(args, config)
    elif args.command == "show":
        return cmd_show(args, config)
    else:
        print("No command specified. Use --help for usage.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
