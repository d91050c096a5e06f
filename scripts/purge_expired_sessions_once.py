#!/usr/bin/env python3
"""One-shot purge of expired refresh sessions from the session store."""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv

from identity_core.auth.ledger import SessionLedger
from identity_core.auth.repository import SessionRepository
from identity_core.core.config import AppConfig
from identity_core.core.exceptions import StoreError
from identity_core.core.logging import setup_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Delete refresh sessions whose expiry has passed."
    )
    parser.add_argument(
        "--runtime-dir",
        type=Path,
        default=None,
        help="Override RUNTIME_DIR for the JSON file store.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only count expired sessions and do not delete them.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Execute purge flow."""
    args = _parse_args(argv)
    load_dotenv()
    config = AppConfig.from_env()
    setup_logging(config.logging.level)

    storage = config.storage
    if args.runtime_dir is not None:
        storage = replace(storage, runtime_dir=args.runtime_dir)

    try:
        ledger = SessionLedger(SessionRepository(storage), config.auth)
        count = ledger.purge_expired(
            now=datetime.now(timezone.utc), dry_run=args.dry_run
        )
    except StoreError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"Expired sessions {'found' if args.dry_run else 'deleted'}: {count}")
    print(f"Mode: {'dry-run' if args.dry_run else 'write'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
