#!/usr/bin/env python3
"""Delete remote saved states older than the retention window."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from budget_planner.auth import AuthGate, AuthSession
from budget_planner.config import RETENTION_DAYS, configure_logging
from budget_planner.persistence import SnapshotManager, build_remote_backend

logger = logging.getLogger("cleanup_saved_states")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--days", type=int, default=RETENTION_DAYS,
        help=f"Retention window in days (default {RETENTION_DAYS})",
    )
    parser.add_argument("--user-id", help="Owner id for the HTTP backend")
    parser.add_argument("--token", help="Bearer token for the HTTP backend")
    parser.add_argument("--log-level", default=None, help="Logging level (default from environment)")
    return parser.parse_args(argv)


def main(argv=None, manager: SnapshotManager | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    if manager is None:
        remote = build_remote_backend()
        if remote is None:
            print("No remote storage configured; nothing to clean up.")
            return 0
        manager = SnapshotManager(remote=remote, retention_days=args.days)
    else:
        manager.retention_days = args.days

    if args.user_id and args.token:
        owner = AuthSession(user_id=args.user_id, token=args.token)
    else:
        owner = AuthGate().restore()

    result = manager.cleanup(owner)
    for notice in result.notices:
        print(notice.message)
    if not result.ok:
        print(result.message)
        return 1
    print(result.message)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
