"""
Delete bucket objects that no file record references.

Blobs become orphaned when an upload's metadata write fails after its blob
write succeeded, or when a blob delete fails after the row was removed.
Objects younger than the grace period are left alone.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from filehost.config import get_settings
from filehost.context import Backends
from filehost.dependencies import get_change_feed, get_db_client, get_storage_client
from filehost.reconcile import sweep_orphaned_blobs
from filehost.storage import StorageClientError


logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Sweep orphaned blobs")
    parser.add_argument(
        "--grace-seconds",
        type=int,
        default=None,
        help="Minimum object age before deletion (defaults to ORPHAN_GRACE_SECONDS)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report orphaned keys without deleting them",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    backends = Backends(
        db=get_db_client(),
        storage=get_storage_client(),
        feed=get_change_feed(),
        settings=get_settings(),
    )

    try:
        removed = sweep_orphaned_blobs(
            backends, dry_run=args.dry_run, grace_seconds=args.grace_seconds
        )
    except StorageClientError:
        logger.exception("Sweep aborted")
        return 1

    verb = "Found" if args.dry_run else "Deleted"
    logger.info("%s %d orphaned blobs", verb, len(removed))
    return 0


if __name__ == "__main__":
    sys.exit(main())
