"""
Sweep for orphaned blobs: bucket objects that no file record points at.

Orphans appear when a blob write succeeds but the metadata write after it
fails, or when a blob delete fails after its row was removed. Recently
written objects are skipped so an upload that is between its blob write
and its metadata write is never touched.
"""

from __future__ import annotations

import logging
from typing import Optional

from filehost.context import Backends
from filehost.storage import StoredObject

logger = logging.getLogger(__name__)


def find_orphaned_blobs(
    backends: Backends,
    *,
    grace_seconds: Optional[int] = None,
    now: Optional[float] = None,
) -> list[StoredObject]:
    grace = (
        backends.settings.orphan_grace_seconds
        if grace_seconds is None
        else grace_seconds
    )
    now = backends.clock() if now is None else now
    live_keys = {record.storage_key for record in backends.db.list_files()}
    return [
        obj
        for obj in backends.storage.list_objects()
        if obj.key not in live_keys and now - obj.last_modified >= grace
    ]


def sweep_orphaned_blobs(
    backends: Backends,
    *,
    dry_run: bool = False,
    grace_seconds: Optional[int] = None,
    now: Optional[float] = None,
) -> list[str]:
    """Delete orphaned blobs and return their keys."""
    orphans = find_orphaned_blobs(backends, grace_seconds=grace_seconds, now=now)
    removed: list[str] = []
    for obj in orphans:
        if dry_run:
            logger.info("Would delete orphan %s (%d bytes)", obj.key, obj.size)
        else:
            logger.info("Deleting orphan %s (%d bytes)", obj.key, obj.size)
            backends.storage.delete_object(obj.key)
        removed.append(obj.key)
    return removed
