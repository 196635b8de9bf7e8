"""
Per-account operations: listing, deleting files, usage and account removal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from filehost.context import Backends, CallerContext
from filehost.db import FileRecord
from filehost.errors import NotFound, StorageWriteFailed
from filehost.feed import EVENT_DELETE, FileChange
from filehost.storage import StorageClientError

logger = logging.getLogger(__name__)


@dataclass
class StorageUsage:
    used: int
    quota: int
    file_count: int

    @property
    def available(self) -> int:
        return max(self.quota - self.used, 0)


def list_files(backends: Backends, caller: CallerContext) -> list[FileRecord]:
    caller.require_identity()
    return backends.db.find_by_owner(caller.owner_id)


def remove_file(backends: Backends, record: FileRecord) -> FileRecord:
    """
    Delete the metadata row, release its bytes from the owner's quota, then
    delete the blob. A failed blob delete leaves an orphan for the sweep.
    """
    deleted = backends.db.delete_file(record.id)
    if deleted is None:
        raise NotFound("File not found")
    backends.db.update_storage_used(deleted.owner_id, -deleted.size_bytes)
    backends.notify(
        FileChange(EVENT_DELETE, deleted.owner_id, deleted.id, deleted.name)
    )

    key = deleted.storage_key
    # Another live record may share the key only if a replace raced this delete.
    if backends.db.find_by_owner_and_name(deleted.owner_id, deleted.name):
        logger.info("Keeping %s, a newer record references it", key)
        return deleted
    logger.info("Deleting blob %s", key)
    try:
        backends.storage.delete_object(key)
    except StorageClientError as exc:
        logger.exception("Blob delete failed for %s", key)
        raise StorageWriteFailed(f"Failed to delete {deleted.name}") from exc
    return deleted


def delete_file(
    backends: Backends, caller: CallerContext, file_id: str
) -> FileRecord:
    caller.require_identity()
    caller.require_active()
    record = backends.owned_record(caller, file_id)
    return remove_file(backends, record)


def storage_usage(backends: Backends, caller: CallerContext) -> StorageUsage:
    caller.require_identity()
    profile = backends.db.ensure_profile(caller.owner_id)
    files = backends.db.find_by_owner(caller.owner_id)
    return StorageUsage(
        used=profile.storage_used,
        quota=backends.settings.storage_quota_bytes,
        file_count=len(files),
    )


def delete_account(backends: Backends, caller: CallerContext) -> int:
    """Remove every file of the caller and then the profile. Returns the file count."""
    caller.require_identity()
    files = backends.db.find_by_owner(caller.owner_id)
    for record in files:
        remove_file(backends, record)
    backends.db.delete_profile(caller.owner_id)
    logger.info("Deleted account %s with %d files", caller.owner_id, len(files))
    return len(files)
