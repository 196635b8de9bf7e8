"""
Content edit orchestrator: the browser editor's read and save round-trip.
"""

from __future__ import annotations

import logging

from filehost.context import Backends, CallerContext
from filehost.db import FileRecord
from filehost.errors import (
    MissingField,
    NotFound,
    StorageReadFailed,
    StorageWriteFailed,
    TooLarge,
)
from filehost.feed import EVENT_UPDATE, FileChange
from filehost.storage import ObjectNotFound, StorageClientError, mime_type
from filehost.uploads import check_quota, prepare_content

logger = logging.getLogger(__name__)


def read_content(backends: Backends, caller: CallerContext, file_id: str) -> str:
    caller.require_identity()
    record = backends.owned_record(caller, file_id)
    key = record.storage_key
    logger.info("Fetching %s for %s", key, caller.owner_id)
    try:
        data = backends.storage.get_bytes(key)
    except ObjectNotFound as exc:
        raise NotFound("No file content found in storage") from exc
    except StorageClientError as exc:
        logger.exception("Blob read failed for %s", key)
        raise StorageReadFailed("Failed to load file content") from exc
    return data.decode("utf-8", errors="replace")


def save_content(
    backends: Backends,
    caller: CallerContext,
    file_id: str,
    content: str | None,
    *,
    owner_id: str | None = None,
) -> FileRecord:
    """
    Overwrite a file's content from the editor.

    The same rules as an upload apply to the new content: the size limit,
    CSS minification and the account quota. On success ``size_bytes``,
    ``last_edited_at`` and the owner's ``storage_used`` are updated.
    """
    caller.require_identity()
    caller.require_active()
    if owner_id is not None:
        caller.resolve_owner(owner_id)
    if not content:
        raise MissingField("Missing required information")

    record = backends.owned_record(caller, file_id)
    settings = backends.settings
    raw = content.encode("utf-8")
    if len(raw) > settings.max_upload_bytes:
        raise TooLarge("File size exceeds upload limit")
    body = prepare_content(record.content_type, raw)

    delta = len(body) - record.size_bytes
    if delta > 0:
        profile = backends.db.ensure_profile(record.owner_id)
        check_quota(profile.storage_used, delta, settings.storage_quota_bytes)

    key = record.storage_key
    logger.info("Updating %s (%d bytes)", key, len(body))
    try:
        backends.storage.put_object(key, body, mime_type(record.content_type))
    except StorageClientError as exc:
        logger.exception("Blob write failed for %s", key)
        raise StorageWriteFailed("Failed to save file content") from exc

    backends.db.update_size(record.id, len(body))
    backends.db.update_last_edited(record.id, backends.clock())
    if delta:
        backends.db.update_storage_used(record.owner_id, delta)

    backends.notify(FileChange(EVENT_UPDATE, record.owner_id, record.id, record.name))
    updated = backends.db.find_by_id(record.id)
    if updated is None:
        raise NotFound("File not found")
    return updated
