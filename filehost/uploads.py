"""
Upload orchestrator: validate, minify, check quota, write the blob, then
index it.

The blob write happens before the metadata write. If the metadata write
fails after a successful blob write the blob is left orphaned; see
``filehost.reconcile`` for the sweep that reclaims such blobs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from filehost.context import Backends, CallerContext
from filehost.db import FileRecord
from filehost.errors import QuotaExceeded, StorageWriteFailed, ValidationError
from filehost.feed import EVENT_DELETE, EVENT_INSERT, FileChange
from filehost.minify import minify_css
from filehost.storage import StorageClientError, mime_type, storage_key
from filehost.validation import validate_upload

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    record: FileRecord
    url: str
    replaced: bool = False


def prepare_content(content_type: str, content: bytes) -> bytes:
    """
    Bytes that get stored: CSS is minified, JS is stored untouched.

    Both must be UTF-8 so the editor can hand back exactly what was stored.
    """
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError(
            f"{content_type.upper()} files must be UTF-8 encoded text"
        ) from exc
    if content_type != "css":
        return content
    return minify_css(text).encode("utf-8")


def check_quota(used: int, incoming: int, quota: int, *, released: int = 0) -> None:
    if used - released + incoming > quota:
        raise QuotaExceeded(
            "Storage quota exceeded. Delete some files before uploading more."
        )


def upload_file(
    backends: Backends,
    caller: CallerContext,
    *,
    filename: str,
    content: bytes,
    owner_id: str | None = None,
) -> UploadResult:
    settings = backends.settings
    caller.require_active()
    owner_id = caller.resolve_owner(owner_id)

    content_type = validate_upload(
        filename,
        len(content),
        max_bytes=settings.max_upload_bytes,
        max_name_length=settings.max_name_length,
    )
    body = prepare_content(content_type, content)

    existing = backends.db.find_by_owner_and_name(owner_id, filename)
    profile = backends.db.ensure_profile(owner_id)
    check_quota(
        profile.storage_used,
        len(body),
        settings.storage_quota_bytes,
        released=existing.size_bytes if existing else 0,
    )

    key = storage_key(owner_id, filename)
    logger.info(
        "Uploading %s for %s to %s (%d bytes)", filename, owner_id, key, len(body)
    )
    try:
        backends.storage.put_object(key, body, mime_type(content_type))
    except StorageClientError as exc:
        logger.exception("Blob write failed for %s", key)
        raise StorageWriteFailed(f"Failed to store {filename}") from exc

    record = FileRecord(
        owner_id=owner_id,
        name=filename,
        content_type=content_type,
        size_bytes=len(body),
        created_at=backends.clock(),
    )
    stored, previous = backends.db.replace_file(record)

    if previous:
        logger.info("Replaced %s (%s) with %s", filename, previous.id, stored.id)
        backends.notify(
            FileChange(EVENT_DELETE, owner_id, previous.id, previous.name)
        )
    backends.notify(FileChange(EVENT_INSERT, owner_id, stored.id, stored.name))
    return UploadResult(
        record=stored, url=backends.url_for(stored), replaced=previous is not None
    )
