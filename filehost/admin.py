"""
Admin operations. Every function takes an ``AdminContext``, which only
``require_admin`` hands out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from filehost.accounts import remove_file
from filehost.context import AdminContext, Backends
from filehost.db import FileRecord, Profile
from filehost.errors import NotFound

logger = logging.getLogger(__name__)


@dataclass
class AdminStats:
    files_count: int
    users_count: int
    total_storage: int


def list_all_files(
    backends: Backends, admin: AdminContext, limit: Optional[int] = None
) -> list[FileRecord]:
    return backends.db.list_files(limit=limit)


def list_users(backends: Backends, admin: AdminContext) -> list[Profile]:
    return backends.db.list_profiles()


def stats(backends: Backends, admin: AdminContext) -> AdminStats:
    return AdminStats(
        files_count=len(backends.db.list_files()),
        users_count=len(backends.db.list_profiles()),
        total_storage=backends.db.total_storage(),
    )


def set_suspended(
    backends: Backends,
    admin: AdminContext,
    user_id: str,
    suspended: Optional[bool] = None,
) -> Profile:
    """Set a user's suspension flag; with ``suspended=None`` the flag is toggled."""
    profile = backends.db.get_profile(user_id)
    if profile is None:
        raise NotFound("User not found")
    target = (not profile.suspended) if suspended is None else suspended
    updated = backends.db.set_suspended(user_id, target)
    if updated is None:
        raise NotFound("User not found")
    logger.info(
        "%s %s user %s",
        admin.owner_id,
        "suspended" if target else "unsuspended",
        user_id,
    )
    return updated


def delete_any_file(
    backends: Backends, admin: AdminContext, file_id: str
) -> FileRecord:
    record = backends.owned_record(admin, file_id)
    logger.info("%s deleting %s owned by %s", admin.owner_id, file_id, record.owner_id)
    return remove_file(backends, record)
