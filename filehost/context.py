"""
Per-request caller context and the backends an orchestrator works against.

Authorization is decided once, when the context is built: handlers receive
either a ``CallerContext`` or, for admin routes, an ``AdminContext``, and
never compare role strings themselves.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from filehost.config import Settings
from filehost.db import ANONYMOUS_OWNER_ID, ROLE_STANDARD, DbClient, FileRecord
from filehost.errors import AccessDenied, MissingField, NotFound, Unauthenticated
from filehost.feed import ChangeFeed, FileChange
from filehost.storage import StorageClient, display_url, public_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerContext:
    owner_id: str
    role: str = ROLE_STANDARD
    suspended: bool = False
    anonymous: bool = False

    @property
    def is_admin(self) -> bool:
        return False

    def require_identity(self) -> None:
        if self.anonymous:
            raise Unauthenticated("Sign in to manage files")

    def require_active(self) -> None:
        if self.suspended:
            raise AccessDenied("Account is suspended")

    def resolve_owner(self, owner_id: Optional[str]) -> str:
        """Owner a write acts on: the caller, or anyone for an admin."""
        if not owner_id or owner_id == self.owner_id:
            return self.owner_id
        if self.is_admin:
            return owner_id
        raise AccessDenied("Owner does not match the signed-in user")

    def can_access(self, record: FileRecord) -> bool:
        return self.is_admin or record.owner_id == self.owner_id


@dataclass(frozen=True)
class AdminContext(CallerContext):
    @property
    def is_admin(self) -> bool:
        return True


def resolve_caller(
    db: DbClient, user_id: Optional[str], *, allow_anonymous: bool = True
) -> CallerContext:
    """
    Build the caller context for a request.

    ``user_id`` is the identity-provider subject forwarded by the auth
    gateway. A first-time subject gets a standard profile.
    """
    if not user_id:
        if not allow_anonymous:
            raise Unauthenticated("Authentication required")
        return CallerContext(owner_id=ANONYMOUS_OWNER_ID, anonymous=True)

    profile = db.ensure_profile(user_id)
    if profile.is_superadmin:
        return AdminContext(
            owner_id=profile.id, role=profile.role, suspended=profile.suspended
        )
    return CallerContext(
        owner_id=profile.id, role=profile.role, suspended=profile.suspended
    )


def require_admin(caller: CallerContext) -> AdminContext:
    if not isinstance(caller, AdminContext):
        logger.warning("Admin access denied for %s", caller.owner_id)
        raise AccessDenied("You don't have permission to access the admin dashboard")
    caller.require_active()
    return caller


@dataclass
class Backends:
    """Everything an orchestrator call touches, passed explicitly."""

    db: DbClient
    storage: StorageClient
    feed: ChangeFeed
    settings: Settings
    clock: Callable[[], float] = time.time

    def url_for(self, record: FileRecord) -> str:
        url = public_url(self.settings.public_base_url, record.storage_key)
        return display_url(
            url, self.settings.public_base_url, self.settings.cdn_base_url
        )

    def notify(self, change: FileChange) -> None:
        # Runs after the metadata commit; a failed publish must not undo it.
        try:
            self.feed.publish(change)
        except Exception:
            logger.exception(
                "Failed to publish %s for %s", change.event, change.file_id
            )

    def owned_record(self, caller: CallerContext, file_id: str) -> FileRecord:
        if not file_id:
            raise MissingField("File ID is required")
        record = self.db.find_by_id(file_id)
        if record is None:
            raise NotFound("File not found")
        if not caller.can_access(record):
            raise AccessDenied("File not found or access denied")
        return record
