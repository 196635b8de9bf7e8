"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from filehost.config import Settings, get_settings
from filehost.context import (
    AdminContext,
    Backends,
    CallerContext,
    require_admin,
    resolve_caller,
)
from filehost.db import DbClient, InMemoryDbClient, PostgresDbClient
from filehost.feed import ChangeFeed, InMemoryChangeFeed, RedisChangeFeed
from filehost.storage import InMemoryStorageClient, R2StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_change_feed: ChangeFeed | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so in-memory state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.r2_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = R2StorageClient(
            bucket=settings.r2_bucket,
            endpoint=settings.r2_endpoint or "",
            access_key_id=settings.r2_access_key_id or "",
            secret_access_key=settings.r2_secret_access_key or "",
            region=settings.r2_region,
        )
    return _storage_client


def get_change_feed() -> ChangeFeed:
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        _change_feed = InMemoryChangeFeed()
    else:
        _change_feed = RedisChangeFeed(
            url=settings.redis_url, prefix=settings.change_feed_prefix
        )
    return _change_feed


def get_backends(
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    feed: ChangeFeed = Depends(get_change_feed),
    settings: Settings = Depends(get_settings),
) -> Backends:
    return Backends(db=db, storage=storage, feed=feed, settings=settings)


def get_caller(
    x_user_id: Optional[str] = Header(default=None),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> CallerContext:
    return resolve_caller(
        db, x_user_id, allow_anonymous=settings.allow_anonymous_uploads
    )


def get_admin(caller: CallerContext = Depends(get_caller)) -> AdminContext:
    return require_admin(caller)
