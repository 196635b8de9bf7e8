"""
HTTP routes for the file hosting API.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from filehost import accounts, admin, editing, uploads
from filehost.context import AdminContext, Backends, CallerContext
from filehost.db import FileRecord
from filehost.dependencies import get_admin, get_backends, get_caller, get_change_feed
from filehost.feed import ChangeFeed, Subscription
from filehost.schemas import (
    AdminStatsResponse,
    FileSummary,
    GetContentRequest,
    GetContentResponse,
    ListFilesResponse,
    ListUsersResponse,
    MessageResponse,
    StorageUsageResponse,
    SuspendRequest,
    UpdateContentRequest,
    UploadContentRequest,
    UploadResponse,
    UserSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter()

KEEP_ALIVE_SECONDS = 15.0


def _file_summary(backends: Backends, record: FileRecord) -> FileSummary:
    return FileSummary(
        id=record.id,
        name=record.name,
        type=record.content_type,
        size=record.size_bytes,
        url=backends.url_for(record),
        ownerId=record.owner_id,
        createdAt=record.created_at,
        lastEditedAt=record.last_edited_at,
    )


def _upload_response(result: uploads.UploadResult) -> UploadResponse:
    return UploadResponse(
        url=result.url,
        id=result.record.id,
        name=result.record.name,
        type=result.record.content_type,
        size=result.record.size_bytes,
        replaced=result.replaced,
    )


@router.post("/upload", response_model=UploadResponse)
async def upload(
    file: UploadFile = File(...),
    fileName: Optional[str] = Form(None),
    fileType: Optional[str] = Form(None),
    ownerId: Optional[str] = Form(None),
    caller: CallerContext = Depends(get_caller),
    backends: Backends = Depends(get_backends),
):
    """
    Multipart upload. ``fileType`` is informational; the stored type is
    always derived from the file extension.
    """
    content = await file.read()
    filename = fileName or file.filename or ""
    logger.info("Upload request for %s (declared type %s)", filename, fileType)
    result = await run_in_threadpool(
        uploads.upload_file,
        backends,
        caller,
        filename=filename,
        content=content,
        owner_id=ownerId,
    )
    return _upload_response(result)


@router.post("/upload-content", response_model=UploadResponse)
def upload_content(
    payload: UploadContentRequest,
    caller: CallerContext = Depends(get_caller),
    backends: Backends = Depends(get_backends),
):
    result = uploads.upload_file(
        backends,
        caller,
        filename=payload.fileName,
        content=payload.fileContent.encode("utf-8"),
        owner_id=payload.ownerId,
    )
    return _upload_response(result)


@router.post("/get-file-content", response_model=GetContentResponse)
def get_file_content(
    payload: GetContentRequest,
    caller: CallerContext = Depends(get_caller),
    backends: Backends = Depends(get_backends),
):
    content = editing.read_content(backends, caller, payload.fileId)
    return GetContentResponse(content=content)


@router.post("/update-file-content", response_model=MessageResponse)
def update_file_content(
    payload: UpdateContentRequest,
    caller: CallerContext = Depends(get_caller),
    backends: Backends = Depends(get_backends),
):
    editing.save_content(
        backends, caller, payload.fileId, payload.content, owner_id=payload.ownerId
    )
    return MessageResponse(message="File updated successfully")


@router.get("/files", response_model=ListFilesResponse)
def list_files(
    caller: CallerContext = Depends(get_caller),
    backends: Backends = Depends(get_backends),
):
    records = accounts.list_files(backends, caller)
    return ListFilesResponse(files=[_file_summary(backends, r) for r in records])


@router.delete("/files/{file_id}", response_model=MessageResponse)
def delete_file(
    file_id: str,
    caller: CallerContext = Depends(get_caller),
    backends: Backends = Depends(get_backends),
):
    accounts.delete_file(backends, caller, file_id)
    return MessageResponse(message="The file has been successfully deleted")


def change_stream(
    subscription: Subscription, keep_alive: float = KEEP_ALIVE_SECONDS
) -> Iterator[str]:
    """Render a feed subscription as server-sent event frames."""
    try:
        yield ": connected\n\n"
        while True:
            change = subscription.get(timeout=keep_alive)
            if change is None:
                yield ": keep-alive\n\n"
                continue
            yield f"event: {change.event.lower()}\ndata: {change.to_json()}\n\n"
    finally:
        subscription.close()


@router.get("/files/events")
def file_events(
    caller: CallerContext = Depends(get_caller),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """Server-sent events for every change to the caller's files."""
    caller.require_identity()
    subscription = feed.subscribe(caller.owner_id)
    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
    }
    return StreamingResponse(
        change_stream(subscription), headers=headers, media_type="text/event-stream"
    )


@router.get("/storage-usage", response_model=StorageUsageResponse)
def get_storage_usage(
    caller: CallerContext = Depends(get_caller),
    backends: Backends = Depends(get_backends),
):
    usage = accounts.storage_usage(backends, caller)
    return StorageUsageResponse(
        used=usage.used,
        quota=usage.quota,
        available=usage.available,
        fileCount=usage.file_count,
    )


@router.delete("/account", response_model=MessageResponse)
def delete_account(
    caller: CallerContext = Depends(get_caller),
    backends: Backends = Depends(get_backends),
):
    count = accounts.delete_account(backends, caller)
    return MessageResponse(message=f"Account deleted along with {count} files")


@router.get("/admin/files", response_model=ListFilesResponse)
def admin_list_files(
    admin_ctx: AdminContext = Depends(get_admin),
    backends: Backends = Depends(get_backends),
):
    records = admin.list_all_files(backends, admin_ctx)
    return ListFilesResponse(files=[_file_summary(backends, r) for r in records])


@router.get("/admin/users", response_model=ListUsersResponse)
def admin_list_users(
    admin_ctx: AdminContext = Depends(get_admin),
    backends: Backends = Depends(get_backends),
):
    profiles = admin.list_users(backends, admin_ctx)
    return ListUsersResponse(
        users=[
            UserSummary(
                id=p.id,
                role=p.role,
                storageUsed=p.storage_used,
                suspended=p.suspended,
            )
            for p in profiles
        ]
    )


@router.get("/admin/stats", response_model=AdminStatsResponse)
def admin_stats(
    admin_ctx: AdminContext = Depends(get_admin),
    backends: Backends = Depends(get_backends),
):
    result = admin.stats(backends, admin_ctx)
    return AdminStatsResponse(
        filesCount=result.files_count,
        usersCount=result.users_count,
        totalStorage=result.total_storage,
    )


@router.post("/admin/users/{user_id}/suspend", response_model=UserSummary)
def admin_suspend_user(
    user_id: str,
    payload: Optional[SuspendRequest] = None,
    admin_ctx: AdminContext = Depends(get_admin),
    backends: Backends = Depends(get_backends),
):
    suspended = payload.suspended if payload else None
    profile = admin.set_suspended(backends, admin_ctx, user_id, suspended)
    return UserSummary(
        id=profile.id,
        role=profile.role,
        storageUsed=profile.storage_used,
        suspended=profile.suspended,
    )


@router.delete("/admin/files/{file_id}", response_model=MessageResponse)
def admin_delete_file(
    file_id: str,
    admin_ctx: AdminContext = Depends(get_admin),
    backends: Backends = Depends(get_backends),
):
    admin.delete_any_file(backends, admin_ctx, file_id)
    return MessageResponse(message="The file has been successfully deleted")
