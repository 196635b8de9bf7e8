"""
Pydantic schemas for the file hosting API.

Field names follow the browser client's camelCase payloads.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class UploadContentRequest(BaseModel):
    fileName: str = Field(..., max_length=255)
    fileContent: str
    fileType: Optional[str] = None
    ownerId: Optional[str] = None


class UploadResponse(BaseModel):
    url: str
    id: str
    name: str
    type: Literal["css", "js"]
    size: int
    replaced: bool = False


class GetContentRequest(BaseModel):
    fileId: str


class GetContentResponse(BaseModel):
    content: str


class UpdateContentRequest(BaseModel):
    fileId: str
    content: Optional[str] = None
    ownerId: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class FileSummary(BaseModel):
    id: str
    name: str
    type: Literal["css", "js"]
    size: int
    url: str
    ownerId: str
    createdAt: float
    lastEditedAt: Optional[float] = None


class ListFilesResponse(BaseModel):
    files: list[FileSummary]


class StorageUsageResponse(BaseModel):
    used: int
    quota: int
    available: int
    fileCount: int


class UserSummary(BaseModel):
    id: str
    role: str
    storageUsed: int
    suspended: bool


class ListUsersResponse(BaseModel):
    users: list[UserSummary]


class AdminStatsResponse(BaseModel):
    filesCount: int
    usersCount: int
    totalStorage: int


class SuspendRequest(BaseModel):
    suspended: Optional[bool] = None
