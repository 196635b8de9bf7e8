"""
Storage abstraction for Cloudflare R2 (S3-compatible) and in-memory testing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

CONTENT_TYPES = {
    "css": "text/css",
    "js": "application/javascript",
}

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}
_UNAUTHORIZED_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "Unauthorized",
    "401",
    "403",
}


class StorageClientError(Exception):
    """Base class for failures reported by a storage backend."""

    def __init__(self, key: str, message: str = ""):
        super().__init__(message or key)
        self.key = key


class ObjectNotFound(StorageClientError):
    pass


class StorageUnauthorized(StorageClientError):
    pass


class StorageUnavailable(StorageClientError):
    pass


def owner_folder(owner_id: str) -> str:
    """Folder holding every blob of one owner. The raw owner id is used as-is."""
    return owner_id


def storage_key(owner_id: str, name: str) -> str:
    return f"{owner_folder(owner_id)}/{name}"


def public_url(base_url: str, key: str) -> str:
    return f"{base_url.rstrip('/')}/{key}"


def display_url(url: str, public_base_url: str, cdn_base_url: str | None) -> str:
    """Swap the bucket's public host for the vanity CDN host, if one is configured."""
    if not cdn_base_url:
        return url
    prefix = public_base_url.rstrip("/") + "/"
    if not url.startswith(prefix):
        return url
    return cdn_base_url.rstrip("/") + "/" + url[len(prefix):]


def mime_type(content_type: str) -> str:
    return CONTENT_TYPES.get(content_type, "application/octet-stream")


@dataclass
class StoredObject:
    key: str
    size: int
    last_modified: float


class StorageClient(Protocol):
    """Defines the operations the orchestrators need from object storage."""

    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        ...

    def get_bytes(self, key: str) -> bytes:
        ...

    def delete_object(self, key: str) -> None:
        ...

    def list_objects(self, prefix: str = "") -> list[StoredObject]:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    stored_objects: Dict[str, bytes] = field(default_factory=dict)
    content_types: Dict[str, str] = field(default_factory=dict)
    modified_at: Dict[str, float] = field(default_factory=dict)

    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        self.stored_objects[key] = bytes(body)
        self.content_types[key] = content_type
        self.modified_at[key] = time.time()

    def get_bytes(self, key: str) -> bytes:
        stored = self.stored_objects.get(key)
        if stored is None:
            raise ObjectNotFound(key)
        return stored

    def delete_object(self, key: str) -> None:
        # S3 semantics: deleting a missing key succeeds.
        self.stored_objects.pop(key, None)
        self.content_types.pop(key, None)
        self.modified_at.pop(key, None)

    def list_objects(self, prefix: str = "") -> list[StoredObject]:
        return [
            StoredObject(key=key, size=len(body), last_modified=self.modified_at[key])
            for key, body in sorted(self.stored_objects.items())
            if key.startswith(prefix)
        ]

    def reset(self) -> None:
        self.stored_objects.clear()
        self.content_types.clear()
        self.modified_at.clear()


@dataclass
class R2StorageClient:
    """
    S3-compatible storage client for Cloudflare R2.
    """

    bucket: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    region: str = "auto"

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(key, exc) from exc

    def get_bytes(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(key, exc) from exc

    def delete_object(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(key, exc) from exc

    def list_objects(self, prefix: str = "") -> list[StoredObject]:
        objects: list[StoredObject] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    objects.append(
                        StoredObject(
                            key=item["Key"],
                            size=item.get("Size", 0),
                            last_modified=item["LastModified"].timestamp(),
                        )
                    )
        except (ClientError, BotoCoreError) as exc:
            raise _translate_error(prefix, exc) from exc
        return objects


def _translate_error(key: str, exc: Exception) -> StorageClientError:
    if isinstance(exc, ClientError):
        code = str(exc.response.get("Error", {}).get("Code", ""))
        message = str(exc.response.get("Error", {}).get("Message", "")) or code
        if code in _NOT_FOUND_CODES:
            return ObjectNotFound(key, message)
        if code in _UNAUTHORIZED_CODES:
            return StorageUnauthorized(key, message)
        return StorageUnavailable(key, message)
    return StorageUnavailable(key, str(exc))
