"""
Error taxonomy surfaced by the orchestrators.

Every error carries the HTTP status the API answers with; the message is
what the browser shows in its notification.
"""

from __future__ import annotations


class FileHostError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FileHostError):
    status_code = 400


class UnsupportedType(ValidationError):
    pass


class TooLarge(ValidationError):
    pass


class InvalidName(ValidationError):
    pass


class MissingField(ValidationError):
    pass


class QuotaExceeded(FileHostError):
    status_code = 413


class Unauthenticated(FileHostError):
    status_code = 401


class AccessDenied(FileHostError):
    status_code = 403


class NotFound(FileHostError):
    status_code = 404


class StorageWriteFailed(FileHostError):
    status_code = 502


class StorageReadFailed(FileHostError):
    status_code = 502


class DatabaseError(FileHostError):
    status_code = 500
