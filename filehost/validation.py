"""
Upload validation. Runs before any network call and has no side effects.
"""

from __future__ import annotations

import re

from filehost.errors import InvalidName, MissingField, TooLarge, UnsupportedType

ALLOWED_EXTENSIONS = ("css", "js")
DEFAULT_MAX_BYTES = 1024 * 1024
DEFAULT_MAX_NAME_LENGTH = 64


def file_extension(filename: str) -> str:
    """Lower-cased text after the last dot, or an empty string."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def name_pattern(max_length: int = DEFAULT_MAX_NAME_LENGTH) -> re.Pattern:
    return re.compile(
        rf"^[A-Za-z0-9]{{1,{max_length}}}\.(css|js)$", flags=re.IGNORECASE
    )


def validate_upload(
    filename: str,
    size_bytes: int,
    *,
    max_bytes: int = DEFAULT_MAX_BYTES,
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
    check_name: bool = True,
) -> str:
    """
    Check a candidate upload and return its content type (``css`` or ``js``).

    Checks run in order: extension, size, then the optional name pattern.
    The first failing check raises.
    """
    if not filename:
        raise MissingField("No file uploaded")

    extension = file_extension(filename)
    if extension not in ALLOWED_EXTENSIONS:
        raise UnsupportedType(
            "Invalid file type. Only CSS and JS files are allowed."
        )

    if size_bytes > max_bytes:
        raise TooLarge(f"File size exceeds {_format_limit(max_bytes)} limit")

    if check_name and not name_pattern(max_name_length).match(filename):
        raise InvalidName(
            "File name may only contain letters and digits followed by .css or .js"
        )

    return extension


def _format_limit(max_bytes: int) -> str:
    if max_bytes % (1024 * 1024) == 0:
        return f"{max_bytes // (1024 * 1024)}MB"
    if max_bytes % 1024 == 0:
        return f"{max_bytes // 1024}KB"
    return f"{max_bytes} bytes"
