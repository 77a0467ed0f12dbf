"""Object naming helpers: unique file names, object keys and size labels."""

from __future__ import annotations

import random
import string
import time

from image_upload.domain.models import Blob, UploadOptions

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits
_TOKEN_LENGTH = 13
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def split_file_name(name: str) -> tuple[str, str]:
    """Split on the last dot; inner dots stay in the stem.

    ``"a.b.png"`` gives ``("a.b", "png")``; a name without a dot has no extension.
    """
    stem, dot, extension = name.rpartition(".")
    if not dot:
        return name, ""
    return stem, extension


def _random_token() -> str:
    return "".join(random.choices(_TOKEN_ALPHABET, k=_TOKEN_LENGTH))


def generate_unique_name(original_name: str) -> str:
    """Return ``<stem>_<epoch_millis>_<token>.<ext>`` for ``original_name``.

    Uniqueness is practical, not guaranteed: two calls in the same millisecond
    only differ by the random token.
    """
    stem, extension = split_file_name(original_name)
    epoch_millis = time.time_ns() // 1_000_000
    unique = f"{stem}_{epoch_millis}_{_random_token()}"
    return f"{unique}.{extension}" if extension else unique


def build_object_key(file_name: str, folder: str | None = None) -> str:
    """Return ``"<folder>/<file_name>"``, or the bare file name without a folder.

    The folder is used verbatim; a leading or trailing slash stays in the key.
    """
    return f"{folder}/{file_name}" if folder else file_name


def object_key_for(blob: Blob, options: UploadOptions) -> str:
    """Resolve the object key for an upload, generating a file name if needed."""
    file_name = options.file_name or generate_unique_name(blob.name)
    return build_object_key(file_name, options.folder)


def resolve_content_type(blob: Blob, options: UploadOptions) -> str:
    return options.content_type or blob.mime_type or DEFAULT_CONTENT_TYPE


def format_file_size(size_bytes: int) -> str:
    """Human-readable size, e.g. ``1536`` -> ``"1.5 KB"``."""
    if size_bytes <= 0:
        return "0 Bytes"
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(_SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[index]}"
