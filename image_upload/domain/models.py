"""Value objects exchanged between the session layer and the transfer engines."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class ObjectAcl(str, Enum):
    """Access-control designation applied to an uploaded object."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"
    PUBLIC_READ_WRITE = "public-read-write"


@dataclass(frozen=True, slots=True)
class Blob:
    """An immutable binary payload with its declared name and MIME type."""

    name: str
    data: bytes = field(repr=False)
    mime_type: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str | None:
        if "." not in self.name:
            return None
        return self.name.rsplit(".", 1)[1].lower() or None


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Connection settings for the object store.

    Credentials are excluded from ``repr`` so the config can be logged safely.
    """

    bucket: str
    region: str
    access_key_id: str = field(repr=False)
    secret_access_key: str = field(repr=False)
    session_token: str | None = field(default=None, repr=False)
    endpoint_url: str | None = None


@dataclass(frozen=True, slots=True)
class UploadOptions:
    """Per-upload parameters used to build the object key and request."""

    file_name: str | None = None
    content_type: str | None = None
    folder: str | None = None
    acl: ObjectAcl = ObjectAcl.PRIVATE
    metadata: Mapping[str, str] | None = None


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Normalized outcome of one transfer.

    ``url`` and ``key`` are set iff ``success``; ``error`` is set iff not.
    """

    success: bool
    url: str | None = None
    key: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.success:
            if not self.url or not self.key or self.error is not None:
                raise ValueError("successful results carry url and key only")
        elif not self.error or self.url is not None or self.key is not None:
            raise ValueError("failed results carry an error only")

    @classmethod
    def ok(cls, *, url: str, key: str) -> "UploadResult":
        return cls(success=True, url=url, key=key)

    @classmethod
    def failure(cls, error: str) -> "UploadResult":
        return cls(success=False, error=error)


@dataclass(frozen=True, slots=True)
class DeleteResult:
    """Outcome of a delete-by-key call."""

    success: bool
    error: str | None = None
