"""Storage client protocol and data types.

This module defines the transport interface the upload engines drive:
single-shot puts, the multipart upload session calls, and deletes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol, Sequence

from image_upload.domain.errors import TransportError


class StorageError(TransportError):
    """Raised when object storage operations fail."""


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Every method raises ``StorageError`` on failure; no other exception type
    is expected to escape an implementation.
    """

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str,
        acl: str,
        metadata: Mapping[str, str] | None = None,
    ) -> str | None:
        """Store an object in a single request.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            body: Full object content.
            content_type: MIME type of the object.
            acl: Canned ACL applied to the object.
            metadata: Custom metadata to attach to the object.

        Returns:
            The object's ETag when the backend reports one.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        acl: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        """Upload one part of a multipart session.

        Args:
            part_number: Part number (1-based, max 10000).
            body: Part content; every part but the last must be at least 5 MiB.

        Returns:
            CompletedPart carrying the ETag the backend assigned to the part.

        Raises:
            StorageError: If the upload fails or no ETag is returned.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage.

        Raises:
            StorageError: If the operation fails.
        """
        ...
