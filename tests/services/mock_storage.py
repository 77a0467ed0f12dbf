"""Mock storage client for testing upload operations."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from image_upload.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    StorageError,
)


@dataclass
class MockStorageClient:
    """In-memory mock of StorageClient for testing.

    Failures are injected per operation: ``fail_put``, ``fail_create``,
    ``fail_complete``, ``fail_abort``, ``fail_delete`` and ``fail_parts``
    (part numbers whose upload raises).
    """

    uploads: dict[str, dict[str, Any]] = field(default_factory=dict)
    objects: dict[str, dict[str, Any]] = field(default_factory=dict)
    fail_put: bool = False
    fail_create: bool = False
    fail_complete: bool = False
    fail_abort: bool = False
    fail_delete: bool = False
    fail_parts: set[int] = field(default_factory=set)
    put_calls: int = 0
    part_calls: list[int] = field(default_factory=list)
    completed_parts: list[CompletedPart] = field(default_factory=list)
    aborted: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    _upload_counter: int = field(default=0)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def network_calls(self) -> int:
        return (
            self.put_calls
            + self._upload_counter
            + len(self.part_calls)
            + len(self.aborted)
            + len(self.deleted)
        )

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
        self.put_calls += 1
        if self.fail_put:
            raise StorageError("Failed to put object: network down")
        self.objects[f"{bucket}/{object_key}"] = {
            "bucket": bucket,
            "object_key": object_key,
            "body": body,
            "content_type": content_type,
            "acl": acl,
            "metadata": dict(metadata or {}),
        }
        return f'"etag-{self.put_calls}"'

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        acl: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> MultipartUpload:
        self._upload_counter += 1
        if self.fail_create:
            raise StorageError("Failed to create multipart upload: denied")
        upload_id = f"mock-upload-{self._upload_counter}"
        self.uploads[upload_id] = {
            "bucket": bucket,
            "object_key": object_key,
            "content_type": content_type,
            "acl": acl,
            "metadata": dict(metadata or {}),
            "parts": {},
            "completed": False,
            "aborted": False,
        }
        return MultipartUpload(
            upload_id=upload_id, bucket=bucket, object_key=object_key
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        with self._lock:
            self.part_calls.append(part_number)
        if part_number in self.fail_parts:
            raise StorageError(f"Failed to upload part {part_number}: timeout")
        with self._lock:
            self.uploads[upload_id]["parts"][part_number] = body
        return CompletedPart(part_number=part_number, etag=f"etag-{part_number}")

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        if upload_id not in self.uploads:
            raise StorageError(f"Upload {upload_id} not found")
        if self.fail_complete:
            raise StorageError("Failed to complete multipart upload: bad parts")

        upload = self.uploads[upload_id]
        upload["completed"] = True
        self.completed_parts = list(parts)
        body = b"".join(upload["parts"][p.part_number] for p in parts)
        self.objects[f"{bucket}/{object_key}"] = {
            "bucket": bucket,
            "object_key": object_key,
            "body": body,
            "content_type": upload["content_type"],
            "acl": upload["acl"],
            "metadata": upload["metadata"],
        }

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        self.aborted.append(upload_id)
        if self.fail_abort:
            raise StorageError("Failed to abort multipart upload: gone")
        if upload_id in self.uploads:
            self.uploads[upload_id]["aborted"] = True

    def delete_object(
        self,
        *,
        bucket: str,
        object_key: str,
    ) -> None:
        self.deleted.append(object_key)
        if self.fail_delete:
            raise StorageError("Failed to delete object: access denied")
        self.objects.pop(f"{bucket}/{object_key}", None)
