"""Multipart upload engine.

A blob is split into fixed-size parts that are uploaded concurrently against
one multipart session. The session is either completed with every part, in
ascending part-number order, or aborted; it never outlives the call.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Sequence

from image_upload.domain.errors import IntegrityDefect, ValidationError
from image_upload.domain.models import Blob, StorageConfig, UploadOptions, UploadResult
from image_upload.domain.naming import object_key_for, resolve_content_type
from image_upload.domain.strategy import UploadStrategy
from image_upload.domain.urls import public_url
from image_upload.domain.validation import DEFAULT_MAX_IMAGE_BYTES, ensure_valid_image
from image_upload.infra.observability.metrics import (
    MULTIPART_ABORTS,
    UPLOAD_BYTES,
    UPLOADS,
)
from image_upload.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    StorageClient,
    StorageError,
)
from image_upload.services.progress import ProgressChannel

logger = logging.getLogger(__name__)

# S3 minimum size for every part but the last (5 MiB)
PART_SIZE_BYTES = 5 * 1024 * 1024
# Upper bound on parts in flight for one session
MAX_CONCURRENT_PARTS = 10


def plan_parts(
    size_bytes: int, part_size: int = PART_SIZE_BYTES
) -> list[tuple[int, int, int]]:
    """Return ``(part_number, start, end)`` byte ranges covering ``size_bytes``.

    Part numbers start at 1; only the final part may be shorter than
    ``part_size``. An empty blob still yields one (empty) part.
    """
    if part_size <= 0:
        raise ValueError("part_size must be positive")
    total = max(1, math.ceil(size_bytes / part_size))
    return [
        (index + 1, index * part_size, min((index + 1) * part_size, size_bytes))
        for index in range(total)
    ]


def ordered_parts(
    parts: Sequence[CompletedPart], total_parts: int
) -> list[CompletedPart]:
    """Sort ``parts`` by part number and check they are exactly ``1..total_parts``.

    Raises:
        IntegrityDefect: If a part number is missing, duplicated or out of range.
    """
    ordered = sorted(parts, key=lambda part: part.part_number)
    numbers = [part.part_number for part in ordered]
    if numbers != list(range(1, total_parts + 1)):
        raise IntegrityDefect(
            f"multipart part list must be 1..{total_parts}, got {numbers}"
        )
    return ordered


class MultipartUploadEngine:
    """Drives one multipart session per call: create, upload parts, complete or abort."""

    def __init__(
        self,
        storage: StorageClient,
        config: StorageConfig,
        *,
        part_size: int = PART_SIZE_BYTES,
        max_concurrency: int = MAX_CONCURRENT_PARTS,
        max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    ) -> None:
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self._storage = storage
        self._config = config
        self._part_size = part_size
        self._max_concurrency = max_concurrency
        self._max_bytes = max_bytes

    def put_multipart(
        self,
        blob: Blob,
        options: UploadOptions | None = None,
        progress: ProgressChannel | None = None,
    ) -> UploadResult:
        """Upload ``blob`` as a multipart object.

        Args:
            blob: The payload; validated before any remote call.
            options: Key, content type, ACL and metadata options.
            progress: Receives ``part_number / total_parts * 100`` per
                completed part, in completion order.

        Returns:
            UploadResult; on failure ``error`` is the message of the transfer
            failure, never of a failed abort.

        Raises:
            IntegrityDefect: If the collected part list is not ``1..N``. The
                session is aborted before the error propagates.
        """
        options = options or UploadOptions()
        try:
            ensure_valid_image(blob, max_bytes=self._max_bytes)
        except ValidationError as exc:
            UPLOADS.labels(UploadStrategy.MULTIPART.value, "invalid").inc()
            return UploadResult.failure(str(exc))

        key = object_key_for(blob, options)
        try:
            upload = self._storage.init_multipart_upload(
                bucket=self._config.bucket,
                object_key=key,
                content_type=resolve_content_type(blob, options),
                acl=options.acl.value,
                metadata=options.metadata,
            )
        except StorageError as exc:
            logger.warning(
                "multipart_create_failed key=%s error=%s",
                key,
                exc,
                extra={"extra": {"key": key, "strategy": "multipart"}},
            )
            UPLOADS.labels(UploadStrategy.MULTIPART.value, "failed").inc()
            return UploadResult.failure(str(exc) or "Multipart upload failed")

        try:
            plan = plan_parts(blob.size_bytes, self._part_size)
            parts = self._upload_parts(upload, blob, plan, progress)
            self._storage.complete_multipart_upload(
                bucket=upload.bucket,
                object_key=upload.object_key,
                upload_id=upload.upload_id,
                parts=ordered_parts(parts, len(plan)),
            )
        except StorageError as exc:
            logger.warning(
                "multipart_upload_failed key=%s upload_id=%s error=%s",
                key,
                upload.upload_id,
                exc,
                extra={
                    "extra": {
                        "key": key,
                        "upload_id": upload.upload_id,
                        "strategy": "multipart",
                    }
                },
            )
            self._abort(upload)
            UPLOADS.labels(UploadStrategy.MULTIPART.value, "failed").inc()
            return UploadResult.failure(str(exc) or "Multipart upload failed")
        except Exception:
            self._abort(upload)
            raise

        logger.info(
            "multipart_upload_succeeded key=%s upload_id=%s size_bytes=%s",
            key,
            upload.upload_id,
            blob.size_bytes,
            extra={
                "extra": {
                    "key": key,
                    "upload_id": upload.upload_id,
                    "strategy": "multipart",
                }
            },
        )
        UPLOADS.labels(UploadStrategy.MULTIPART.value, "succeeded").inc()
        UPLOAD_BYTES.labels(UploadStrategy.MULTIPART.value).observe(blob.size_bytes)
        return UploadResult.ok(url=public_url(self._config, key), key=key)

    def _upload_parts(
        self,
        upload: MultipartUpload,
        blob: Blob,
        plan: list[tuple[int, int, int]],
        progress: ProgressChannel | None,
    ) -> list[CompletedPart]:
        total = len(plan)
        completed: list[CompletedPart] = []

        with ThreadPoolExecutor(
            max_workers=min(self._max_concurrency, total),
            thread_name_prefix="upload-part",
        ) as executor:
            futures = [
                executor.submit(
                    self._storage.upload_part,
                    bucket=upload.bucket,
                    object_key=upload.object_key,
                    upload_id=upload.upload_id,
                    part_number=part_number,
                    body=blob.data[start:end],
                )
                for part_number, start, end in plan
            ]
            try:
                for future in as_completed(futures):
                    part = future.result()
                    completed.append(part)
                    if progress is not None:
                        progress.publish(part.part_number / total * 100)
            except BaseException:
                # Parts not yet started are dropped; running ones finish before
                # the executor exits, so the abort never races a part upload.
                for future in futures:
                    future.cancel()
                raise

        return completed

    def _abort(self, upload: MultipartUpload) -> None:
        try:
            self._storage.abort_multipart_upload(
                bucket=upload.bucket,
                object_key=upload.object_key,
                upload_id=upload.upload_id,
            )
        except Exception:
            logger.exception(
                "multipart_abort_failed key=%s upload_id=%s",
                upload.object_key,
                upload.upload_id,
                extra={
                    "extra": {
                        "key": upload.object_key,
                        "upload_id": upload.upload_id,
                    }
                },
            )
            MULTIPART_ABORTS.labels("failed").inc()
            return
        logger.info(
            "multipart_upload_aborted key=%s upload_id=%s",
            upload.object_key,
            upload.upload_id,
        )
        MULTIPART_ABORTS.labels("aborted").inc()
