"""Single-shot upload engine: one put_object call for the whole blob."""

from __future__ import annotations

import logging

from image_upload.domain.errors import ValidationError
from image_upload.domain.models import Blob, StorageConfig, UploadOptions, UploadResult
from image_upload.domain.naming import object_key_for, resolve_content_type
from image_upload.domain.strategy import UploadStrategy
from image_upload.domain.urls import public_url
from image_upload.domain.validation import DEFAULT_MAX_IMAGE_BYTES, ensure_valid_image
from image_upload.infra.observability.metrics import UPLOAD_BYTES, UPLOADS
from image_upload.infra.storage.client import StorageClient, StorageError

logger = logging.getLogger(__name__)


class SingleUploadEngine:
    """Uploads a blob with a single store-object request.

    No retries: a transport failure is returned whole and the caller owns the
    retry policy. Nothing is written remotely when validation fails.
    """

    def __init__(
        self,
        storage: StorageClient,
        config: StorageConfig,
        *,
        max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    ) -> None:
        self._storage = storage
        self._config = config
        self._max_bytes = max_bytes

    def put(self, blob: Blob, options: UploadOptions | None = None) -> UploadResult:
        options = options or UploadOptions()
        try:
            ensure_valid_image(blob, max_bytes=self._max_bytes)
        except ValidationError as exc:
            UPLOADS.labels(UploadStrategy.SINGLE.value, "invalid").inc()
            return UploadResult.failure(str(exc))

        key = object_key_for(blob, options)
        try:
            self._storage.put_object(
                bucket=self._config.bucket,
                object_key=key,
                body=blob.data,
                content_type=resolve_content_type(blob, options),
                acl=options.acl.value,
                metadata=options.metadata,
            )
        except StorageError as exc:
            logger.warning(
                "single_upload_failed key=%s error=%s",
                key,
                exc,
                extra={"extra": {"key": key, "strategy": "single"}},
            )
            UPLOADS.labels(UploadStrategy.SINGLE.value, "failed").inc()
            return UploadResult.failure(str(exc) or "Upload failed")

        logger.info(
            "single_upload_succeeded key=%s size_bytes=%s",
            key,
            blob.size_bytes,
            extra={"extra": {"key": key, "strategy": "single"}},
        )
        UPLOADS.labels(UploadStrategy.SINGLE.value, "succeeded").inc()
        UPLOAD_BYTES.labels(UploadStrategy.SINGLE.value).observe(blob.size_bytes)
        return UploadResult.ok(url=public_url(self._config, key), key=key)
