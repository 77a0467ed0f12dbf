"""Strategy-dispatching front door over the two upload engines."""

from __future__ import annotations

import logging

from image_upload.domain.models import Blob, StorageConfig, UploadOptions, UploadResult
from image_upload.domain.strategy import UploadStrategy, select_strategy
from image_upload.domain.validation import DEFAULT_MAX_IMAGE_BYTES, validate_image_blob
from image_upload.infra.storage.client import StorageClient
from image_upload.services.multipart_upload import (
    MAX_CONCURRENT_PARTS,
    MultipartUploadEngine,
)
from image_upload.services.progress import ProgressChannel
from image_upload.services.single_upload import SingleUploadEngine

logger = logging.getLogger(__name__)


class TransferService:
    """Picks single-shot or multipart upload by blob size and runs it.

    Blobs are validated before a strategy is chosen, so an oversized or
    non-image blob never reaches either engine. The single-shot path has no
    intermediate progress; it publishes 100 once the object is stored.
    """

    def __init__(
        self,
        storage: StorageClient,
        config: StorageConfig,
        *,
        max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        max_concurrency: int = MAX_CONCURRENT_PARTS,
        single: SingleUploadEngine | None = None,
        multipart: MultipartUploadEngine | None = None,
    ) -> None:
        self._max_bytes = max_bytes
        self._single = single or SingleUploadEngine(
            storage, config, max_bytes=max_bytes
        )
        self._multipart = multipart or MultipartUploadEngine(
            storage,
            config,
            max_bytes=max_bytes,
            max_concurrency=max_concurrency,
        )

    def upload(
        self,
        blob: Blob,
        options: UploadOptions | None = None,
        progress: ProgressChannel | None = None,
    ) -> UploadResult:
        validation = validate_image_blob(blob, max_bytes=self._max_bytes)
        if not validation.valid:
            logger.info(
                "transfer_rejected name=%s size_bytes=%s error=%s",
                blob.name,
                blob.size_bytes,
                validation.error,
            )
            return UploadResult.failure(validation.error or "Invalid image file")

        strategy = select_strategy(blob.size_bytes)
        logger.debug(
            "transfer_dispatch name=%s size_bytes=%s strategy=%s",
            blob.name,
            blob.size_bytes,
            strategy.value,
        )
        if strategy is UploadStrategy.MULTIPART:
            return self._multipart.put_multipart(blob, options, progress)

        result = self._single.put(blob, options)
        if result.success and progress is not None:
            progress.publish(100)
        return result
