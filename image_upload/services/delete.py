from __future__ import annotations

import logging

from image_upload.domain.models import DeleteResult, StorageConfig
from image_upload.infra.observability.metrics import DELETES
from image_upload.infra.storage.client import StorageClient, StorageError

logger = logging.getLogger(__name__)


class DeleteEngine:
    """Removes a previously uploaded object by key. Failures are reported, never retried."""

    def __init__(self, storage: StorageClient, config: StorageConfig) -> None:
        self._storage = storage
        self._config = config

    def remove(self, key: str) -> DeleteResult:
        if not key:
            return DeleteResult(success=False, error="Object key is required")
        try:
            self._storage.delete_object(bucket=self._config.bucket, object_key=key)
        except StorageError as exc:
            logger.warning(
                "delete_failed key=%s error=%s",
                key,
                exc,
                extra={"extra": {"key": key}},
            )
            DELETES.labels("failed").inc()
            return DeleteResult(success=False, error=str(exc) or "Delete failed")

        logger.info("delete_succeeded key=%s", key, extra={"extra": {"key": key}})
        DELETES.labels("deleted").inc()
        return DeleteResult(success=True)
