from __future__ import annotations

from enum import Enum

# Blobs strictly larger than this go through multipart upload (100 MiB)
MULTIPART_THRESHOLD_BYTES = 100 * 1024 * 1024


class UploadStrategy(str, Enum):
    SINGLE = "single"
    MULTIPART = "multipart"


def select_strategy(size_bytes: int) -> UploadStrategy:
    if size_bytes > MULTIPART_THRESHOLD_BYTES:
        return UploadStrategy.MULTIPART
    return UploadStrategy.SINGLE
