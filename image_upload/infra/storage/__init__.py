"""Object storage transport used by the upload engines.

``StorageClient`` is the protocol the engines drive; ``S3StorageClient`` is
the boto3-backed implementation for AWS S3 and S3-compatible stores.
"""

from .client import (
    CompletedPart,
    MultipartUpload,
    StorageClient,
    StorageError,
)
from .s3_client import S3StorageClient

__all__ = [
    "CompletedPart",
    "MultipartUpload",
    "S3StorageClient",
    "StorageClient",
    "StorageError",
]
