"""Domain layer: value objects, validation rules and naming conventions."""

from .errors import IntegrityDefect, TransportError, UploadError, ValidationError
from .models import (
    Blob,
    DeleteResult,
    ObjectAcl,
    StorageConfig,
    UploadOptions,
    UploadResult,
)
from .strategy import MULTIPART_THRESHOLD_BYTES, UploadStrategy, select_strategy
from .validation import (
    DEFAULT_MAX_IMAGE_BYTES,
    ValidationResult,
    ensure_valid_image,
    validate_image_blob,
)

__all__ = [
    "Blob",
    "DeleteResult",
    "ObjectAcl",
    "StorageConfig",
    "UploadOptions",
    "UploadResult",
    "UploadError",
    "ValidationError",
    "TransportError",
    "IntegrityDefect",
    "UploadStrategy",
    "select_strategy",
    "MULTIPART_THRESHOLD_BYTES",
    "DEFAULT_MAX_IMAGE_BYTES",
    "ValidationResult",
    "validate_image_blob",
    "ensure_valid_image",
]
