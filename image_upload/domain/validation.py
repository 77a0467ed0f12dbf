"""Image preconditions checked before any transfer is attempted."""

from __future__ import annotations

from dataclasses import dataclass

from image_upload.domain.errors import ValidationError
from image_upload.domain.models import Blob

# Default upper bound for a single image (10 MiB)
DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024

ALLOWED_EXTENSIONS: tuple[str, ...] = ("jpg", "jpeg", "png", "gif", "webp", "svg")


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    error: str | None = None


def is_image_type(mime_type: str | None) -> bool:
    return bool(mime_type) and mime_type.startswith("image/")


def _format_limit(max_bytes: int) -> str:
    mib = max_bytes / (1024 * 1024)
    return f"{mib:g}MB"


def validate_image_blob(
    blob: Blob, *, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES
) -> ValidationResult:
    """Check MIME type, size and extension, in that order.

    Args:
        blob: The candidate payload.
        max_bytes: Inclusive size limit.

    Returns:
        ValidationResult; ``error`` holds a human-readable reason when invalid.
    """
    if not is_image_type(blob.mime_type):
        return ValidationResult(valid=False, error="Please select an image file")

    if blob.size_bytes > max_bytes:
        return ValidationResult(
            valid=False,
            error=f"File size must be less than {_format_limit(max_bytes)}",
        )

    if blob.extension not in ALLOWED_EXTENSIONS:
        return ValidationResult(
            valid=False,
            error=(
                "Please select a valid image file "
                f"({', '.join(ALLOWED_EXTENSIONS)})"
            ),
        )

    return ValidationResult(valid=True)


def ensure_valid_image(blob: Blob, *, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> None:
    """Raise ValidationError unless the blob passes validate_image_blob."""
    result = validate_image_blob(blob, max_bytes=max_bytes)
    if not result.valid:
        raise ValidationError(result.error or "Invalid image file")
