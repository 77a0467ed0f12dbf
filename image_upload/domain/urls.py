"""Public URL derivation for uploaded objects."""

from __future__ import annotations

from image_upload.domain.models import StorageConfig


def store_url_prefix(bucket: str, region: str) -> str:
    return f"https://{bucket}.s3.{region}.amazonaws.com"


def public_url(config: StorageConfig, key: str) -> str:
    return f"{store_url_prefix(config.bucket, config.region)}/{key}"


def apply_cdn(url: str, config: StorageConfig, cdn_base_url: str | None) -> str:
    """Replace the store-domain prefix of ``url`` with ``cdn_base_url``.

    Pure string substitution; URLs that do not start with the store prefix are
    returned unchanged, as is every URL when no CDN is configured.
    """
    if not cdn_base_url:
        return url
    prefix = store_url_prefix(config.bucket, config.region)
    if not url.startswith(prefix):
        return url
    return cdn_base_url.rstrip("/") + url[len(prefix) :]
