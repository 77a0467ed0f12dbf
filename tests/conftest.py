from __future__ import annotations

import pytest

from image_upload.common.config import get_settings
from image_upload.domain.models import Blob, StorageConfig
from image_upload.services.registry import get_session_registry

_STORAGE_ENV = {
    "S3_BUCKET": "test-bucket",
    "S3_REGION": "us-east-1",
    "S3_ACCESS_KEY_ID": "test-key",
    "S3_SECRET_ACCESS_KEY": "test-secret",
}

_CLEARED_ENV = (
    "S3_SESSION_TOKEN",
    "S3_ENDPOINT_URL",
    "CDN_BASE_URL",
    "UPLOAD_DEFAULT_FOLDER",
    "UPLOAD_DEFAULT_ACL",
    "UPLOAD_MAX_BYTES",
    "UPLOAD_PART_CONCURRENCY",
    "UPLOAD_MAX_SESSIONS",
    "UPLOAD_SESSION_TTL_SECONDS",
    "API_KEY_ENABLED",
    "API_KEY",
    "CORS_ENABLED",
    "TRACE_HTTP",
    "LOG_LEVEL",
)


def _clear_caches() -> None:
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_session_registry.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def storage_env(monkeypatch):
    for key, value in _STORAGE_ENV.items():
        monkeypatch.setenv(key, value)
    for key in _CLEARED_ENV:
        monkeypatch.delenv(key, raising=False)
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture()
def storage_config() -> StorageConfig:
    return StorageConfig(
        bucket="test-bucket",
        region="us-east-1",
        access_key_id="test-key",
        secret_access_key="test-secret",
    )


@pytest.fixture()
def png_blob() -> Blob:
    return Blob(name="photo.png", data=b"\x89PNG" + b"0" * 2044, mime_type="image/png")
