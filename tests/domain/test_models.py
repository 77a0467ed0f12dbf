from __future__ import annotations

import pytest

from image_upload.domain.models import Blob, StorageConfig, UploadResult
from image_upload.domain.strategy import (
    MULTIPART_THRESHOLD_BYTES,
    UploadStrategy,
    select_strategy,
)
from image_upload.domain.urls import apply_cdn, public_url


class TestUploadResult:
    def test_ok(self):
        result = UploadResult.ok(url="https://x/a.png", key="a.png")

        assert result.success is True
        assert result.error is None

    def test_failure(self):
        result = UploadResult.failure("boom")

        assert result.success is False
        assert result.url is None and result.key is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"success": True, "url": "https://x/a.png"},
            {"success": True, "url": "https://x/a.png", "key": "a.png", "error": "e"},
            {"success": False},
            {"success": False, "error": "e", "key": "a.png"},
        ],
    )
    def test_invariant_enforced(self, kwargs):
        with pytest.raises(ValueError):
            UploadResult(**kwargs)


class TestBlob:
    def test_size_and_extension(self):
        blob = Blob(name="Photo.JPG", data=b"12345", mime_type="image/jpeg")

        assert blob.size_bytes == 5
        assert blob.extension == "jpg"

    def test_repr_hides_data(self):
        assert "12345" not in repr(Blob(name="a.png", data=b"12345", mime_type="image/png"))


def test_storage_config_repr_hides_credentials():
    config = StorageConfig(
        bucket="b",
        region="r",
        access_key_id="AKIASECRET",
        secret_access_key="supersecret",
        session_token="tok3n",
    )

    text = repr(config)
    assert "AKIASECRET" not in text
    assert "supersecret" not in text
    assert "tok3n" not in text


class TestSelectStrategy:
    def test_threshold_is_single(self):
        assert select_strategy(MULTIPART_THRESHOLD_BYTES) is UploadStrategy.SINGLE

    def test_above_threshold_is_multipart(self):
        assert select_strategy(MULTIPART_THRESHOLD_BYTES + 1) is UploadStrategy.MULTIPART

    def test_small_is_single(self):
        assert select_strategy(0) is UploadStrategy.SINGLE
        assert select_strategy(2048) is UploadStrategy.SINGLE


class TestUrls:
    def test_public_url(self, storage_config):
        assert (
            public_url(storage_config, "uploads/a.png")
            == "https://test-bucket.s3.us-east-1.amazonaws.com/uploads/a.png"
        )

    def test_apply_cdn(self, storage_config):
        url = public_url(storage_config, "uploads/a.png")

        assert apply_cdn(url, storage_config, "https://cdn.example.com/") == (
            "https://cdn.example.com/uploads/a.png"
        )

    def test_apply_cdn_without_cdn(self, storage_config):
        url = public_url(storage_config, "a.png")

        assert apply_cdn(url, storage_config, None) == url

    def test_apply_cdn_foreign_url_unchanged(self, storage_config):
        url = "https://elsewhere.example.com/a.png"

        assert apply_cdn(url, storage_config, "https://cdn.example.com") == url
