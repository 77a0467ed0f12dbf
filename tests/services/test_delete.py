from __future__ import annotations

import pytest

from image_upload.services.delete import DeleteEngine
from tests.services.mock_storage import MockStorageClient


@pytest.fixture()
def mock_storage():
    return MockStorageClient()


@pytest.fixture()
def engine(mock_storage, storage_config):
    return DeleteEngine(mock_storage, storage_config)


class TestDeleteEngine:
    def test_removes_object(self, engine, mock_storage):
        mock_storage.objects["test-bucket/uploads/a.png"] = {"body": b"1"}

        result = engine.remove("uploads/a.png")

        assert result.success is True
        assert result.error is None
        assert mock_storage.deleted == ["uploads/a.png"]
        assert "test-bucket/uploads/a.png" not in mock_storage.objects

    def test_failure_is_reported_not_retried(self, engine, mock_storage):
        mock_storage.fail_delete = True

        result = engine.remove("uploads/a.png")

        assert result.success is False
        assert result.error == "Failed to delete object: access denied"
        assert mock_storage.deleted == ["uploads/a.png"]

    def test_empty_key_rejected(self, engine, mock_storage):
        result = engine.remove("")

        assert result.success is False
        assert result.error == "Object key is required"
        assert mock_storage.deleted == []
