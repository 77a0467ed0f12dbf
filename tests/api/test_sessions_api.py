from __future__ import annotations

import base64
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from image_upload.common.config import get_settings
from image_upload.main import create_app
from image_upload.services.registry import (
    SessionLimitError,
    SessionRegistry,
    get_session_registry,
)
from tests.services.mock_storage import MockStorageClient

PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 512


def _blob_payload(name="photo.png", data=PNG, mime_type="image/png", **extra):
    return {
        "name": name,
        "mime_type": mime_type,
        "data": base64.b64encode(data).decode("ascii"),
        **extra,
    }


@pytest.fixture()
def mock_storage():
    storage = MockStorageClient()
    with patch.object(SessionRegistry, "_build_storage_client", return_value=storage):
        yield storage


@pytest.fixture()
def client(mock_storage):
    return TestClient(create_app())


def _create(client, **body) -> dict:
    r = client.post("/api/v1/sessions", json=body or None)
    assert r.status_code == 201, r.text
    return r.json()


def _staged(client) -> dict:
    session = _create(client)
    r = client.post(
        f"/api/v1/sessions/{session['id']}/blob", json=_blob_payload(crop=False)
    )
    assert r.status_code == 200, r.text
    return r.json()


class TestSessionLifecycle:
    def test_create_session(self, client):
        body = _create(client)

        assert body["stage"] == "idle"
        assert body["folder"] == "uploads"
        assert body["progress"] == 0.0
        assert body["blob"] is None

    def test_create_session_with_folder(self, client):
        assert _create(client, folder="avatars")["folder"] == "avatars"

    def test_get_session(self, client):
        created = _create(client)

        r = client.get(f"/api/v1/sessions/{created['id']}")

        assert r.status_code == 200
        assert r.json()["id"] == created["id"]

    def test_select_reports_blob_size(self, client):
        body = _staged(client)

        assert body["stage"] == "staged"
        assert body["blob"]["size_bytes"] == len(PNG)
        assert body["blob"]["size_label"] == "520 Bytes"

    def test_crop_flow(self, client):
        session = _create(client)
        sid = session["id"]

        r = client.post(f"/api/v1/sessions/{sid}/blob", json=_blob_payload())
        assert r.json()["stage"] == "crop"

        cropped = b"\x89PNG-cropped"
        r = client.post(f"/api/v1/sessions/{sid}/crop", json=_blob_payload(data=cropped))
        body = r.json()
        assert body["stage"] == "staged"
        assert body["cropped_blob"]["size_bytes"] == len(cropped)

    def test_cancel_crop(self, client):
        sid = _create(client)["id"]
        client.post(f"/api/v1/sessions/{sid}/blob", json=_blob_payload())

        r = client.post(f"/api/v1/sessions/{sid}/crop/cancel")

        assert r.json()["stage"] == "staged"
        assert r.json()["cropped_blob"] is None

    def test_non_image_selection_goes_idle(self, client):
        sid = _create(client)["id"]

        r = client.post(
            f"/api/v1/sessions/{sid}/blob",
            json=_blob_payload(name="notes.txt", data=b"hi", mime_type="text/plain"),
        )

        assert r.status_code == 200
        assert r.json()["stage"] == "idle"

    def test_upload_and_delete(self, client, mock_storage):
        sid = _staged(client)["id"]

        r = client.post(f"/api/v1/sessions/{sid}/upload")
        assert r.status_code == 200
        body = r.json()
        assert body["stage"] == "settled"
        assert body["progress"] == 100.0
        assert body["result"]["success"] is True
        key = body["uploaded_key"]
        assert key.startswith("uploads/photo_")
        assert body["published_url"] == f"https://test-bucket.s3.us-east-1.amazonaws.com/{key}"

        r = client.post(f"/api/v1/sessions/{sid}/delete", json={"confirmed": True})
        assert r.status_code == 200
        assert r.json()["outcome"] == "deleted"
        assert r.json()["session"]["stage"] == "idle"
        assert mock_storage.deleted == [key]

    def test_unconfirmed_delete(self, client, mock_storage):
        sid = _staged(client)["id"]
        client.post(f"/api/v1/sessions/{sid}/upload")

        r = client.post(f"/api/v1/sessions/{sid}/delete", json={})

        assert r.json()["outcome"] == "cancelled"
        assert r.json()["session"]["stage"] == "settled"
        assert mock_storage.deleted == []

    def test_failed_delete_resets_with_notice(self, client, mock_storage):
        sid = _staged(client)["id"]
        client.post(f"/api/v1/sessions/{sid}/upload")
        mock_storage.fail_delete = True

        r = client.post(f"/api/v1/sessions/{sid}/delete", json={"confirmed": True})

        body = r.json()
        assert body["outcome"] == "failed"
        assert body["session"]["stage"] == "idle"
        assert body["session"]["notice"].startswith("Delete may have failed")

    def test_upload_failure_is_returned_in_result(self, client, mock_storage):
        mock_storage.fail_put = True
        sid = _staged(client)["id"]

        r = client.post(f"/api/v1/sessions/{sid}/upload")

        body = r.json()
        assert body["stage"] == "staged"
        assert body["result"] == {
            "success": False,
            "url": None,
            "key": None,
            "error": "Failed to put object: network down",
        }

    def test_oversized_upload_rejected_without_network(self, monkeypatch, mock_storage):
        monkeypatch.setenv("UPLOAD_MAX_BYTES", "256")
        get_settings.cache_clear()  # type: ignore[attr-defined]
        get_session_registry.cache_clear()  # type: ignore[attr-defined]
        client = TestClient(create_app())
        sid = _staged(client)["id"]

        r = client.post(f"/api/v1/sessions/{sid}/upload")

        assert r.json()["result"]["error"].startswith("File size must be less than")
        assert mock_storage.network_calls == 0

    def test_upload_new_and_reset(self, client):
        sid = _staged(client)["id"]
        client.post(f"/api/v1/sessions/{sid}/upload")

        assert client.post(f"/api/v1/sessions/{sid}/upload-new").json()["stage"] == "idle"
        client.post(f"/api/v1/sessions/{sid}/blob", json=_blob_payload())
        assert client.post(f"/api/v1/sessions/{sid}/reset").json()["stage"] == "idle"

    def test_remove(self, client):
        sid = _staged(client)["id"]

        r = client.post(f"/api/v1/sessions/{sid}/remove")

        assert r.json()["stage"] == "idle"
        assert r.json()["blob"] is None

    def test_end_session(self, client):
        sid = _create(client)["id"]

        assert client.delete(f"/api/v1/sessions/{sid}").status_code == 204
        assert client.get(f"/api/v1/sessions/{sid}").status_code == 404


class TestProblemJson:
    def test_unknown_session_404(self, client):
        r = client.get("/api/v1/sessions/does-not-exist")

        assert r.status_code == 404
        assert r.headers.get("content-type", "").startswith("application/problem+json")
        body = r.json()
        for key in ("type", "title", "status", "detail", "instance", "error_code"):
            assert key in body
        assert body["error_code"] == "not_found"
        assert body["detail"] == "Upload session not found"

    def test_invalid_transition_409(self, client):
        sid = _create(client)["id"]

        r = client.post(f"/api/v1/sessions/{sid}/upload")

        assert r.status_code == 409
        body = r.json()
        assert body["error_code"] == "invalid_transition"
        assert "not allowed in stage 'idle'" in body["detail"]

    def test_delete_before_upload_409(self, client):
        sid = _staged(client)["id"]

        r = client.post(f"/api/v1/sessions/{sid}/delete", json={"confirmed": True})

        assert r.status_code == 409

    def test_validation_error_422(self, client):
        sid = _create(client)["id"]

        r = client.post(f"/api/v1/sessions/{sid}/blob", json={"mime_type": "image/png"})

        assert r.status_code == 422
        assert r.headers.get("content-type", "").startswith("application/problem+json")
        body = r.json()
        assert body["error_code"] == "validation_error"
        assert isinstance(body["detail"], list)

    def test_storage_not_configured_503(self, monkeypatch):
        monkeypatch.delenv("S3_BUCKET")
        get_settings.cache_clear()  # type: ignore[attr-defined]
        get_session_registry.cache_clear()  # type: ignore[attr-defined]
        client = TestClient(create_app())

        r = client.post("/api/v1/sessions")

        assert r.status_code == 503
        assert r.json()["error_code"] == "storage_not_configured"

    def test_session_limit_503(self, client):
        full = SessionLimitError("All 1 upload sessions are transferring")
        with patch.object(SessionRegistry, "create", side_effect=full):
            r = client.post("/api/v1/sessions")

        assert r.status_code == 503
        assert r.json()["error_code"] == "session_limit_reached"


class TestApiKey:
    @pytest.fixture()
    def secured_client(self, monkeypatch, mock_storage):
        monkeypatch.setenv("API_KEY_ENABLED", "true")
        monkeypatch.setenv("API_KEY", "s3cret-key")
        get_settings.cache_clear()  # type: ignore[attr-defined]
        return TestClient(create_app())

    def test_missing_key_rejected(self, secured_client):
        r = secured_client.post("/api/v1/sessions")

        assert r.status_code == 401
        assert r.json()["error_code"] == "unauthorized"

    def test_valid_key_accepted(self, secured_client):
        r = secured_client.post("/api/v1/sessions", headers={"X-API-Key": "s3cret-key"})

        assert r.status_code == 201

    def test_health_is_open(self, secured_client):
        assert secured_client.get("/health").json() == {"status": "ok"}
