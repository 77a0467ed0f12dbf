"""Tests for the problem+json helpers in image_upload/main.py."""

from __future__ import annotations

import logging

from fastapi.testclient import TestClient

from image_upload.common.config import get_settings
from image_upload.common.logging import STARTUP_LOGGER
from image_upload.main import _normalize_detail, _resolve_error_code, create_app


class TestNormalizeDetail:
    def test_unwraps_message_and_extracts_error_code(self) -> None:
        detail, code = _normalize_detail({"message": "x", "error_code": "custom"})
        assert detail == "x"
        assert code == "custom"

    def test_strips_error_code_and_handles_empty(self) -> None:
        detail, code = _normalize_detail({"error_code": "custom"})
        assert detail is None
        assert code == "custom"

    def test_ignores_non_string_error_code(self) -> None:
        detail, code = _normalize_detail({"message": "x", "error_code": 123})
        assert detail == "x"
        assert code is None

    def test_returns_string_detail_as_is(self) -> None:
        detail, code = _normalize_detail("simple error")
        assert detail == "simple error"
        assert code is None

    def test_preserves_dict_with_multiple_keys(self) -> None:
        detail, code = _normalize_detail(
            {"message": "x", "field": "name", "error_code": "invalid_transition"}
        )
        assert detail == {"message": "x", "field": "name"}
        assert code == "invalid_transition"


class TestResolveErrorCode:
    def test_returns_override_when_provided(self) -> None:
        assert _resolve_error_code(503, override="storage_not_configured") == (
            "storage_not_configured"
        )

    def test_returns_validation_error_for_422(self) -> None:
        assert _resolve_error_code(422) == "validation_error"

    def test_returns_mapped_code_for_known_status(self) -> None:
        assert _resolve_error_code(404) == "not_found"
        assert _resolve_error_code(409) == "conflict"
        assert _resolve_error_code(503) == "service_unavailable"

    def test_returns_unknown_error_for_unmapped_status(self) -> None:
        assert _resolve_error_code(418) == "unknown_error"


def test_startup_logs_storage_ready(caplog, monkeypatch):
    app = create_app()
    monkeypatch.setattr(logging.getLogger(STARTUP_LOGGER), "propagate", True)
    startup_logger = logging.getLogger(STARTUP_LOGGER)
    startup_logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.INFO, logger=STARTUP_LOGGER):
            with TestClient(app):
                pass
    finally:
        startup_logger.removeHandler(caplog.handler)

    messages = [r.getMessage() for r in caplog.records if r.name == STARTUP_LOGGER]
    assert any("event=storage_ready" in m for m in messages)
    assert not any("test-secret" in m for m in messages)


def test_startup_warns_without_storage(caplog, monkeypatch):
    monkeypatch.delenv("S3_BUCKET")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    app = create_app()
    monkeypatch.setattr(logging.getLogger(STARTUP_LOGGER), "propagate", True)
    startup_logger = logging.getLogger(STARTUP_LOGGER)
    startup_logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.INFO, logger=STARTUP_LOGGER):
            with TestClient(app):
                pass
    finally:
        startup_logger.removeHandler(caplog.handler)

    messages = [r.getMessage() for r in caplog.records if r.name == STARTUP_LOGGER]
    assert any("event=storage_not_configured" in m for m in messages)
