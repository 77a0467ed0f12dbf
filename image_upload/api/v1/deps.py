from __future__ import annotations

import logging

from fastapi import Header, HTTPException

from image_upload.common.config import get_settings
from image_upload.services.registry import SessionRegistry, get_session_registry

logger = logging.getLogger("http")


def get_registry() -> SessionRegistry:
    return get_session_registry()


def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    settings = get_settings()
    if settings.API_KEY_ENABLED:
        api_key_expected = settings.API_KEY
        if not x_api_key or (api_key_expected and x_api_key != api_key_expected):
            preview = f"{x_api_key[:4]}***" if x_api_key else "<missing>"
            logger.warning("api_key_mismatch api_key_preview=%s", preview)
            raise HTTPException(status_code=401, detail="Invalid API key")
