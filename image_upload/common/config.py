from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from image_upload.domain.models import ObjectAcl, StorageConfig
from image_upload.domain.validation import DEFAULT_MAX_IMAGE_BYTES

ENV_FILE = Path(".env")

DEFAULT_UPLOAD_FOLDER = "uploads"
DEFAULT_PART_CONCURRENCY = 10


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class Settings:
    S3_BUCKET: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ACCESS_KEY_ID: str | None = field(default=None, repr=False)
    S3_SECRET_ACCESS_KEY: str | None = field(default=None, repr=False)
    S3_SESSION_TOKEN: str | None = field(default=None, repr=False)
    S3_ENDPOINT_URL: str | None = None
    S3_ADDRESSING_STYLE: str = "virtual"
    CDN_BASE_URL: str | None = None
    UPLOAD_DEFAULT_FOLDER: str = DEFAULT_UPLOAD_FOLDER
    UPLOAD_DEFAULT_ACL: str = ObjectAcl.PUBLIC_READ.value
    UPLOAD_MAX_BYTES: int = DEFAULT_MAX_IMAGE_BYTES
    UPLOAD_PART_CONCURRENCY: int = DEFAULT_PART_CONCURRENCY
    UPLOAD_MAX_SESSIONS: int = 1000
    UPLOAD_SESSION_TTL_SECONDS: int = 3600
    ENABLE_METRICS: bool = True
    API_KEY_ENABLED: bool = False
    API_KEY: str | None = field(default=None, repr=False)
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)
    TRACE_HTTP: bool = False
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        allowed_acls = {acl.value for acl in ObjectAcl}
        if self.UPLOAD_DEFAULT_ACL not in allowed_acls:
            raise ValueError(
                f"UPLOAD_DEFAULT_ACL must be one of: {', '.join(sorted(allowed_acls))}."
            )
        if self.UPLOAD_MAX_BYTES <= 0:
            raise ValueError("UPLOAD_MAX_BYTES must be positive.")
        if self.UPLOAD_PART_CONCURRENCY <= 0:
            raise ValueError("UPLOAD_PART_CONCURRENCY must be positive.")
        if self.UPLOAD_MAX_SESSIONS <= 0:
            raise ValueError("UPLOAD_MAX_SESSIONS must be positive.")
        if self.UPLOAD_SESSION_TTL_SECONDS <= 0:
            raise ValueError("UPLOAD_SESSION_TTL_SECONDS must be positive.")

    @property
    def storage_configured(self) -> bool:
        return bool(
            self.S3_BUCKET and self.S3_ACCESS_KEY_ID and self.S3_SECRET_ACCESS_KEY
        )

    def storage_config(self) -> StorageConfig:
        """Build the immutable storage config handed to every session.

        Raises:
            ValueError: If the bucket or credentials are missing.
        """
        if not self.storage_configured:
            raise ValueError(
                "S3_BUCKET, S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY are required"
            )
        return StorageConfig(
            bucket=str(self.S3_BUCKET),
            region=self.S3_REGION,
            access_key_id=str(self.S3_ACCESS_KEY_ID),
            secret_access_key=str(self.S3_SECRET_ACCESS_KEY),
            session_token=self.S3_SESSION_TOKEN,
            endpoint_url=self.S3_ENDPOINT_URL,
        )

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_BUCKET=_as_optional(os.environ.get("S3_BUCKET")),
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ACCESS_KEY_ID=_as_optional(os.environ.get("S3_ACCESS_KEY_ID")),
            S3_SECRET_ACCESS_KEY=_as_optional(os.environ.get("S3_SECRET_ACCESS_KEY")),
            S3_SESSION_TOKEN=_as_optional(os.environ.get("S3_SESSION_TOKEN")),
            S3_ENDPOINT_URL=_as_optional(os.environ.get("S3_ENDPOINT_URL")),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            CDN_BASE_URL=_as_optional(os.environ.get("CDN_BASE_URL")),
            UPLOAD_DEFAULT_FOLDER=os.environ.get(
                "UPLOAD_DEFAULT_FOLDER", cls.UPLOAD_DEFAULT_FOLDER
            ),
            UPLOAD_DEFAULT_ACL=os.environ.get(
                "UPLOAD_DEFAULT_ACL", cls.UPLOAD_DEFAULT_ACL
            ),
            UPLOAD_MAX_BYTES=int(
                os.environ.get("UPLOAD_MAX_BYTES", cls.UPLOAD_MAX_BYTES)
            ),
            UPLOAD_PART_CONCURRENCY=int(
                os.environ.get("UPLOAD_PART_CONCURRENCY", cls.UPLOAD_PART_CONCURRENCY)
            ),
            UPLOAD_MAX_SESSIONS=int(
                os.environ.get("UPLOAD_MAX_SESSIONS", cls.UPLOAD_MAX_SESSIONS)
            ),
            UPLOAD_SESSION_TTL_SECONDS=int(
                os.environ.get(
                    "UPLOAD_SESSION_TTL_SECONDS", cls.UPLOAD_SESSION_TTL_SECONDS
                )
            ),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            API_KEY_ENABLED=_as_bool(
                os.environ.get("API_KEY_ENABLED"), cls.API_KEY_ENABLED
            ),
            API_KEY=os.environ.get("API_KEY"),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
            TRACE_HTTP=_as_bool(os.environ.get("TRACE_HTTP"), cls.TRACE_HTTP),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
