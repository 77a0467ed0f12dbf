from __future__ import annotations

import logging
import threading
import time
from functools import lru_cache
from typing import Callable

from image_upload.common.config import Settings, get_settings
from image_upload.domain.models import ObjectAcl
from image_upload.infra.storage.client import StorageClient
from image_upload.infra.storage.s3_client import S3StorageClient
from image_upload.services.delete import DeleteEngine
from image_upload.services.session_machine import Stage
from image_upload.services.transfer import TransferService
from image_upload.services.upload_session import UploadSession

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    """Raised when the requested upload session does not exist."""


class StorageBackendNotConfiguredError(Exception):
    """Raised when the storage backend is not properly configured."""


class SessionLimitError(Exception):
    """Raised when every slot is held by a session that is mid-transfer."""


class SessionRegistry:
    """In-process store of live upload sessions sharing one storage client.

    The storage client is built lazily on first session creation, so the
    service starts without credentials and only fails when asked to upload.

    Sessions untouched for ``UPLOAD_SESSION_TTL_SECONDS`` are dropped, and at
    ``UPLOAD_MAX_SESSIONS`` the least recently used session is evicted to make
    room. A session with a transfer in flight is never evicted.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        storage_client: StorageClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        self._storage = storage_client
        self._clock = clock
        self._sessions: dict[str, UploadSession] = {}
        self._touched: dict[str, float] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _build_storage_client(settings: Settings) -> StorageClient:
        """Build the S3 client from configuration."""
        if not settings.S3_BUCKET:
            raise StorageBackendNotConfiguredError("S3_BUCKET is required")
        if not settings.S3_ACCESS_KEY_ID or not settings.S3_SECRET_ACCESS_KEY:
            raise StorageBackendNotConfiguredError(
                "S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY are required"
            )
        return S3StorageClient(
            config=settings.storage_config(),
            addressing_style=settings.S3_ADDRESSING_STYLE,
            max_pool_connections=settings.UPLOAD_PART_CONCURRENCY,
        )

    def _storage_client(self) -> StorageClient:
        if self._storage is None:
            self._storage = self._build_storage_client(self._settings)
        return self._storage

    def create(self, *, folder: str | None = None) -> UploadSession:
        """Create and register a session.

        Raises:
            StorageBackendNotConfiguredError: If bucket or credentials are missing.
            SessionLimitError: If the registry is full of transferring sessions.
        """
        settings = self._settings
        if not settings.storage_configured:
            raise StorageBackendNotConfiguredError(
                "S3_BUCKET, S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY are required"
            )
        config = settings.storage_config()
        with self._lock:
            now = self._clock()
            self._expire_locked(now)
            self._make_room_locked()
            storage = self._storage_client()
            session = UploadSession(
                transfer=TransferService(
                    storage,
                    config,
                    max_bytes=settings.UPLOAD_MAX_BYTES,
                    max_concurrency=settings.UPLOAD_PART_CONCURRENCY,
                ),
                deleter=DeleteEngine(storage, config),
                config=config,
                folder=folder or settings.UPLOAD_DEFAULT_FOLDER,
                acl=ObjectAcl(settings.UPLOAD_DEFAULT_ACL),
                cdn_base_url=settings.CDN_BASE_URL,
            )
            self._sessions[session.id] = session
            self._touched[session.id] = now
        logger.info(
            "session_created session_id=%s folder=%s bucket=%s",
            session.id,
            session.folder,
            config.bucket,
        )
        return session

    def get(self, session_id: str) -> UploadSession:
        with self._lock:
            now = self._clock()
            self._expire_locked(now)
            session = self._sessions.get(session_id)
            if session is not None:
                self._touched[session_id] = now
        if session is None:
            raise SessionNotFoundError("Upload session not found")
        return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            self._touched.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError("Upload session not found")
        logger.info("session_discarded session_id=%s", session_id)

    def _expire_locked(self, now: float) -> None:
        ttl = self._settings.UPLOAD_SESSION_TTL_SECONDS
        for session_id, touched in list(self._touched.items()):
            if now - touched >= ttl and self._evictable(session_id):
                self._evict_locked(session_id, reason="expired")

    def _make_room_locked(self) -> None:
        limit = self._settings.UPLOAD_MAX_SESSIONS
        # Least recently touched first
        by_age = sorted(self._touched, key=self._touched.__getitem__)
        for session_id in by_age:
            if len(self._sessions) < limit:
                return
            if self._evictable(session_id):
                self._evict_locked(session_id, reason="capacity")
        if len(self._sessions) >= limit:
            raise SessionLimitError(
                f"All {limit} upload sessions are transferring; retry later"
            )

    def _evictable(self, session_id: str) -> bool:
        return self._sessions[session_id].state.stage is not Stage.TRANSFERRING

    def _evict_locked(self, session_id: str, *, reason: str) -> None:
        del self._sessions[session_id]
        del self._touched[session_id]
        logger.info("session_evicted session_id=%s reason=%s", session_id, reason)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


@lru_cache(maxsize=1)
def get_session_registry() -> SessionRegistry:
    return SessionRegistry()
