"""Upload session orchestrator.

Owns one ``SessionState`` record, advances it only through
``session_machine.transition`` and executes the effects those transitions
describe. The lock makes each transition atomic; transfers and deletes run
outside it so state and progress stay readable while the network is busy.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from image_upload.common.config import DEFAULT_UPLOAD_FOLDER
from image_upload.domain.errors import IntegrityDefect
from image_upload.domain.models import (
    Blob,
    DeleteResult,
    ObjectAcl,
    StorageConfig,
    UploadOptions,
    UploadResult,
)
from image_upload.domain.urls import apply_cdn
from image_upload.services.delete import DeleteEngine
from image_upload.services.progress import ProgressChannel
from image_upload.services.session_machine import (
    BlobSelected,
    CropCancelled,
    CropCompleted,
    DeleteFinished,
    DeleteObject,
    DeleteRequested,
    Event,
    NotifyFailure,
    NotifySuccess,
    ProgressReported,
    RemoveRequested,
    ResetRequested,
    SessionState,
    StartTransfer,
    TransferFailed,
    TransferSucceeded,
    Transition,
    UploadNewRequested,
    UploadRequested,
    transition,
)
from image_upload.services.transfer import TransferService

logger = logging.getLogger(__name__)

UPLOAD_SUCCESS = "upload_success"
UPLOAD_ERROR = "upload_error"


class DeleteOutcome(str, Enum):
    CANCELLED = "cancelled"
    DELETED = "deleted"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SessionNotification:
    """Fired exactly once per settled transfer."""

    kind: str
    result: UploadResult
    published_url: str | None = None


NotificationListener = Callable[[SessionNotification], None]


class UploadSession:
    """One user-driven upload lifecycle, from blob selection to settlement."""

    def __init__(
        self,
        *,
        transfer: TransferService,
        deleter: DeleteEngine,
        config: StorageConfig,
        folder: str | None = DEFAULT_UPLOAD_FOLDER,
        acl: ObjectAcl = ObjectAcl.PUBLIC_READ,
        cdn_base_url: str | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self._transfer = transfer
        self._deleter = deleter
        self._config = config
        self._folder = folder or DEFAULT_UPLOAD_FOLDER
        self._acl = acl
        self._cdn_base_url = cdn_base_url
        self._lock = threading.Lock()
        self._state = SessionState()
        self._listeners: list[NotificationListener] = []

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def folder(self) -> str:
        return self._folder

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register a success/error listener; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def select_blob(self, blob: Blob, *, crop: bool = True) -> SessionState:
        return self._dispatch(BlobSelected(blob=blob, crop=crop)).state

    def complete_crop(self, cropped: Blob) -> SessionState:
        return self._dispatch(CropCompleted(blob=cropped)).state

    def cancel_crop(self) -> SessionState:
        return self._dispatch(CropCancelled()).state

    def remove(self) -> SessionState:
        return self._dispatch(RemoveRequested()).state

    def upload_new(self) -> SessionState:
        return self._dispatch(UploadNewRequested()).state

    def reset(self) -> SessionState:
        return self._dispatch(ResetRequested()).state

    def upload(self) -> SessionState:
        """Transfer the active blob and settle the session.

        A call made while another transfer of this session is running is a
        no-op and issues no network calls.

        Raises:
            InvalidTransitionError: If no blob is staged.
            IntegrityDefect: On an engine-internal part list defect, after the
                session has settled as failed.
        """
        step = self._dispatch(UploadRequested())
        if not isinstance(step.effect, StartTransfer):
            logger.info(
                "upload_ignored session_id=%s stage=%s",
                self.id,
                step.state.stage.value,
            )
            return step.state
        self._run_transfer(step.effect)
        return self.state

    def delete(self, *, confirmed: bool) -> DeleteOutcome:
        """Delete the uploaded object and reset the session.

        The session resets whatever the delete call returns; a failed delete
        is logged and leaves a notice on the reset state, unless a new blob was
        selected or the session was reset while the delete call ran.
        """
        step = self._dispatch(DeleteRequested(confirmed=confirmed))
        if not confirmed:
            return DeleteOutcome.CANCELLED
        if not isinstance(step.effect, DeleteObject):
            return DeleteOutcome.DELETED

        try:
            result = self._deleter.remove(step.effect.key)
        except Exception as exc:
            logger.exception(
                "delete_unexpected_error session_id=%s key=%s",
                self.id,
                step.effect.key,
            )
            result = DeleteResult(success=False, error=str(exc) or "Delete failed")

        if not result.success:
            logger.error(
                "delete_not_confirmed session_id=%s key=%s error=%s",
                self.id,
                step.effect.key,
                result.error,
                extra={
                    "extra": {
                        "session_id": self.id,
                        "key": step.effect.key,
                    }
                },
            )
            self._dispatch(
                DeleteFinished(
                    generation=step.effect.generation,
                    error=result.error or "Delete failed",
                )
            )
            return DeleteOutcome.FAILED
        self._dispatch(DeleteFinished(generation=step.effect.generation))
        return DeleteOutcome.DELETED

    def _dispatch(self, event: Event) -> Transition:
        with self._lock:
            step = transition(self._state, event)
            self._state = step.state
            return step

    def _run_transfer(self, start: StartTransfer) -> None:
        channel = ProgressChannel()
        unsubscribe = channel.subscribe(
            lambda percent: self._dispatch(ProgressReported(start.attempt, percent))
        )
        options = UploadOptions(folder=self._folder, acl=self._acl)
        try:
            result = self._transfer.upload(start.blob, options, channel)
        except IntegrityDefect:
            logger.exception(
                "upload_integrity_defect session_id=%s attempt=%s",
                self.id,
                start.attempt,
            )
            self._settle(TransferFailed(start.attempt, "Upload failed"))
            raise
        except Exception as exc:
            logger.exception(
                "upload_unexpected_error session_id=%s attempt=%s",
                self.id,
                start.attempt,
            )
            result = UploadResult.failure(str(exc) or "Upload failed")
        finally:
            unsubscribe()

        if result.success:
            published = apply_cdn(str(result.url), self._config, self._cdn_base_url)
            self._settle(TransferSucceeded(start.attempt, result, published))
        else:
            self._settle(TransferFailed(start.attempt, result.error or "Upload failed"))

    def _settle(self, event: TransferSucceeded | TransferFailed) -> None:
        step = self._dispatch(event)
        if isinstance(step.effect, NotifySuccess):
            logger.info(
                "upload_settled session_id=%s outcome=success key=%s",
                self.id,
                step.effect.result.key,
            )
            self._notify(
                SessionNotification(
                    kind=UPLOAD_SUCCESS,
                    result=step.effect.result,
                    published_url=step.effect.published_url,
                )
            )
        elif isinstance(step.effect, NotifyFailure):
            logger.info(
                "upload_settled session_id=%s outcome=failure error=%s",
                self.id,
                step.effect.result.error,
            )
            self._notify(SessionNotification(kind=UPLOAD_ERROR, result=step.effect.result))
        else:
            # Session was reset while the transfer ran
            logger.warning(
                "upload_completion_discarded session_id=%s attempt=%s key=%s",
                self.id,
                event.attempt,
                event.result.key if isinstance(event, TransferSucceeded) else None,
            )

    def _notify(self, notification: SessionNotification) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(notification)
            except Exception:
                logger.exception(
                    "notification_listener_failed session_id=%s kind=%s",
                    self.id,
                    notification.kind,
                )
