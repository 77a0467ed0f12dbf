"""Upload session state machine.

Transitions are pure: ``transition(state, event)`` returns the next state and,
when work is needed, an effect descriptor that the session orchestrator
executes (start a transfer, delete an object, notify listeners). Nothing in
this module touches the network or mutates its inputs.

Stages::

    IDLE -> [CROP ->] STAGED -> TRANSFERRING -> SETTLED
                         ^            |
                         +-- failure -+

plus ``ResetRequested`` from any stage back to IDLE.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Union

from image_upload.domain.models import Blob, UploadResult
from image_upload.domain.validation import is_image_type


class Stage(str, Enum):
    IDLE = "idle"
    CROP = "crop"
    STAGED = "staged"
    TRANSFERRING = "transferring"
    SETTLED = "settled"


class InvalidTransitionError(Exception):
    """Raised when an event is not accepted in the current stage."""


@dataclass(frozen=True, slots=True)
class SessionState:
    stage: Stage = Stage.IDLE
    blob: Blob | None = None
    cropped_blob: Blob | None = None
    progress: float = 0.0
    result: UploadResult | None = None
    uploaded_key: str | None = None
    published_url: str | None = None
    # Incremented per transfer; completions carrying an older value are stale
    attempt: int = 0
    # Incremented whenever the selection is replaced or cleared
    generation: int = 0
    notice: str | None = None

    @property
    def active_blob(self) -> Blob | None:
        return self.cropped_blob or self.blob


# Events


@dataclass(frozen=True, slots=True)
class BlobSelected:
    blob: Blob
    crop: bool = True


@dataclass(frozen=True, slots=True)
class CropCompleted:
    blob: Blob


@dataclass(frozen=True, slots=True)
class CropCancelled:
    pass


@dataclass(frozen=True, slots=True)
class RemoveRequested:
    pass


@dataclass(frozen=True, slots=True)
class UploadRequested:
    pass


@dataclass(frozen=True, slots=True)
class ProgressReported:
    attempt: int
    percent: float


@dataclass(frozen=True, slots=True)
class TransferSucceeded:
    attempt: int
    result: UploadResult
    published_url: str


@dataclass(frozen=True, slots=True)
class TransferFailed:
    attempt: int
    error: str


@dataclass(frozen=True, slots=True)
class DeleteRequested:
    confirmed: bool


@dataclass(frozen=True, slots=True)
class DeleteFinished:
    generation: int
    error: str | None = None


@dataclass(frozen=True, slots=True)
class UploadNewRequested:
    pass


@dataclass(frozen=True, slots=True)
class ResetRequested:
    pass


Event = Union[
    BlobSelected,
    CropCompleted,
    CropCancelled,
    RemoveRequested,
    UploadRequested,
    ProgressReported,
    TransferSucceeded,
    TransferFailed,
    DeleteRequested,
    DeleteFinished,
    UploadNewRequested,
    ResetRequested,
]


# Effects


@dataclass(frozen=True, slots=True)
class StartTransfer:
    attempt: int
    blob: Blob


@dataclass(frozen=True, slots=True)
class DeleteObject:
    key: str
    generation: int


@dataclass(frozen=True, slots=True)
class NotifySuccess:
    result: UploadResult
    published_url: str


@dataclass(frozen=True, slots=True)
class NotifyFailure:
    result: UploadResult


Effect = Union[StartTransfer, DeleteObject, NotifySuccess, NotifyFailure]


@dataclass(frozen=True, slots=True)
class Transition:
    state: SessionState
    effect: Effect | None = None


def _initial(state: SessionState) -> SessionState:
    return SessionState(attempt=state.attempt, generation=state.generation + 1)


def _require(state: SessionState, event: object, *stages: Stage) -> None:
    if state.stage not in stages:
        raise InvalidTransitionError(
            f"{type(event).__name__} is not allowed in stage '{state.stage.value}'"
        )


def _on_blob_selected(state: SessionState, event: BlobSelected) -> Transition:
    _require(state, event, Stage.IDLE, Stage.CROP, Stage.STAGED)
    if not is_image_type(event.blob.mime_type):
        return Transition(_initial(state))
    stage = Stage.CROP if event.crop else Stage.STAGED
    return Transition(
        SessionState(
            stage=stage,
            blob=event.blob,
            attempt=state.attempt,
            generation=state.generation + 1,
        )
    )


def _on_crop_completed(state: SessionState, event: CropCompleted) -> Transition:
    _require(state, event, Stage.CROP)
    return Transition(replace(state, stage=Stage.STAGED, cropped_blob=event.blob))


def _on_crop_cancelled(state: SessionState, event: CropCancelled) -> Transition:
    _require(state, event, Stage.CROP)
    return Transition(replace(state, stage=Stage.STAGED, cropped_blob=None))


def _on_remove(state: SessionState, event: RemoveRequested) -> Transition:
    _require(state, event, Stage.CROP, Stage.STAGED)
    return Transition(_initial(state))


def _on_upload(state: SessionState, event: UploadRequested) -> Transition:
    if state.stage is Stage.TRANSFERRING:
        return Transition(state)
    _require(state, event, Stage.STAGED)
    blob = state.active_blob
    if blob is None:
        raise InvalidTransitionError("No blob is staged for upload")
    attempt = state.attempt + 1
    next_state = replace(
        state,
        stage=Stage.TRANSFERRING,
        progress=0.0,
        result=None,
        uploaded_key=None,
        published_url=None,
        attempt=attempt,
        notice=None,
    )
    return Transition(next_state, StartTransfer(attempt=attempt, blob=blob))


def _is_current_transfer(state: SessionState, attempt: int) -> bool:
    return state.stage is Stage.TRANSFERRING and state.attempt == attempt


def _on_progress(state: SessionState, event: ProgressReported) -> Transition:
    if not _is_current_transfer(state, event.attempt):
        return Transition(state)
    percent = min(100.0, max(state.progress, float(event.percent)))
    return Transition(replace(state, progress=percent))


def _on_transfer_succeeded(state: SessionState, event: TransferSucceeded) -> Transition:
    if not _is_current_transfer(state, event.attempt):
        return Transition(state)
    next_state = replace(
        state,
        stage=Stage.SETTLED,
        progress=100.0,
        result=event.result,
        uploaded_key=event.result.key,
        published_url=event.published_url,
    )
    return Transition(next_state, NotifySuccess(event.result, event.published_url))


def _on_transfer_failed(state: SessionState, event: TransferFailed) -> Transition:
    if not _is_current_transfer(state, event.attempt):
        return Transition(state)
    result = UploadResult.failure(event.error)
    next_state = replace(
        state,
        stage=Stage.STAGED,
        result=result,
        uploaded_key=None,
        published_url=None,
    )
    return Transition(next_state, NotifyFailure(result))


def _on_delete(state: SessionState, event: DeleteRequested) -> Transition:
    _require(state, event, Stage.SETTLED)
    if not event.confirmed:
        return Transition(state)
    next_state = _initial(state)
    effect = (
        DeleteObject(state.uploaded_key, next_state.generation)
        if state.uploaded_key
        else None
    )
    return Transition(next_state, effect)


def _on_delete_finished(state: SessionState, event: DeleteFinished) -> Transition:
    # Only the idle state the delete left behind may carry its notice
    stale = state.generation != event.generation or state.stage is not Stage.IDLE
    if event.error is None or stale:
        return Transition(state)
    return Transition(replace(state, notice=f"Delete may have failed: {event.error}"))


def _on_upload_new(state: SessionState, event: UploadNewRequested) -> Transition:
    _require(state, event, Stage.SETTLED)
    return Transition(_initial(state))


def _on_reset(state: SessionState, event: ResetRequested) -> Transition:
    return Transition(_initial(state))


_HANDLERS: dict[type, Callable[[SessionState, object], Transition]] = {
    BlobSelected: _on_blob_selected,
    CropCompleted: _on_crop_completed,
    CropCancelled: _on_crop_cancelled,
    RemoveRequested: _on_remove,
    UploadRequested: _on_upload,
    ProgressReported: _on_progress,
    TransferSucceeded: _on_transfer_succeeded,
    TransferFailed: _on_transfer_failed,
    DeleteRequested: _on_delete,
    DeleteFinished: _on_delete_finished,
    UploadNewRequested: _on_upload_new,
    ResetRequested: _on_reset,
}


def transition(state: SessionState, event: Event) -> Transition:
    """Apply ``event`` to ``state``.

    Raises:
        InvalidTransitionError: If the event is not accepted in ``state.stage``.
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise InvalidTransitionError(f"Unknown event: {type(event).__name__}")
    return handler(state, event)
