"""Upload session API router.

Each endpoint forwards one inbound UI event to an ``UploadSession`` and
returns the resulting session snapshot.
"""

from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Response, status

from image_upload.api.v1.deps import get_registry
from image_upload.api.v1.schemas.sessions import (
    BlobIn,
    BlobSelect,
    DeleteOut,
    DeleteRequest,
    SessionCreate,
    SessionOut,
)
from image_upload.services.registry import (
    SessionLimitError,
    SessionNotFoundError,
    SessionRegistry,
    StorageBackendNotConfiguredError,
)
from image_upload.services.session_machine import InvalidTransitionError, SessionState
from image_upload.services.upload_session import UploadSession

router = APIRouter()


def _get_session(registry: SessionRegistry, session_id: str) -> UploadSession:
    try:
        return registry.get(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _apply(
    registry: SessionRegistry,
    session_id: str,
    action: Callable[[UploadSession], SessionState],
) -> SessionOut:
    session = _get_session(registry, session_id)
    try:
        state = action(session)
    except InvalidTransitionError as exc:
        raise HTTPException(
            status_code=409,
            detail={"message": str(exc), "error_code": "invalid_transition"},
        ) from exc
    return SessionOut.from_session(session, state)


@router.post(
    "/sessions",
    response_model=SessionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create upload session",
    description="Create an idle upload session bound to the configured bucket.",
)
def create_session(
    payload: SessionCreate | None = None,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOut:
    folder = payload.folder if payload else None
    try:
        session = registry.create(folder=folder)
    except StorageBackendNotConfiguredError as exc:
        raise HTTPException(
            status_code=503,
            detail={"message": str(exc), "error_code": "storage_not_configured"},
        ) from exc
    except SessionLimitError as exc:
        raise HTTPException(
            status_code=503,
            detail={"message": str(exc), "error_code": "session_limit_reached"},
        ) from exc
    return SessionOut.from_session(session)


@router.get(
    "/sessions/{session_id}",
    response_model=SessionOut,
    summary="Get upload session",
)
def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOut:
    return SessionOut.from_session(_get_session(registry, session_id))


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="End upload session",
    description="Forget the session. Uploaded objects are left in place.",
)
def end_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    try:
        registry.discard(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sessions/{session_id}/blob",
    response_model=SessionOut,
    summary="Select blob",
    description=(
        "Select an image. Non-image MIME types return the session to idle; "
        "images move to the crop stage, or straight to staged when crop is false."
    ),
)
def select_blob(
    session_id: str,
    payload: BlobSelect,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOut:
    blob = payload.to_blob()
    return _apply(
        registry, session_id, lambda s: s.select_blob(blob, crop=payload.crop)
    )


@router.post(
    "/sessions/{session_id}/crop",
    response_model=SessionOut,
    summary="Complete crop",
    description="Replace the working blob with the cropped image.",
)
def complete_crop(
    session_id: str,
    payload: BlobIn,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOut:
    cropped = payload.to_blob()
    return _apply(registry, session_id, lambda s: s.complete_crop(cropped))


@router.post(
    "/sessions/{session_id}/crop/cancel",
    response_model=SessionOut,
    summary="Cancel crop",
)
def cancel_crop(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOut:
    return _apply(registry, session_id, lambda s: s.cancel_crop())


@router.post(
    "/sessions/{session_id}/upload",
    response_model=SessionOut,
    summary="Upload staged blob",
    description=(
        "Transfer the staged blob and return the settled session. A request "
        "made while a transfer is running returns the current state unchanged."
    ),
)
def upload(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOut:
    return _apply(registry, session_id, lambda s: s.upload())


@router.post(
    "/sessions/{session_id}/remove",
    response_model=SessionOut,
    summary="Remove staged blob",
)
def remove(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOut:
    return _apply(registry, session_id, lambda s: s.remove())


@router.post(
    "/sessions/{session_id}/delete",
    response_model=DeleteOut,
    summary="Delete uploaded object",
    description=(
        "Delete the uploaded object and reset the session. Without confirmation "
        "nothing happens. The session resets even if the delete call fails."
    ),
)
def delete_uploaded(
    session_id: str,
    payload: DeleteRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> DeleteOut:
    session = _get_session(registry, session_id)
    try:
        outcome = session.delete(confirmed=payload.confirmed)
    except InvalidTransitionError as exc:
        raise HTTPException(
            status_code=409,
            detail={"message": str(exc), "error_code": "invalid_transition"},
        ) from exc
    return DeleteOut(outcome=outcome, session=SessionOut.from_session(session))


@router.post(
    "/sessions/{session_id}/upload-new",
    response_model=SessionOut,
    summary="Start a new upload",
    description="Reset a settled session without deleting the uploaded object.",
)
def upload_new(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOut:
    return _apply(registry, session_id, lambda s: s.upload_new())


@router.post(
    "/sessions/{session_id}/reset",
    response_model=SessionOut,
    summary="Reset session",
)
def reset(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionOut:
    return _apply(registry, session_id, lambda s: s.reset())
