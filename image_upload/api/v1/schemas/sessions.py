"""Pydantic schemas for upload session API endpoints."""

from __future__ import annotations

from pydantic import Base64Bytes, BaseModel, Field

from image_upload.domain.naming import format_file_size
from image_upload.domain.models import Blob, UploadResult
from image_upload.services.session_machine import SessionState, Stage
from image_upload.services.upload_session import DeleteOutcome, UploadSession


class SessionCreate(BaseModel):
    """Request body for creating an upload session."""

    folder: str | None = Field(default=None, min_length=1, max_length=512)


class BlobIn(BaseModel):
    """A binary payload; ``data`` is base64 encoded."""

    name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=1, max_length=255)
    data: Base64Bytes

    def to_blob(self) -> Blob:
        return Blob(name=self.name, data=bytes(self.data), mime_type=self.mime_type)


class BlobSelect(BlobIn):
    """Request body for selecting a blob; ``crop`` routes through the crop stage."""

    crop: bool = True


class DeleteRequest(BaseModel):
    """Request body for deleting the uploaded object."""

    confirmed: bool = False


class BlobOut(BaseModel):
    name: str
    mime_type: str
    size_bytes: int
    size_label: str

    @classmethod
    def from_blob(cls, blob: Blob) -> "BlobOut":
        return cls(
            name=blob.name,
            mime_type=blob.mime_type,
            size_bytes=blob.size_bytes,
            size_label=format_file_size(blob.size_bytes),
        )


class UploadResultOut(BaseModel):
    success: bool
    url: str | None = None
    key: str | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: UploadResult) -> "UploadResultOut":
        return cls(
            success=result.success,
            url=result.url,
            key=result.key,
            error=result.error,
        )


class SessionOut(BaseModel):
    """Response model for an upload session snapshot."""

    id: str
    folder: str
    stage: Stage
    blob: BlobOut | None = None
    cropped_blob: BlobOut | None = None
    progress: float
    result: UploadResultOut | None = None
    uploaded_key: str | None = None
    published_url: str | None = None
    notice: str | None = None

    @classmethod
    def from_session(
        cls, session: UploadSession, state: SessionState | None = None
    ) -> "SessionOut":
        state = state or session.state
        return cls(
            id=session.id,
            folder=session.folder,
            stage=state.stage,
            blob=BlobOut.from_blob(state.blob) if state.blob else None,
            cropped_blob=(
                BlobOut.from_blob(state.cropped_blob) if state.cropped_blob else None
            ),
            progress=state.progress,
            result=UploadResultOut.from_result(state.result) if state.result else None,
            uploaded_key=state.uploaded_key,
            published_url=state.published_url,
            notice=state.notice,
        )


class DeleteOut(BaseModel):
    outcome: DeleteOutcome
    session: SessionOut
