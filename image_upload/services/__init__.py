from .delete import DeleteEngine
from .multipart_upload import MultipartUploadEngine, ordered_parts, plan_parts
from .progress import ProgressChannel
from .registry import (
    SessionNotFoundError,
    SessionRegistry,
    StorageBackendNotConfiguredError,
    get_session_registry,
)
from .session_machine import InvalidTransitionError, SessionState, Stage, transition
from .single_upload import SingleUploadEngine
from .transfer import TransferService
from .upload_session import (
    DeleteOutcome,
    SessionNotification,
    UploadSession,
)

__all__ = [
    "DeleteEngine",
    "MultipartUploadEngine",
    "plan_parts",
    "ordered_parts",
    "ProgressChannel",
    "SingleUploadEngine",
    "TransferService",
    "SessionState",
    "Stage",
    "transition",
    "InvalidTransitionError",
    "UploadSession",
    "DeleteOutcome",
    "SessionNotification",
    "SessionRegistry",
    "SessionNotFoundError",
    "StorageBackendNotConfiguredError",
    "get_session_registry",
]
