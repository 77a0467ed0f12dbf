"""Error taxonomy shared by the transfer engines and the session layer."""

from __future__ import annotations


class UploadError(Exception):
    """Base class for recoverable upload pipeline failures."""


class ValidationError(UploadError):
    """Raised when a blob fails the image preconditions.

    Always raised before any remote resource is opened.
    """


class TransportError(UploadError):
    """Raised when a call against the object store fails."""


class IntegrityDefect(RuntimeError):
    """Raised when a multipart part list is missing or duplicating part numbers.

    Signals a programming error inside the engine. It is not an
    ``UploadError``, so engines never convert it into a failed result.
    """
