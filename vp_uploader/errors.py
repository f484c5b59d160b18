"""
Error taxonomy for the upload coordinator.

Validation errors are raised before any session exists or any request is sent.
Handshake errors are raised from the transfer engine's callbacks and reach
whatever awaits the upload.
"""
from typing import Any, Optional


class UploaderError(Exception):
    """Base class for all uploader errors."""


class ConfigValidationError(UploaderError):
    """A recognised configuration option has the wrong shape."""


class ItemValidationError(UploaderError):
    """A submitted item was rejected. ``index`` is its batch position, when there is one."""

    def __init__(self, message: str, index: Optional[int] = None):
        if index is not None:
            message = f"item {index}: {message}"
        super().__init__(message)
        self.index = index


class DetailsValidationError(ItemValidationError):
    """Credentials supplied for a file are malformed."""


class InvalidSourceError(ItemValidationError):
    """The object passed as a file is not an UploadSource."""


class FileCategoryError(ItemValidationError):
    """The file type is not in the allowed categories."""


class DuplicateSessionError(UploaderError):
    """A live session already exists for this identity."""


class SessionNotFoundError(UploaderError):
    """No session exists for the requested identity."""


class InvalidTransitionError(UploaderError):
    """A session status change is not allowed."""


class RequestKeyMissingError(UploaderError):
    """Session has no request key."""


class UploadIdMissingError(UploaderError):
    """Multi-part session has no upload id."""


class PresignedUrlsMissingError(UploaderError):
    """Session has no presigned URLs."""


class PartIndexOutOfRangeError(UploaderError):
    """Requested part number has no presigned URL."""


class TransferError(UploaderError):
    """Byte transfer failed inside the transfer engine."""

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.response = response


class HandlerMissingWarning(UserWarning):
    """A lifecycle event arrived with no handler registered. Logged, never raised."""
