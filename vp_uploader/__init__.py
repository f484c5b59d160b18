"""
vp_uploader - chunked, resumable video uploads to presigned object-store URLs.

Credentials (request key, upload id, presigned part URLs) are issued by a
trusted server before the transfer starts; this package binds each file to
its credentials and answers the transfer engine's handshake.

Usage:
    from vp_uploader import VpUploader, UploadSource

    async with VpUploader({"chunkSize": 10 * 1024 * 1024}) as uploader:
        uploader.register_handlers(
            on_completion=api.complete,
            on_success=lambda payload: print("done", payload["requestKey"]),
        )

        # Single file
        ack = await uploader.upload(
            UploadSource.from_path("movie.mp4"),
            {"requestKey": "videos/movie.mp4", "uploadId": "abc", "presignedUrls": urls},
        )

        # Several files at once
        result = await uploader.upload_many([(source1, details1), (source2, details2)])
"""
from .config import config_from_env, validate_config
from .engine import EngineFile, FileState, HttpTransferEngine
from .errors import (
    ConfigValidationError,
    DetailsValidationError,
    DuplicateSessionError,
    FileCategoryError,
    HandlerMissingWarning,
    InvalidSourceError,
    InvalidTransitionError,
    ItemValidationError,
    PartIndexOutOfRangeError,
    PresignedUrlsMissingError,
    RequestKeyMissingError,
    SessionNotFoundError,
    TransferError,
    UploaderError,
    UploadIdMissingError,
)
from .models import (
    CleanupResult,
    CompletedMultipart,
    FileIdentity,
    SessionStatus,
    UploadAck,
    UploadConfig,
    UploadDetails,
    UploadErrorReport,
    UploadHandlers,
    UploadSession,
    UploadSource,
)
from .orchestrator import BatchFailure, BatchUploadResult, VpUploader
from .services import BatchItem, SessionStore, decide_multipart

__version__ = "0.1.0"
__all__ = [
    # Main
    "VpUploader",
    "HttpTransferEngine",
    "EngineFile",
    "FileState",
    # Config
    "validate_config",
    "config_from_env",
    # Models
    "UploadConfig",
    "UploadSource",
    "UploadDetails",
    "FileIdentity",
    "UploadSession",
    "SessionStatus",
    "UploadHandlers",
    "UploadAck",
    "CompletedMultipart",
    "UploadErrorReport",
    "CleanupResult",
    "BatchItem",
    "BatchFailure",
    "BatchUploadResult",
    # Services
    "SessionStore",
    "decide_multipart",
    # Errors
    "UploaderError",
    "ConfigValidationError",
    "ItemValidationError",
    "DetailsValidationError",
    "InvalidSourceError",
    "FileCategoryError",
    "DuplicateSessionError",
    "SessionNotFoundError",
    "InvalidTransitionError",
    "RequestKeyMissingError",
    "UploadIdMissingError",
    "PresignedUrlsMissingError",
    "PartIndexOutOfRangeError",
    "TransferError",
    "HandlerMissingWarning",
]
