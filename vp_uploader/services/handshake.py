"""
Handshake Controller - answers the transfer engine's protocol callbacks.

Flow per file:
1. begin      -> request key and upload id of the session
2. sign_part  -> presigned URL for one part number
3. finalize   -> ETags handed to the caller's completion handler (multi-part only)

Sessions are only ever read or patched here. A missing session is always an
error, never a reason to create one.
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..errors import (
    PartIndexOutOfRangeError,
    PresignedUrlsMissingError,
    RequestKeyMissingError,
    UploadIdMissingError,
)
from ..models import (
    CompletedMultipart,
    MultipartStart,
    SessionStatus,
    SignedPart,
    UploadHandlers,
    UploadSession,
)
from ..utils.events import call_handler, report_missing_handler
from .session_store import SessionStore

logger = logging.getLogger(__name__)


def _file_key(file: Any) -> str:
    return str(getattr(file, "id", file))


def normalize_parts(parts: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Map object-store parts ``{ETag, PartNumber}`` to ``{eTag, partNumber}``, order preserved."""
    return [
        {
            "eTag": str(part["ETag"]).strip('"'),
            "partNumber": part["PartNumber"],
        }
        for part in parts
    ]


class HandshakeController:
    """
    Implements begin / sign_part / finalize against the session store.

    Args:
        store: Session store shared with the event router
        handlers: Callable returning the current UploadHandlers
    """

    def __init__(self, store: SessionStore, handlers: Callable[[], UploadHandlers]):
        self._store = store
        self._handlers = handlers

    async def begin(self, file: Any) -> MultipartStart:
        """Answer the engine's request to open the upload."""
        key = _file_key(file)
        session = self._store.require(key)

        if not session.request_key:
            raise RequestKeyMissingError(
                f"{key}: request key not set, credentials must be supplied before uploading"
            )
        if session.is_multipart and not session.upload_id:
            raise UploadIdMissingError(
                f"{key}: upload id not set, credentials must be supplied before uploading"
            )

        if session.status == SessionStatus.PENDING:
            self._store.transition(key, SessionStatus.ACTIVE)

        logger.debug(f"[handshake] begin {key} -> {session.request_key}")
        return MultipartStart(upload_id=session.upload_id, request_key=session.request_key)

    async def sign_part(self, file: Any, part_number: int) -> SignedPart:
        """Return the presigned URL for ``part_number`` (1-based)."""
        key = _file_key(file)
        session = self._store.require(key)

        if not session.presigned_urls:
            raise PresignedUrlsMissingError(f"{key}: presigned URLs are missing")

        url = self._resolve_url(session, part_number)
        self._store.update(key, last_signed_part=max(session.last_signed_part, part_number))
        return SignedPart(url=url)

    async def finalize(
        self,
        file: Any,
        upload_id: Optional[str],
        request_key: str,
        parts: Sequence[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """
        Close the upload.

        Single-part sessions have nothing to complete. For multi-part sessions
        the ETags go to ``on_completion`` as a ``{"requestKey", "parts"}``
        mapping; the object store is completed by the
        caller through its credential server.
        """
        key = _file_key(file)
        session = self._store.require(key)

        if not session.is_multipart:
            return {}

        handler = self._handlers().on_completion
        if handler is None:
            report_missing_handler("completion", key)
            return {}

        completion = CompletedMultipart(
            request_key=request_key or session.request_key,
            parts=normalize_parts(parts),
        )
        logger.debug(f"[handshake] finalize {key}: {len(completion.parts)} part(s), upload id {upload_id}")
        await call_handler(handler, completion.to_dict())
        return {}

    @staticmethod
    def _resolve_url(session: UploadSession, part_number: int) -> str:
        index = part_number - 1 if session.is_multipart else 0
        if index < 0 or index >= len(session.presigned_urls):
            raise PartIndexOutOfRangeError(
                f"{session.key}: part {part_number} outside 1..{len(session.presigned_urls)}"
            )
        return session.presigned_urls[index]
