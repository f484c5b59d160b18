"""
Models for vp_uploader.

Session records are immutable; the session store replaces them on every change.
"""
import asyncio
import mimetypes
import uuid
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union


MiB = 1024 * 1024
DEFAULT_CHUNK_SIZE = 50 * MiB
DEFAULT_FILE_CATEGORIES = ("video/*",)
OCTET_STREAM = "application/octet-stream"

Handler = Callable[..., Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class UploadConfig:
    """Immutable, validated configuration shared by every component."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    debug: bool = True
    allowed_file_categories: Tuple[str, ...] = DEFAULT_FILE_CATEGORIES
    max_parallel: Optional[int] = None
    ignored_keys: Tuple[str, ...] = ()

    def accepts(self, content_type: Optional[str], name: str = "") -> bool:
        """Check a file against the category filter (``type/*``, exact MIME type or ``.ext``)."""
        for pattern in self.allowed_file_categories:
            if pattern.startswith("."):
                if name.lower().endswith(pattern.lower()):
                    return True
            elif content_type and fnmatchcase(content_type.lower(), pattern.lower()):
                return True
        return False


@dataclass(frozen=True)
class UploadSource:
    """A file to upload, backed by a path on disk or by bytes in memory."""
    name: str
    size: int
    content_type: Optional[str] = None
    path: Optional[Path] = None
    data: Optional[bytes] = field(default=None, repr=False)

    @classmethod
    def from_path(cls, path: Union[str, Path], content_type: Optional[str] = None) -> "UploadSource":
        path = Path(path)
        if content_type is None:
            content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            content_type=content_type,
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, content_type: Optional[str] = None) -> "UploadSource":
        if content_type is None:
            content_type, _ = mimetypes.guess_type(name)
        return cls(name=name, size=len(data), content_type=content_type, data=data)

    async def read(self, offset: int, length: int) -> bytes:
        """Read ``length`` bytes starting at ``offset``."""
        if self.data is not None:
            return self.data[offset:offset + length]
        if self.path is None:
            raise ValueError(f"{self.name} has neither a path nor in-memory data")

        def _read_range():
            with open(self.path, "rb") as f:
                f.seek(offset)
                return f.read(length)

        return await asyncio.to_thread(_read_range)


@dataclass(frozen=True)
class FileIdentity:
    """
    Session key for one submitted file.

    The nonce is drawn at submission time so two files sharing a name and size
    in one batch still get separate sessions.
    """
    name: str
    size: int
    nonce: str

    @classmethod
    def new(cls, source: UploadSource) -> "FileIdentity":
        return cls(name=source.name, size=source.size, nonce=uuid.uuid4().hex[:12])

    @property
    def key(self) -> str:
        return f"{self.name}:{self.size}:{self.nonce}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class UploadDetails:
    """Credentials issued by the broker for one file."""
    request_key: Any
    presigned_urls: Any
    upload_id: Any = None

    @classmethod
    def coerce(cls, value: Union["UploadDetails", Mapping[str, Any]]) -> "UploadDetails":
        """Accept an UploadDetails or a broker payload (camelCase or snake_case keys)."""
        if isinstance(value, UploadDetails):
            return value
        if not isinstance(value, Mapping):
            # Left for validate_details to reject with a precise message.
            return cls(request_key=None, presigned_urls=None)

        def pick(camel: str, snake: str):
            return value[camel] if camel in value else value.get(snake)

        return cls(
            request_key=pick("requestKey", "request_key"),
            presigned_urls=pick("presignedUrls", "presigned_urls"),
            upload_id=pick("uploadId", "upload_id"),
        )


class SessionStatus(Enum):
    """Lifecycle status of an upload session."""
    PENDING = "pending"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.SUCCEEDED, SessionStatus.FAILED, SessionStatus.CANCELLED)


ALLOWED_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({
        SessionStatus.ACTIVE,
        SessionStatus.SUCCEEDED,
        SessionStatus.FAILED,
        SessionStatus.CANCELLED,
    }),
    SessionStatus.ACTIVE: frozenset({
        SessionStatus.SUCCEEDED,
        SessionStatus.FAILED,
        SessionStatus.CANCELLED,
    }),
    # retry
    SessionStatus.FAILED: frozenset({SessionStatus.PENDING}),
    SessionStatus.SUCCEEDED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class UploadSession:
    """The coordinator's record of one in-flight file."""
    identity: FileIdentity
    request_key: str
    presigned_urls: Tuple[str, ...]
    is_multipart: bool
    upload_id: Optional[str] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    status: SessionStatus = SessionStatus.PENDING
    last_signed_part: int = 0

    @property
    def key(self) -> str:
        return self.identity.key


@dataclass(frozen=True)
class UploadHandlers:
    """
    Caller callbacks. Every slot is optional and checked when an event is dispatched.

    Payloads: on_progress(percent), on_success({"requestKey"}),
    on_error(UploadErrorReport), on_completion({"requestKey", "parts"}),
    on_removal(file), on_cancel_all().
    """
    on_progress: Optional[Handler] = None
    on_success: Optional[Handler] = None
    on_error: Optional[Handler] = None
    on_completion: Optional[Handler] = None
    on_removal: Optional[Handler] = None
    on_cancel_all: Optional[Handler] = None


@dataclass(frozen=True)
class MultipartStart:
    """Answer to the engine's begin request."""
    upload_id: Optional[str]
    request_key: str


@dataclass(frozen=True)
class SignedPart:
    """Answer to the engine's sign-part request."""
    url: str
    headers: Dict[str, str] = field(default_factory=lambda: {"Content-Type": OCTET_STREAM})


@dataclass(frozen=True)
class CompletedMultipart:
    """Multi-part completion; ``on_completion`` receives ``to_dict()``."""
    request_key: str
    parts: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {"requestKey": self.request_key, "parts": list(self.parts)}


@dataclass(frozen=True)
class UploadErrorReport:
    """Payload handed to ``on_error``. The session is kept for inspection or retry."""
    error: BaseException
    session: Optional[UploadSession]
    file: Any
    response: Any = None


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of terminal success handling for one file."""
    file_id: str
    request_key: Optional[str] = None
    deleted: bool = False
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.deleted and self.error is None


@dataclass(frozen=True)
class UploadAck:
    """Outcome of one submitted upload."""
    file_id: str
    request_key: str
    status: SessionStatus

    @property
    def success(self) -> bool:
        return self.status == SessionStatus.SUCCEEDED
