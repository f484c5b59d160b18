"""Transfer engine data models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..models import UploadSource
from ..utils.events import FileProgress


class FileState(Enum):
    """State of a file inside the transfer engine."""
    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class EngineFile:
    """A file known to the engine. ``id`` is the coordinator's session key."""
    id: str
    source: UploadSource
    state: FileState = FileState.PENDING
    progress: Optional[FileProgress] = None
    upload_id: Optional[str] = None
    request_key: Optional[str] = None
    parts: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[BaseException] = None
    response: Any = None

    def __post_init__(self):
        if self.progress is None:
            self.progress = FileProgress(
                file_id=self.id,
                filename=self.source.name,
                total_bytes=self.source.size,
            )

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def size(self) -> int:
        return self.source.size


@dataclass(frozen=True)
class TransferAck:
    """Result of one engine transfer."""
    file_id: str
    state: FileState
    response: Any = None

    @property
    def success(self) -> bool:
        return self.state == FileState.COMPLETE
