"""
Protocols (Interfaces) between the coordinator and the transfer engine.

The engine performs the byte transfer; the coordinator answers its handshake
callbacks and listens to its lifecycle events.
"""
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from .models import MultipartStart, SignedPart, UploadSource


@runtime_checkable
class IHandshake(Protocol):
    """Callbacks the engine invokes while transferring one file."""

    async def begin(self, file: Any) -> MultipartStart:
        ...

    async def sign_part(self, file: Any, part_number: int) -> SignedPart:
        ...

    async def finalize(
        self,
        file: Any,
        upload_id: Optional[str],
        request_key: str,
        parts: Sequence[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        ...


@runtime_checkable
class ITransferEngine(Protocol):
    """
    Chunked transfer engine.

    Lifecycle events (subscribe with ``on``): ``progress``, ``upload-progress``,
    ``upload-success``, ``upload-error``, ``file-removed``, ``cancel-all``,
    ``upload-retry``.
    """

    def use(
        self,
        handshake: IHandshake,
        get_chunk_size: Callable[[Any], int],
        should_use_multipart: Callable[[Any], bool],
    ) -> None:
        ...

    def on(self, event_name: str, callback: Callable) -> None:
        ...

    def add_file(self, source: UploadSource, file_id: str) -> Any:
        ...

    async def upload(self, file_id: str) -> Any:
        ...

    async def remove_file(self, file_id: str) -> None:
        ...

    async def cancel_all(self) -> None:
        ...

    async def retry_upload(self, file_id: str) -> Any:
        ...

    async def retry_all(self) -> List[Any]:
        ...

    def get_file(self, file_id: str) -> Any:
        ...

    def get_files(self) -> List[Any]:
        ...

    def get_files_by_id(self) -> Dict[str, Any]:
        ...

    def get_state(self) -> Dict[str, Any]:
        ...

    def get_files_grouped_by_state(self) -> Dict[str, List[Any]]:
        ...
