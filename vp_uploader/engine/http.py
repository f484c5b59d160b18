"""
HTTP transfer engine - moves the bytes to presigned URLs with httpx.

Per file:
1. begin handshake      -> upload id / request key
2. sign + PUT each part -> collect ETag headers
3. finalize handshake   -> hand ETags back to the coordinator

Individual requests are not retried; a failed file can be re-run with
retry_upload.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..errors import TransferError
from ..models import UploadSource
from ..protocols import IHandshake
from ..services.chunking import part_count
from ..utils.events import EventEmitter
from .models import EngineFile, FileState, TransferAck

logger = logging.getLogger(__name__)


class HttpTransferEngine:
    """
    Chunked uploader for S3-style presigned part URLs.

    Usage:
        async with HttpTransferEngine() as engine:
            engine.use(handshake, get_chunk_size, should_use_multipart)
            engine.on("upload-success", on_success)
            engine.add_file(source, file_id)
            ack = await engine.upload(file_id)
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: int = 60):
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._events = EventEmitter()
        self._files: Dict[str, EngineFile] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._handshake: Optional[IHandshake] = None
        self._get_chunk_size: Optional[Callable[[EngineFile], int]] = None
        self._should_use_multipart: Optional[Callable[[EngineFile], bool]] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self):
        """Cancel running transfers and close the HTTP client if this engine created it."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # Wiring
    def use(
        self,
        handshake: IHandshake,
        get_chunk_size: Callable[[EngineFile], int],
        should_use_multipart: Callable[[EngineFile], bool],
    ) -> None:
        """Install the handshake callbacks and chunking decisions."""
        self._handshake = handshake
        self._get_chunk_size = get_chunk_size
        self._should_use_multipart = should_use_multipart

    def on(self, event_name: str, callback: Callable) -> None:
        self._events.on(event_name, callback)

    def off(self, event_name: str, callback: Callable) -> None:
        self._events.off(event_name, callback)

    # Files
    def add_file(self, source: UploadSource, file_id: str) -> EngineFile:
        if file_id in self._files:
            raise ValueError(f"file {file_id} already added")
        file = EngineFile(id=file_id, source=source)
        self._files[file_id] = file
        logger.debug(f"Added {source.name} ({source.size} bytes) as {file_id}")
        return file

    def get_file(self, file_id: str) -> Optional[EngineFile]:
        return self._files.get(file_id)

    def get_files(self) -> List[EngineFile]:
        return list(self._files.values())

    def get_files_by_id(self) -> Dict[str, EngineFile]:
        return dict(self._files)

    def get_files_grouped_by_state(self) -> Dict[str, List[EngineFile]]:
        grouped: Dict[str, List[EngineFile]] = {state.value: [] for state in FileState}
        for file in self._files.values():
            grouped[file.state.value].append(file)
        return grouped

    def get_state(self) -> Dict[str, Any]:
        return {
            "files": self.get_files_by_id(),
            "total_progress": self.total_progress(),
            "uploading": any(not task.done() for task in self._tasks.values()),
        }

    def total_progress(self) -> int:
        """Overall percent across files that have started."""
        started = [
            f for f in self._files.values()
            if f.state in (FileState.UPLOADING, FileState.COMPLETE)
        ]
        total = sum(f.progress.total_bytes for f in started)
        if total <= 0:
            return 100 if started and all(f.state == FileState.COMPLETE for f in started) else 0
        uploaded = sum(f.progress.bytes_uploaded for f in started)
        return int(uploaded * 100 / total)

    # Transfers
    async def upload(self, file_id: str) -> TransferAck:
        """
        Transfer one file and wait for it.

        Returns:
            TransferAck with state COMPLETE, or CANCELLED when the file was
            removed or all uploads were cancelled meanwhile.

        Raises:
            Whatever the handshake raised, or TransferError for HTTP failures.
        """
        if self._handshake is None:
            raise RuntimeError("HttpTransferEngine not initialized. Call use() first.")

        file = self._require(file_id)
        running = self._tasks.get(file_id)
        if running is not None and not running.done():
            raise RuntimeError(f"{file_id} is already uploading")

        task = asyncio.create_task(self._transfer(file))
        self._tasks[file_id] = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._tasks.get(file_id) is task:
                del self._tasks[file_id]

        if task.cancelled():
            return TransferAck(file_id=file_id, state=FileState.CANCELLED)
        return task.result()

    async def remove_file(self, file_id: str) -> None:
        """Stop and forget one file. Other transfers are untouched."""
        file = self._require(file_id)
        await self._cancel_tasks([file_id])
        file.state = FileState.CANCELLED
        del self._files[file_id]
        await self._events.emit("file-removed", file)

    async def cancel_all(self) -> None:
        """Stop every transfer and forget every file."""
        await self._cancel_tasks(list(self._tasks))
        for file in self._files.values():
            file.state = FileState.CANCELLED
        self._files.clear()
        await self._events.emit("cancel-all")

    async def retry_upload(self, file_id: str) -> TransferAck:
        file = self._require(file_id)
        if file.state != FileState.ERROR:
            raise RuntimeError(f"{file_id} has not failed, nothing to retry ({file.state.value})")
        await self._events.emit("upload-retry", file)
        return await self.upload(file_id)

    async def retry_all(self) -> List[Any]:
        """Retry every failed file; each outcome (ack or exception) is returned in order."""
        failed = [f.id for f in self._files.values() if f.state == FileState.ERROR]
        return await asyncio.gather(
            *(self.retry_upload(file_id) for file_id in failed),
            return_exceptions=True,
        )

    # Internals
    def _require(self, file_id: str) -> EngineFile:
        file = self._files.get(file_id)
        if file is None:
            raise KeyError(f"unknown file {file_id}")
        return file

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def _cancel_tasks(self, file_ids: List[str]) -> None:
        tasks = []
        for file_id in file_ids:
            task = self._tasks.get(file_id)
            if task is not None and not task.done():
                task.cancel()
                tasks.append(task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _transfer(self, file: EngineFile) -> TransferAck:
        file.state = FileState.UPLOADING
        file.error = None
        file.parts = []
        file.progress.bytes_uploaded = 0
        file.progress.parts_uploaded = 0

        try:
            start = await self._handshake.begin(file)
            file.upload_id = start.upload_id
            file.request_key = start.request_key

            if self._should_use_multipart(file):
                chunk_size = self._get_chunk_size(file)
            else:
                chunk_size = max(file.size, 1)
            total_parts = part_count(file.size, chunk_size)
            file.progress.total_parts = total_parts

            for part_number in range(1, total_parts + 1):
                signed = await self._handshake.sign_part(file, part_number)
                body = await file.source.read((part_number - 1) * chunk_size, chunk_size)
                response = await self._put_part(file, part_number, signed.url, signed.headers, body)
                file.parts.append({
                    "ETag": response.headers.get("ETag", ""),
                    "PartNumber": part_number,
                })
                file.progress.bytes_uploaded += len(body)
                file.progress.parts_uploaded = part_number
                await self._events.emit("upload-progress", file, file.progress)
                await self._events.emit("progress", self.total_progress())

            await self._handshake.finalize(
                file,
                upload_id=file.upload_id,
                request_key=file.request_key,
                parts=list(file.parts),
            )
        except asyncio.CancelledError:
            file.state = FileState.CANCELLED
            raise
        except Exception as exc:
            file.state = FileState.ERROR
            file.error = exc
            response = getattr(exc, "response", None)
            logger.error(f"Upload of {file.name} failed: {exc}")
            await self._events.emit("upload-error", file, exc, response)
            raise

        file.state = FileState.COMPLETE
        file.response = {"key": file.request_key, "upload_id": file.upload_id, "parts": len(file.parts)}
        logger.info(f"Uploaded {file.name} ({file.size} bytes, {len(file.parts)} part(s))")
        await self._events.emit("upload-success", file, file.response)
        return TransferAck(file_id=file.id, state=FileState.COMPLETE, response=file.response)

    async def _put_part(
        self,
        file: EngineFile,
        part_number: int,
        url: str,
        headers: Dict[str, str],
        body: bytes,
    ) -> httpx.Response:
        try:
            response = await self._http().put(url, content=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransferError(
                f"{file.name}: part {part_number} rejected with HTTP {exc.response.status_code}",
                response=exc.response,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransferError(f"{file.name}: part {part_number} failed: {exc}") from exc
        return response
