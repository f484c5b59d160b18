"""Core orchestrator - public entry point of the upload coordinator."""
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from ..config import validate_config
from ..engine import HttpTransferEngine
from ..errors import FileCategoryError, SessionNotFoundError
from ..models import (
    CleanupResult,
    FileIdentity,
    SessionStatus,
    UploadAck,
    UploadConfig,
    UploadDetails,
    UploadHandlers,
    UploadSession,
    UploadSource,
)
from ..protocols import ITransferEngine
from ..services.chunking import decide_multipart
from ..services.handshake import HandshakeController
from ..services.session_store import SessionStore
from ..services.validation import validate_details, validate_source
from .batch import BatchUploader
from .models import BatchUploadResult
from .router import EventRouter

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "vp_uploader"


class VpUploader:
    """
    Coordinates uploads of files whose credentials were issued out-of-band.

    Owns the session store and wires the handshake controller and event router
    into a transfer engine (HttpTransferEngine unless one is injected).

    Usage:
        async with VpUploader({"chunkSize": 10 * MiB}) as uploader:
            uploader.register_handlers(on_completion=complete_on_server)
            ack = await uploader.upload(UploadSource.from_path(path), details)

            result = await uploader.upload_many([(source1, details1), (source2, details2)])
    """

    def __init__(
        self,
        config: Optional[Union[UploadConfig, Mapping[str, Any]]] = None,
        engine: Optional[ITransferEngine] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            config: UploadConfig or raw options (see validate_config)
            engine: Transfer engine; an HttpTransferEngine is created when omitted
        """
        self._config = UploadConfig()
        self.configure(config)
        self._handlers = UploadHandlers()
        self._store = SessionStore()
        self._handshake = HandshakeController(self._store, lambda: self._handlers)
        self._router = EventRouter(self._store, lambda: self._handlers)
        self._cancel_generation = 0

        if engine is None:
            engine = HttpTransferEngine()
            self._owns_engine = True
        else:
            self._owns_engine = False
        self._engine = engine
        self._engine.use(self._handshake, self.get_chunk_size, self.should_use_multipart)
        self._router.attach(self._engine)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self):
        if self._owns_engine:
            await self._engine.aclose()

    # Configuration
    @property
    def config(self) -> UploadConfig:
        return self._config

    def configure(self, options: Optional[Union[UploadConfig, Mapping[str, Any]]] = None) -> UploadConfig:
        """
        Validate and apply configuration.

        Sessions already registered keep the chunk size they were created with.

        Raises:
            ConfigValidationError: an option has the wrong shape
        """
        self._config = validate_config(options)
        logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if self._config.debug else logging.INFO)
        return self._config

    @property
    def handlers(self) -> UploadHandlers:
        return self._handlers

    def register_handlers(self, handlers: Optional[UploadHandlers] = None, **slots) -> UploadHandlers:
        """
        Install caller callbacks.

        Either pass a full UploadHandlers, or individual slots
        (on_progress, on_success, on_error, on_completion, on_removal,
        on_cancel_all) to merge into the current set.
        """
        base = handlers if handlers is not None else self._handlers
        self._handlers = replace(base, **slots) if slots else base
        return self._handlers

    # Engine-facing decisions
    def get_chunk_size(self, file: Any) -> int:
        session = self._store.get(getattr(file, "id", file))
        return session.chunk_size if session else self._config.chunk_size

    def should_use_multipart(self, file: Any) -> bool:
        session = self._store.get(getattr(file, "id", file))
        if session is not None:
            return session.is_multipart
        return decide_multipart(getattr(file, "size", 0), self._config.chunk_size)

    # Submission
    def check_source(self, source: UploadSource) -> None:
        """Apply the category filter."""
        if not self._config.accepts(source.content_type, source.name):
            raise FileCategoryError(
                f"{source.name} ({source.content_type or 'unknown type'}) is not allowed, "
                f"expected one of: {', '.join(self._config.allowed_file_categories)}"
            )

    def _register(
        self,
        source: Any,
        details: Union[UploadDetails, Mapping[str, Any]],
    ) -> UploadSession:
        source = validate_source(source)
        self.check_source(source)
        chunk_size = self._config.chunk_size
        details = validate_details(details, decide_multipart(source.size, chunk_size))

        identity = FileIdentity.new(source)
        session = self._store.create(identity, details, chunk_size)
        try:
            self._engine.add_file(source, identity.key)
        except Exception:
            self._store.delete(identity)
            raise
        return session

    async def upload(
        self,
        source: UploadSource,
        details: Union[UploadDetails, Mapping[str, Any]],
    ) -> UploadAck:
        """
        Upload one file with its broker credentials.

        Validation and session registration happen before the first suspension
        point, so malformed input fails without any side effect.

        Raises:
            InvalidSourceError, FileCategoryError, DetailsValidationError: bad input
            Handshake errors and TransferError: the transfer failed; the session
                is kept (status failed) for retry_upload
        """
        session = self._register(source, details)
        logger.info(
            f"Uploading {session.identity.name} as {session.request_key} "
            f"({'multi' if session.is_multipart else 'single'}-part)"
        )
        ack = await self._engine.upload(session.key)
        return self._to_ack(session, ack)

    async def upload_many(
        self,
        items: Iterable[Any],
        on_all_success: Optional[Callable] = None,
        on_some_failure: Optional[Callable] = None,
    ) -> BatchUploadResult:
        """Upload (source, details) pairs concurrently; see BatchUploader.upload_many."""
        batch = BatchUploader(
            submit=self.upload,
            check_source=self.check_source,
            chunk_size=self._config.chunk_size,
            max_parallel=self._config.max_parallel,
            cancel_generation=lambda: self._cancel_generation,
        )
        return await batch.upload_many(items, on_all_success, on_some_failure)

    # Control
    async def remove_file(self, file_id: str) -> None:
        await self._engine.remove_file(file_id)

    async def cancel_all(self) -> None:
        """Stop every transfer and drop every session, including batch items not started yet."""
        self._cancel_generation += 1
        await self._engine.cancel_all()

    async def retry_upload(self, file_id: str) -> UploadAck:
        """Re-run a failed upload with the credentials it was submitted with."""
        session = self._store.get(file_id)
        if session is None:
            raise SessionNotFoundError(f"no upload session for {file_id}")
        ack = await self._engine.retry_upload(file_id)
        return self._to_ack(session, ack)

    async def retry_all(self) -> List[Union[UploadAck, BaseException]]:
        """Retry every failed upload; outcomes are returned in engine order."""
        failed = {s.key: s for s in self._store.sessions() if s.status == SessionStatus.FAILED}
        outcomes = await self._engine.retry_all()
        acks: List[Union[UploadAck, BaseException]] = []
        for outcome in outcomes:
            session = failed.get(getattr(outcome, "file_id", None))
            if isinstance(outcome, BaseException) or session is None:
                acks.append(outcome)
            else:
                acks.append(self._to_ack(session, outcome))
        return acks

    # Read accessors
    def get_file(self, file_id: str) -> Any:
        return self._engine.get_file(file_id)

    def get_files(self) -> List[Any]:
        return self._engine.get_files()

    def get_files_by_id(self) -> Dict[str, Any]:
        return self._engine.get_files_by_id()

    def get_state(self) -> Dict[str, Any]:
        return self._engine.get_state()

    def get_files_grouped_by_state(self) -> Dict[str, List[Any]]:
        return self._engine.get_files_grouped_by_state()

    @property
    def sessions(self) -> List[UploadSession]:
        return self._store.sessions()

    def get_session(self, file_id: str) -> Optional[UploadSession]:
        return self._store.get(file_id)

    @property
    def cleanup_failures(self) -> List[CleanupResult]:
        return self._router.cleanup_failures

    @staticmethod
    def _to_ack(session: UploadSession, engine_ack: Any) -> UploadAck:
        status = SessionStatus.SUCCEEDED if engine_ack.success else SessionStatus.CANCELLED
        return UploadAck(file_id=session.key, request_key=session.request_key, status=status)
