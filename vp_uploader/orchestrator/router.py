"""
Event Router - maps transfer engine lifecycle events to caller handlers.

Terminal session cleanup happens here and only here: success and removal
delete one session, cancel-all clears the store, errors keep the session so
the caller can inspect or retry it.
"""
import logging
from typing import Any, Callable, List

from ..errors import InvalidTransitionError, SessionNotFoundError
from ..models import CleanupResult, SessionStatus, UploadErrorReport, UploadHandlers
from ..services.session_store import SessionStore
from ..utils.events import call_handler, report_missing_handler

logger = logging.getLogger(__name__)


def _file_key(file: Any) -> str:
    return str(getattr(file, "id", file))


class EventRouter:
    """
    Subscribes to an engine and dispatches its events.

    Usage:
        router = EventRouter(store, lambda: handlers)
        router.attach(engine)
    """

    def __init__(self, store: SessionStore, handlers: Callable[[], UploadHandlers]):
        self._store = store
        self._handlers = handlers
        self._cleanup_failures: List[CleanupResult] = []

    def attach(self, engine) -> None:
        """Subscribe to every lifecycle event the engine emits."""
        engine.on("progress", self.handle_progress)
        engine.on("upload-success", self.handle_success)
        engine.on("upload-error", self.handle_error)
        engine.on("file-removed", self.handle_removal)
        engine.on("cancel-all", self.handle_cancel_all)
        engine.on("upload-retry", self.handle_retry)

    @property
    def cleanup_failures(self) -> List[CleanupResult]:
        """Success events whose cleanup or notification failed."""
        return list(self._cleanup_failures)

    async def handle_progress(self, value: Any) -> None:
        handler = self._handlers().on_progress
        if handler is not None:
            await call_handler(handler, value)

    async def handle_success(self, file: Any, response: Any = None) -> CleanupResult:
        """
        Retire the session of a finished file and report its request key.

        Failures are recorded on the returned result (and in
        ``cleanup_failures``) instead of being dropped.
        """
        key = _file_key(file)
        session = self._store.delete(key)
        if session is None:
            result = CleanupResult(
                file_id=key,
                error=SessionNotFoundError(f"upload succeeded for {key} but no session was registered"),
            )
            return self._record_failure(result)

        result = CleanupResult(file_id=key, request_key=session.request_key, deleted=True)
        handler = self._handlers().on_success
        if handler is None:
            report_missing_handler("success", key)
            return result

        try:
            await call_handler(handler, {"requestKey": session.request_key})
        except Exception as exc:
            result = CleanupResult(
                file_id=key,
                request_key=session.request_key,
                deleted=True,
                error=exc,
            )
            return self._record_failure(result)
        return result

    async def handle_error(self, file: Any, error: BaseException, response: Any = None) -> None:
        """Report a failed transfer. The session stays in the store, marked failed."""
        key = _file_key(file)
        logger.error(f"Upload error for {key}: {error}")

        session = self._store.get(key)
        if session is not None:
            try:
                session = self._store.transition(key, SessionStatus.FAILED)
            except InvalidTransitionError as exc:
                logger.warning(f"Could not mark {key} as failed: {exc}")

        handler = self._handlers().on_error
        if handler is None:
            report_missing_handler("error", key)
            return

        report = UploadErrorReport(error=error, session=session, file=file, response=response)
        await call_handler(handler, report)

    async def handle_removal(self, file: Any) -> None:
        key = _file_key(file)
        removed = self._store.delete(key)
        if removed is None:
            logger.debug(f"Removed {key} had no session")

        handler = self._handlers().on_removal
        if handler is None:
            report_missing_handler("removal", key)
            return
        await call_handler(handler, file)

    async def handle_cancel_all(self) -> None:
        count = self._store.clear()
        logger.info(f"Cancelled all uploads ({count} session(s) cleared)")

        handler = self._handlers().on_cancel_all
        if handler is None:
            report_missing_handler("cancel-all")
            return
        await call_handler(handler)

    async def handle_retry(self, file: Any) -> None:
        """Put a failed session back to pending before the engine re-runs it."""
        key = _file_key(file)
        self._store.transition(key, SessionStatus.PENDING)
        logger.info(f"Retrying upload {key}")

    def _record_failure(self, result: CleanupResult) -> CleanupResult:
        logger.error(f"Cleanup after success failed for {result.file_id}: {result.error}")
        self._cleanup_failures.append(result)
        return result
