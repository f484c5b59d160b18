"""Tests for the event router."""
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from vp_uploader.errors import SessionNotFoundError
from vp_uploader.models import FileIdentity, SessionStatus, UploadDetails, UploadErrorReport, UploadHandlers
from vp_uploader.orchestrator.router import EventRouter
from vp_uploader.services.handshake import HandshakeController
from vp_uploader.services.session_store import SessionStore
from vp_uploader.utils.events import EventEmitter


class _Handlers:
    def __init__(self, **slots):
        self.value = UploadHandlers(**slots)

    def __call__(self):
        return self.value


def _register(store, name="movie.mp4", nonce="n1"):
    identity = FileIdentity(name=name, size=25, nonce=nonce)
    store.create(
        identity,
        UploadDetails(request_key=f"videos/{name}", presigned_urls=["u1", "u2", "u3"], upload_id="up-1"),
        chunk_size=10,
    )
    return SimpleNamespace(id=identity.key, name=name)


@pytest.mark.asyncio
async def test_success_deletes_session_and_reports_request_key():
    store = SessionStore()
    on_success = AsyncMock()
    handlers = _Handlers(on_success=on_success)
    router = EventRouter(store, handlers)
    handshake = HandshakeController(store, handlers)
    file = _register(store)

    result = await router.handle_success(file, {"key": "videos/movie.mp4"})

    assert result.ok
    assert result.request_key == "videos/movie.mp4"
    on_success.assert_awaited_once_with({"requestKey": "videos/movie.mp4"})
    assert file.id not in store
    with pytest.raises(SessionNotFoundError):
        await handshake.begin(file)


@pytest.mark.asyncio
async def test_success_handler_failure_is_recorded():
    store = SessionStore()
    boom = RuntimeError("notify failed")
    router = EventRouter(store, _Handlers(on_success=MagicMock(side_effect=boom)))
    file = _register(store)

    result = await router.handle_success(file)

    assert result.deleted is True
    assert result.error is boom
    assert router.cleanup_failures == [result]
    assert file.id not in store


@pytest.mark.asyncio
async def test_success_for_unknown_file_is_recorded():
    router = EventRouter(SessionStore(), _Handlers(on_success=MagicMock()))

    result = await router.handle_success(SimpleNamespace(id="ghost"))

    assert result.deleted is False
    assert isinstance(result.error, SessionNotFoundError)
    assert len(router.cleanup_failures) == 1


@pytest.mark.asyncio
async def test_success_without_handler_still_cleans_up(caplog):
    store = SessionStore()
    router = EventRouter(store, _Handlers())
    file = _register(store)

    with caplog.at_level(logging.WARNING):
        result = await router.handle_success(file)

    assert result.ok
    assert len(store) == 0
    assert "no success handler registered" in caplog.text


@pytest.mark.asyncio
async def test_error_keeps_session_and_marks_it_failed():
    store = SessionStore()
    on_error = MagicMock()
    router = EventRouter(store, _Handlers(on_error=on_error))
    file = _register(store)
    store.transition(file.id, SessionStatus.ACTIVE)
    error = RuntimeError("HTTP 500")

    await router.handle_error(file, error, {"status": 500})

    session = store.get(file.id)
    assert session.status == SessionStatus.FAILED
    on_error.assert_called_once_with(
        UploadErrorReport(error=error, session=session, file=file, response={"status": 500})
    )


@pytest.mark.asyncio
async def test_removal_only_touches_one_session():
    store = SessionStore()
    on_removal = MagicMock()
    router = EventRouter(store, _Handlers(on_removal=on_removal))
    first = _register(store, nonce="a")
    second = _register(store, nonce="b")

    await router.handle_removal(first)

    assert first.id not in store
    assert second.id in store
    on_removal.assert_called_once_with(first)


@pytest.mark.asyncio
async def test_cancel_all_clears_every_session():
    store = SessionStore()
    on_cancel_all = AsyncMock()
    handlers = _Handlers(on_cancel_all=on_cancel_all)
    router = EventRouter(store, handlers)
    handshake = HandshakeController(store, handlers)
    files = [_register(store, name=f"{n}.mp4") for n in ("a", "b", "c")]

    await router.handle_cancel_all()

    assert len(store) == 0
    on_cancel_all.assert_awaited_once_with()
    with pytest.raises(SessionNotFoundError):
        await handshake.begin(files[0])


@pytest.mark.asyncio
async def test_progress_forwarded_verbatim():
    on_progress = MagicMock()
    router = EventRouter(SessionStore(), _Handlers(on_progress=on_progress))

    await router.handle_progress(42)

    on_progress.assert_called_once_with(42)


@pytest.mark.asyncio
async def test_missing_handlers_never_raise():
    store = SessionStore()
    router = EventRouter(store, _Handlers())
    file = _register(store)

    await router.handle_progress(10)
    await router.handle_error(file, RuntimeError("x"))
    await router.handle_removal(file)
    await router.handle_cancel_all()


@pytest.mark.asyncio
async def test_retry_puts_failed_session_back_to_pending():
    store = SessionStore()
    router = EventRouter(store, _Handlers())
    file = _register(store)
    store.transition(file.id, SessionStatus.FAILED)

    await router.handle_retry(file)

    assert store.get(file.id).status == SessionStatus.PENDING


@pytest.mark.asyncio
async def test_attach_subscribes_to_engine_events():
    store = SessionStore()
    on_success = MagicMock()
    router = EventRouter(store, _Handlers(on_success=on_success))
    emitter = EventEmitter()
    engine = SimpleNamespace(on=emitter.on)
    file = _register(store)

    router.attach(engine)
    for event in ("progress", "upload-success", "upload-error", "file-removed", "cancel-all", "upload-retry"):
        assert emitter.listener_count(event) == 1

    await emitter.emit("upload-success", file, {})

    on_success.assert_called_once_with({"requestKey": "videos/movie.mp4"})
    assert len(store) == 0
