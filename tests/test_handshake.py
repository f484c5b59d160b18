"""Tests for the handshake controller."""
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from vp_uploader.errors import (
    PartIndexOutOfRangeError,
    PresignedUrlsMissingError,
    RequestKeyMissingError,
    SessionNotFoundError,
    UploadIdMissingError,
)
from vp_uploader.models import (
    FileIdentity,
    MiB,
    SessionStatus,
    UploadDetails,
    UploadHandlers,
)
from vp_uploader.services.handshake import HandshakeController, normalize_parts
from vp_uploader.services.session_store import SessionStore


class _Handlers:
    def __init__(self, **slots):
        self.value = UploadHandlers(**slots)

    def __call__(self):
        return self.value


def _register(store, size, urls, upload_id="up-1", request_key="videos/movie.mp4"):
    identity = FileIdentity(name="movie.mp4", size=size, nonce=f"n{len(store)}")
    store.create(
        identity,
        UploadDetails(request_key=request_key, presigned_urls=list(urls), upload_id=upload_id),
        chunk_size=10 * MiB,
    )
    return SimpleNamespace(id=identity.key)


@pytest.mark.asyncio
async def test_multipart_part_resolves_to_matching_url():
    store = SessionStore()
    controller = HandshakeController(store, _Handlers())
    file = _register(store, 25 * MiB, ["u1", "u2", "u3"])

    start = await controller.begin(file)
    signed = await controller.sign_part(file, 2)

    assert start.upload_id == "up-1"
    assert start.request_key == "videos/movie.mp4"
    assert signed.url == "u2"
    assert signed.headers == {"Content-Type": "application/octet-stream"}
    assert store.get(file.id).status == SessionStatus.ACTIVE
    assert store.get(file.id).last_signed_part == 2


@pytest.mark.asyncio
async def test_single_part_always_uses_first_url():
    store = SessionStore()
    controller = HandshakeController(store, _Handlers())
    file = _register(store, 5 * MiB, ["u1"], upload_id=None)

    start = await controller.begin(file)

    assert start.upload_id is None
    assert (await controller.sign_part(file, 7)).url == "u1"
    assert (await controller.sign_part(file, 1)).url == "u1"


@pytest.mark.asyncio
async def test_part_number_out_of_range():
    store = SessionStore()
    controller = HandshakeController(store, _Handlers())
    file = _register(store, 25 * MiB, ["u1", "u2", "u3"])

    with pytest.raises(PartIndexOutOfRangeError):
        await controller.sign_part(file, 4)
    with pytest.raises(PartIndexOutOfRangeError):
        await controller.sign_part(file, 0)


@pytest.mark.asyncio
async def test_missing_session_is_an_error():
    store = SessionStore()
    controller = HandshakeController(store, _Handlers())
    ghost = SimpleNamespace(id="ghost.mp4:1:zz")

    with pytest.raises(SessionNotFoundError):
        await controller.begin(ghost)
    with pytest.raises(SessionNotFoundError):
        await controller.sign_part(ghost, 1)
    with pytest.raises(SessionNotFoundError):
        await controller.finalize(ghost, None, "k", [])
    assert len(store) == 0


@pytest.mark.asyncio
async def test_begin_requires_credentials():
    store = SessionStore()
    controller = HandshakeController(store, _Handlers())

    no_key = _register(store, 5 * MiB, ["u1"], upload_id=None, request_key="")
    with pytest.raises(RequestKeyMissingError):
        await controller.begin(no_key)

    no_upload_id = _register(store, 25 * MiB, ["u1", "u2", "u3"], upload_id=None)
    with pytest.raises(UploadIdMissingError):
        await controller.begin(no_upload_id)


@pytest.mark.asyncio
async def test_sign_part_requires_urls():
    store = SessionStore()
    controller = HandshakeController(store, _Handlers())
    file = _register(store, 5 * MiB, [], upload_id=None)

    with pytest.raises(PresignedUrlsMissingError):
        await controller.sign_part(file, 1)


@pytest.mark.asyncio
async def test_finalize_multipart_hands_parts_to_completion_handler():
    store = SessionStore()
    on_completion = AsyncMock()
    controller = HandshakeController(store, _Handlers(on_completion=on_completion))
    file = _register(store, 25 * MiB, ["u1", "u2", "u3"])

    result = await controller.finalize(
        file,
        upload_id="up-1",
        request_key="videos/movie.mp4",
        parts=[
            {"ETag": '"aaa"', "PartNumber": 1},
            {"ETag": '"bbb"', "PartNumber": 2},
            {"ETag": "ccc", "PartNumber": 3},
        ],
    )

    assert result == {}
    on_completion.assert_awaited_once_with(
        {
            "requestKey": "videos/movie.mp4",
            "parts": [
                {"eTag": "aaa", "partNumber": 1},
                {"eTag": "bbb", "partNumber": 2},
                {"eTag": "ccc", "partNumber": 3},
            ],
        }
    )


@pytest.mark.asyncio
async def test_finalize_accepts_sync_handler():
    store = SessionStore()
    on_completion = MagicMock()
    controller = HandshakeController(store, _Handlers(on_completion=on_completion))
    file = _register(store, 25 * MiB, ["u1", "u2", "u3"])

    await controller.finalize(file, "up-1", "", [{"ETag": '"x"', "PartNumber": 1}])

    on_completion.assert_called_once_with(
        {"requestKey": "videos/movie.mp4", "parts": [{"eTag": "x", "partNumber": 1}]}
    )


@pytest.mark.asyncio
async def test_finalize_single_part_does_not_complete():
    store = SessionStore()
    on_completion = MagicMock()
    controller = HandshakeController(store, _Handlers(on_completion=on_completion))
    file = _register(store, 5 * MiB, ["u1"], upload_id=None)

    assert await controller.finalize(file, None, "videos/movie.mp4", [{"ETag": '"x"', "PartNumber": 1}]) == {}
    on_completion.assert_not_called()


@pytest.mark.asyncio
async def test_finalize_without_handler_warns(caplog):
    store = SessionStore()
    controller = HandshakeController(store, _Handlers())
    file = _register(store, 25 * MiB, ["u1", "u2", "u3"])

    with caplog.at_level(logging.WARNING):
        result = await controller.finalize(file, "up-1", "videos/movie.mp4", [])

    assert result == {}
    assert "HandlerMissingWarning" in caplog.text
    assert "completion" in caplog.text


def test_normalize_parts_strips_surrounding_quotes_only():
    assert normalize_parts([{"ETag": '"a"b"', "PartNumber": 5}]) == [{"eTag": 'a"b', "partNumber": 5}]
