"""Tests for the session store."""
import pytest

from vp_uploader.errors import DuplicateSessionError, InvalidTransitionError, SessionNotFoundError
from vp_uploader.models import FileIdentity, SessionStatus, UploadDetails
from vp_uploader.services.session_store import SessionStore


def _identity(name="movie.mp4", size=25, nonce="n1"):
    return FileIdentity(name=name, size=size, nonce=nonce)


def _details(urls=("u1", "u2", "u3"), upload_id="up-1"):
    return UploadDetails(request_key="videos/movie.mp4", presigned_urls=list(urls), upload_id=upload_id)


def test_create_decides_multipart_once():
    store = SessionStore()
    session = store.create(_identity(size=25), _details(), chunk_size=10)

    assert session.is_multipart is True
    assert session.chunk_size == 10
    assert session.status == SessionStatus.PENDING
    assert session.presigned_urls == ("u1", "u2", "u3")

    single = store.create(_identity(size=5, nonce="n2"), _details(urls=("u1",), upload_id=None), chunk_size=10)
    assert single.is_multipart is False
    assert single.upload_id is None


def test_create_duplicate_raises():
    store = SessionStore()
    store.create(_identity(), _details(), chunk_size=10)
    with pytest.raises(DuplicateSessionError):
        store.create(_identity(), _details(), chunk_size=10)


def test_same_name_and_size_with_different_nonce_coexist():
    store = SessionStore()
    store.create(_identity(nonce="a"), _details(), chunk_size=10)
    store.create(_identity(nonce="b"), _details(), chunk_size=10)
    assert len(store) == 2


def test_get_and_require():
    store = SessionStore()
    identity = _identity()
    store.create(identity, _details(), chunk_size=10)

    assert store.get(identity) is store.get(identity.key)
    assert store.get("missing") is None
    assert identity in store
    with pytest.raises(SessionNotFoundError):
        store.require("missing")


def test_update_patches_and_protects_fixed_fields():
    store = SessionStore()
    identity = _identity()
    store.create(identity, _details(), chunk_size=10)

    updated = store.update(identity, upload_id="up-2")
    assert updated.upload_id == "up-2"
    assert store.get(identity).upload_id == "up-2"

    with pytest.raises(ValueError):
        store.update(identity, is_multipart=False)
    with pytest.raises(ValueError):
        store.update(identity, chunk_size=1)
    with pytest.raises(ValueError):
        store.update(identity, colour="red")
    with pytest.raises(SessionNotFoundError):
        store.update("missing", upload_id="x")


def test_transitions():
    store = SessionStore()
    identity = _identity()
    store.create(identity, _details(), chunk_size=10)

    assert store.transition(identity, SessionStatus.ACTIVE).status == SessionStatus.ACTIVE
    assert store.transition(identity, SessionStatus.ACTIVE).status == SessionStatus.ACTIVE
    assert store.transition(identity, SessionStatus.FAILED).status == SessionStatus.FAILED
    assert store.transition(identity, SessionStatus.PENDING).status == SessionStatus.PENDING

    store.transition(identity, SessionStatus.SUCCEEDED)
    with pytest.raises(InvalidTransitionError):
        store.transition(identity, SessionStatus.ACTIVE)


def test_delete_and_clear():
    store = SessionStore()
    first, second = _identity(nonce="a"), _identity(nonce="b")
    store.create(first, _details(), chunk_size=10)
    store.create(second, _details(), chunk_size=10)

    assert store.delete(first).identity == first
    assert store.delete(first) is None
    assert [s.identity for s in store] == [second]

    assert store.clear() == 1
    assert len(store) == 0
    assert store.sessions() == []
