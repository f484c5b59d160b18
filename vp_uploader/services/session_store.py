"""
Session Store - keyed registry of per-file upload sessions.

The only shared mutable state of the coordinator. Every read and write is keyed
by file identity, so interleaved events for different files never touch each
other's record.
"""
import logging
from dataclasses import fields, replace
from typing import Dict, Iterator, List, Optional, Union

from ..errors import DuplicateSessionError, InvalidTransitionError, SessionNotFoundError
from ..models import ALLOWED_TRANSITIONS, FileIdentity, SessionStatus, UploadDetails, UploadSession
from .chunking import decide_multipart

logger = logging.getLogger(__name__)

IdentityLike = Union[FileIdentity, str]

_FROZEN_FIELDS = {"identity", "is_multipart", "chunk_size"}
_PATCHABLE_FIELDS = {f.name for f in fields(UploadSession)} - _FROZEN_FIELDS


def _key(identity: IdentityLike) -> str:
    return identity.key if isinstance(identity, FileIdentity) else str(identity)


class SessionStore:
    """
    In-memory session registry.

    Usage:
        store = SessionStore()
        store.create(identity, details, chunk_size=10 * MiB)
        session = store.get(identity)   # None when absent
        store.update(identity, upload_id="abc")
        store.delete(identity)
    """

    def __init__(self):
        self._sessions: Dict[str, UploadSession] = {}

    def create(
        self,
        identity: FileIdentity,
        details: UploadDetails,
        chunk_size: int,
    ) -> UploadSession:
        """
        Register a new session.

        The single/multi-part decision is taken here, once, from the file size
        carried by the identity.

        Raises:
            DuplicateSessionError: a live session already exists for the identity
        """
        key = identity.key
        if key in self._sessions:
            raise DuplicateSessionError(f"session already exists for {key}")

        is_multipart = decide_multipart(identity.size, chunk_size)

        session = UploadSession(
            identity=identity,
            request_key=details.request_key,
            presigned_urls=tuple(details.presigned_urls or ()),
            is_multipart=is_multipart,
            upload_id=details.upload_id or None,
            chunk_size=chunk_size,
        )
        self._sessions[key] = session
        logger.debug(
            f"Session created: {key} "
            f"({'multi' if is_multipart else 'single'}-part, {len(session.presigned_urls)} url(s))"
        )
        return session

    def get(self, identity: IdentityLike) -> Optional[UploadSession]:
        """Return the session, or None when there is none."""
        return self._sessions.get(_key(identity))

    def require(self, identity: IdentityLike) -> UploadSession:
        session = self.get(identity)
        if session is None:
            raise SessionNotFoundError(f"no upload session for {_key(identity)}")
        return session

    def update(self, identity: IdentityLike, **patch) -> UploadSession:
        """Replace fields of an existing session. Identity and chunking decision are fixed."""
        frozen = _FROZEN_FIELDS.intersection(patch)
        if frozen:
            raise ValueError(f"cannot change {', '.join(sorted(frozen))} of an existing session")
        unknown = set(patch) - _PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"unknown session fields: {', '.join(sorted(unknown))}")

        session = self.require(identity)
        updated = replace(session, **patch)
        self._sessions[session.key] = updated
        return updated

    def transition(self, identity: IdentityLike, status: SessionStatus) -> UploadSession:
        """Move a session to ``status``; a no-op when it is already there."""
        session = self.require(identity)
        if session.status == status:
            return session
        if status not in ALLOWED_TRANSITIONS[session.status]:
            raise InvalidTransitionError(
                f"{session.key}: cannot go from {session.status.value} to {status.value}"
            )
        return self.update(identity, status=status)

    def delete(self, identity: IdentityLike) -> Optional[UploadSession]:
        """Remove and return the session, or None when there was none."""
        session = self._sessions.pop(_key(identity), None)
        if session is not None:
            logger.debug(f"Session deleted: {session.key}")
        return session

    def clear(self) -> int:
        count = len(self._sessions)
        self._sessions.clear()
        if count:
            logger.debug(f"Cleared {count} session(s)")
        return count

    def sessions(self) -> List[UploadSession]:
        return list(self._sessions.values())

    def __contains__(self, identity: IdentityLike) -> bool:
        return _key(identity) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[UploadSession]:
        return iter(self.sessions())
