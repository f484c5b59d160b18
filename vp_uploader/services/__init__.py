"""Services for vp_uploader."""
from .chunking import decide_multipart, part_count
from .handshake import HandshakeController, normalize_parts
from .session_store import SessionStore
from .validation import BatchItem, validate_batch, validate_details, validate_source

__all__ = [
    "decide_multipart",
    "part_count",
    "HandshakeController",
    "normalize_parts",
    "SessionStore",
    "BatchItem",
    "validate_batch",
    "validate_details",
    "validate_source",
]
