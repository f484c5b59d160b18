"""Credential shape checks, run before any session is registered."""
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..errors import DetailsValidationError, InvalidSourceError
from ..models import UploadDetails, UploadSource
from .chunking import decide_multipart


@dataclass(frozen=True)
class BatchItem:
    """One file of a batch together with its credentials."""
    source: UploadSource
    details: Union[UploadDetails, Mapping[str, Any]]


def validate_source(source: Any, index: Optional[int] = None) -> UploadSource:
    if not isinstance(source, UploadSource):
        raise InvalidSourceError(
            f"invalid file provided, expected UploadSource, got {type(source).__name__}", index
        )
    return source


def validate_details(
    details: Union[UploadDetails, Mapping[str, Any]],
    is_multipart: bool,
    index: Optional[int] = None,
) -> UploadDetails:
    """
    Check broker credentials against the session kind.

    Args:
        details: UploadDetails or raw broker payload
        is_multipart: Chunking decision for the file
        index: Batch position, reported in the error message

    Returns:
        Coerced UploadDetails

    Raises:
        DetailsValidationError: on the first violated rule
    """
    if not isinstance(details, (UploadDetails, Mapping)):
        raise DetailsValidationError(
            f"details must be a mapping or UploadDetails, got {type(details).__name__}", index
        )
    details = UploadDetails.coerce(details)

    if not isinstance(details.request_key, str) or not details.request_key:
        raise DetailsValidationError("requestKey is required and must be a non-empty string", index)

    urls = details.presigned_urls
    if not isinstance(urls, (list, tuple)):
        raise DetailsValidationError(
            f"presignedUrls must be a list, got {type(urls).__name__}", index
        )
    if not urls:
        raise DetailsValidationError("presignedUrls must not be empty", index)
    if not all(isinstance(url, str) and url for url in urls):
        raise DetailsValidationError("presignedUrls entries must be non-empty strings", index)

    if is_multipart:
        if not isinstance(details.upload_id, str) or not details.upload_id:
            raise DetailsValidationError("uploadId is required for multi-part uploads", index)
        if len(urls) == 1:
            raise DetailsValidationError(
                "multi-part uploads need one presigned URL per part, got exactly one", index
            )
    elif len(urls) != 1:
        raise DetailsValidationError(
            f"single-part uploads take exactly one presigned URL, got {len(urls)}", index
        )

    return details


def _unpack(item: Any, index: int) -> Tuple[Any, Any]:
    if isinstance(item, BatchItem):
        return item.source, item.details
    if isinstance(item, Sequence) and not isinstance(item, (str, bytes)) and len(item) == 2:
        return item[0], item[1]
    raise DetailsValidationError("batch items must be (file, details) pairs", index)


def validate_batch(
    items: Iterable[Any],
    chunk_size: int,
) -> List[Tuple[UploadSource, UploadDetails]]:
    """Validate every batch item up front; the first bad item fails the whole call."""
    validated = []
    for index, item in enumerate(items):
        source, details = _unpack(item, index)
        source = validate_source(source, index)
        is_multipart = decide_multipart(source.size, chunk_size)
        validated.append((source, validate_details(details, is_multipart, index)))
    return validated
