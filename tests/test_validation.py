"""Tests for credential and source validation."""
import pytest

from vp_uploader.errors import DetailsValidationError, FileCategoryError, InvalidSourceError, ItemValidationError
from vp_uploader.models import UploadDetails, UploadSource
from vp_uploader.services.validation import BatchItem, validate_batch, validate_details, validate_source


MULTI = {"requestKey": "videos/a.mp4", "uploadId": "up-1", "presignedUrls": ["u1", "u2", "u3"]}
SINGLE = {"requestKey": "videos/b.mp4", "presignedUrls": ["u1"]}


def test_valid_multipart_details():
    details = validate_details(MULTI, is_multipart=True)
    assert isinstance(details, UploadDetails)
    assert details.upload_id == "up-1"
    assert list(details.presigned_urls) == ["u1", "u2", "u3"]


def test_valid_single_part_details_without_upload_id():
    details = validate_details(SINGLE, is_multipart=False)
    assert details.upload_id is None


@pytest.mark.parametrize(
    "details, is_multipart, fragment",
    [
        (None, False, "mapping"),
        ("videos/a.mp4", False, "mapping"),
        ({"presignedUrls": ["u1"]}, False, "requestKey"),
        ({"requestKey": "", "presignedUrls": ["u1"]}, False, "requestKey"),
        ({"requestKey": 7, "presignedUrls": ["u1"]}, False, "requestKey"),
        ({"requestKey": "k"}, False, "presignedUrls"),
        ({"requestKey": "k", "presignedUrls": "u1"}, False, "presignedUrls"),
        ({"requestKey": "k", "presignedUrls": []}, False, "empty"),
        ({"requestKey": "k", "presignedUrls": ["u1", ""]}, True, "non-empty strings"),
        ({"requestKey": "k", "presignedUrls": ["u1", "u2"]}, True, "uploadId"),
        ({"requestKey": "k", "uploadId": "", "presignedUrls": ["u1", "u2"]}, True, "uploadId"),
        ({"requestKey": "k", "uploadId": "up", "presignedUrls": ["u1"]}, True, "exactly one"),
        ({"requestKey": "k", "presignedUrls": ["u1", "u2"]}, False, "exactly one"),
    ],
)
def test_invalid_details(details, is_multipart, fragment):
    with pytest.raises(DetailsValidationError) as exc_info:
        validate_details(details, is_multipart)
    assert fragment in str(exc_info.value)
    assert exc_info.value.index is None


def test_error_carries_index():
    with pytest.raises(DetailsValidationError) as exc_info:
        validate_details({"requestKey": ""}, False, index=4)
    assert exc_info.value.index == 4
    assert str(exc_info.value).startswith("item 4: ")


def test_validate_source():
    source = UploadSource.from_bytes("a.mp4", b"x")
    assert validate_source(source) is source
    with pytest.raises(InvalidSourceError):
        validate_source("a.mp4")
    with pytest.raises(InvalidSourceError) as exc_info:
        validate_source(None, index=2)
    assert exc_info.value.index == 2
    assert str(exc_info.value).startswith("item 2: ")


def test_validate_batch_reports_first_bad_index():
    good = UploadSource.from_bytes("a.mp4", b"x" * 4)
    items = [
        (good, SINGLE),
        (good, {"requestKey": "", "presignedUrls": ["u1"]}),
        (good, {"requestKey": ""}),
    ]
    with pytest.raises(DetailsValidationError) as exc_info:
        validate_batch(items, chunk_size=10)
    assert exc_info.value.index == 1


def test_validate_batch_uses_chunk_size_for_each_item():
    small = UploadSource.from_bytes("small.mp4", b"x" * 5)
    large = UploadSource.from_bytes("large.mp4", b"x" * 25)

    validated = validate_batch([BatchItem(small, SINGLE), (large, MULTI)], chunk_size=10)

    assert [source.name for source, _ in validated] == ["small.mp4", "large.mp4"]
    assert validated[1][1].upload_id == "up-1"


def test_validate_batch_rejects_non_pairs():
    with pytest.raises(DetailsValidationError) as exc_info:
        validate_batch(["not a pair"], chunk_size=10)
    assert exc_info.value.index == 0


def test_validate_batch_reports_bad_source_index():
    good = UploadSource.from_bytes("a.mp4", b"x" * 4)
    with pytest.raises(InvalidSourceError) as exc_info:
        validate_batch([(good, SINGLE), ("b.mp4", SINGLE)], chunk_size=10)
    assert exc_info.value.index == 1


def test_item_errors_share_a_base():
    assert issubclass(DetailsValidationError, ItemValidationError)
    assert issubclass(InvalidSourceError, ItemValidationError)
    assert issubclass(FileCategoryError, ItemValidationError)
    assert FileCategoryError("photo.png is not allowed").index is None
