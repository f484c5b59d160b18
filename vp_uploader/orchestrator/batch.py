"""
Batch Orchestrator - fans (file, details) pairs out into independent sessions.

Every item is validated before the first session is registered. Submissions
then run concurrently, and each outcome is captured on its own so one failed
transfer never aborts its siblings.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from ..errors import FileCategoryError
from ..models import SessionStatus, UploadAck, UploadDetails, UploadSource
from ..services.validation import validate_batch
from ..utils.events import call_handler
from .models import BatchFailure, BatchUploadResult

logger = logging.getLogger(__name__)


class BatchUploader:
    """
    Runs many uploads and aggregates their outcomes.

    Args:
        submit: Coroutine function uploading one validated (source, details) pair
        check_source: Raises for a source that may not be uploaded (category filter)
        chunk_size: Chunk size used for the multi-part decision during validation
        max_parallel: Optional cap on simultaneous submissions
        cancel_generation: Returns a counter bumped by every cancel-all; items
            still waiting for a slot when it changes are not submitted
    """

    def __init__(
        self,
        submit: Callable[[UploadSource, UploadDetails], Awaitable[UploadAck]],
        check_source: Callable[[UploadSource], None],
        chunk_size: int,
        max_parallel: Optional[int] = None,
        cancel_generation: Optional[Callable[[], int]] = None,
    ):
        self._submit = submit
        self._check_source = check_source
        self._chunk_size = chunk_size
        self._max_parallel = max_parallel
        self._cancel_generation = cancel_generation or (lambda: 0)

    async def upload_many(
        self,
        items: Iterable[Any],
        on_all_success: Optional[Callable] = None,
        on_some_failure: Optional[Callable] = None,
    ) -> BatchUploadResult:
        """
        Upload every item.

        Raises:
            DetailsValidationError / InvalidSourceError / FileCategoryError: an item
                is malformed; nothing has been registered yet.
        """
        validated = validate_batch(items, self._chunk_size)
        for index, (source, _) in enumerate(validated):
            try:
                self._check_source(source)
            except FileCategoryError as exc:
                raise FileCategoryError(str(exc), index) from exc

        if not validated:
            return BatchUploadResult()

        semaphore = asyncio.Semaphore(self._max_parallel) if self._max_parallel else None
        generation = self._cancel_generation()

        async def submit(source: UploadSource, details: UploadDetails) -> UploadAck:
            if self._cancel_generation() != generation:
                logger.info(f"Skipping {source.name}: uploads were cancelled")
                return UploadAck(
                    file_id=source.name,
                    request_key=details.request_key,
                    status=SessionStatus.CANCELLED,
                )
            return await self._submit(source, details)

        async def run(source: UploadSource, details: UploadDetails) -> UploadAck:
            if semaphore is None:
                return await submit(source, details)
            async with semaphore:
                return await submit(source, details)

        logger.info(f"Starting batch upload: {len(validated)} file(s)")
        outcomes = await asyncio.gather(
            *(run(source, details) for source, details in validated),
            return_exceptions=True,
        )

        result = BatchUploadResult(results=list(outcomes))
        for index, ((source, _), outcome) in enumerate(zip(validated, outcomes)):
            if isinstance(outcome, BaseException):
                result.failures.append(BatchFailure(index=index, source=source, error=outcome))
            elif outcome.success:
                result.successes.append(outcome)
            else:
                result.failures.append(BatchFailure(index=index, source=source, ack=outcome))

        logger.info(
            f"Batch upload complete: {len(result.successes)} successful, {len(result.failures)} failed"
        )

        if result.successes and on_all_success is not None:
            await call_handler(on_all_success, result.successes)
        if result.failures and on_some_failure is not None:
            await call_handler(on_some_failure, result.failures)
        return result
