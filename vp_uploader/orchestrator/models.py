"""Orchestrator data models."""
from dataclasses import dataclass, field
from typing import List, Optional, Union

from ..models import UploadAck, UploadSource


@dataclass(frozen=True)
class BatchFailure:
    """One batch item that did not upload."""
    index: int
    source: UploadSource
    error: Optional[BaseException] = None
    ack: Optional[UploadAck] = None


@dataclass
class BatchUploadResult:
    """Result of a batch upload. ``results`` follows input order."""
    successes: List[UploadAck] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)
    results: List[Union[UploadAck, BaseException]] = field(default_factory=list)

    @property
    def all_success(self) -> bool:
        return not self.failures

    @property
    def total(self) -> int:
        return len(self.results)
