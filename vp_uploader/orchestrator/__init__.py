"""Orchestrator package - coordinates upload sessions."""
from .batch import BatchUploader
from .core import VpUploader
from .models import BatchFailure, BatchUploadResult
from .router import EventRouter

__all__ = ["VpUploader", "BatchUploader", "BatchFailure", "BatchUploadResult", "EventRouter"]
