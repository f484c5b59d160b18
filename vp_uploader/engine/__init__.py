"""Transfer engine package - performs the byte transfer for the coordinator."""
from .http import HttpTransferEngine
from .models import EngineFile, FileState, TransferAck

__all__ = ["HttpTransferEngine", "EngineFile", "FileState", "TransferAck"]
