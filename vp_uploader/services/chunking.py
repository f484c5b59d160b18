"""Single vs multi-part decision."""
import math


def decide_multipart(file_size: int, chunk_size: int) -> bool:
    """A file is split into parts only when it is strictly larger than one chunk."""
    return file_size > chunk_size


def part_count(file_size: int, chunk_size: int) -> int:
    """Number of parts sent for a file; empty files still send one part."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return max(1, math.ceil(file_size / chunk_size))
