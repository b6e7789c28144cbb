"""Concurrency bound for batched direct uploads."""
from typing import Sequence

MB = 1024 * 1024


def get_parallel_count(sizes: Sequence[int]) -> int:
    """
    Number of files to stream at once, derived from the average file size.

    Many small files are dominated by request latency and benefit from
    overlap; large files saturate the link on their own.
    """
    if not sizes:
        return 1

    avg_size = sum(sizes) / len(sizes)
    if avg_size < 1 * MB:
        limit = 10
    elif avg_size < 10 * MB:
        limit = 6
    else:
        limit = 3
    return max(1, min(limit, len(sizes)))
