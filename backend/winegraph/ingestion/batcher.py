"""
Fixed-size partitioning of normalized records into batches.
"""

from typing import Any, Iterator, Sequence

from ..errors import ConfigError
from .protocols import Batch, NormalizedRecord


class BatchSequence:
    """
    Lazy, re-iterable view of a record sequence as contiguous batches.

    Slices are taken on demand; iterating twice yields the same batches.
    """

    def __init__(self, records: Sequence[NormalizedRecord], size: int):
        self._records = records
        self.size = size

    def __len__(self) -> int:
        return -(-len(self._records) // self.size)

    def __iter__(self) -> Iterator[Batch]:
        for index, start in enumerate(range(0, len(self._records), self.size)):
            yield Batch(index=index, records=tuple(self._records[start:start + self.size]))

    def __repr__(self) -> str:
        return f"BatchSequence(records={len(self._records)}, size={self.size}, batches={len(self)})"


def require_batch_size(size: Any) -> int:
    """Return size if it is a positive integer, else raise ConfigError."""
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        raise ConfigError(f"Batch size must be a positive integer, got {size!r}")
    return size


def chunk(records: Sequence[NormalizedRecord], size: int) -> BatchSequence:
    """
    Split records into batches of at most `size`, preserving order.

    Raises:
        ConfigError: If size is not a positive integer
    """
    return BatchSequence(records, require_batch_size(size))
