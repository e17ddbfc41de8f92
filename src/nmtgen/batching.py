"""
Source-Line Filtering and Batching.

Groups input lines into fixed-size batches for generation:
- Lines longer than the source length limit are skipped
- The longest kept line of each batch is tracked for padding
- A trailing partial batch is flushed at end of input
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List


@dataclass
class Batch:
    """Kept source lines and their maximum token count."""
    lines: List[str] = field(default_factory=list)
    max_len: int = 0

    def __len__(self):
        return len(self.lines)


class LineBatcher:
    """Filters over-length lines and yields fixed-size batches.

    Skipped lines leave no placeholder, so output line counts follow the
    kept lines only.

    Args:
        batch_size: Number of lines per batch.
        max_source_len: Maximum whitespace token count of a kept line.
    """

    def __init__(self, batch_size: int, max_source_len: int):
        assert batch_size > 0, f"batch_size must be positive, got {batch_size}"
        self.batch_size = batch_size
        self.max_source_len = max_source_len
        self.count = 0
        self.skipped = 0

    def __call__(self, lines: Iterable[str]) -> Iterator[Batch]:
        batch = Batch()

        for line in lines:
            n = len(line.split())
            if n > self.max_source_len:
                self.skipped += 1
                continue

            batch.lines.append(line.strip())
            batch.max_len = max(batch.max_len, n)
            self.count += 1

            if len(batch) == self.batch_size:
                yield batch
                batch = Batch()

        if batch.lines:
            yield batch


def iter_batches(
    lines: Iterable[str],
    batch_size: int,
    max_source_len: int
) -> Iterator[Batch]:
    """Convenience wrapper around :class:`LineBatcher`."""
    return LineBatcher(batch_size, max_source_len)(lines)
