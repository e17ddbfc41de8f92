"""
Alignment Dictionaries.

Two kinds of alignment data are used during generation:
- The unknown-word dictionary, mapping source tokens to target strings,
  used to translate copied source tokens
- The indexed alignment dataset, mapping source indices to aligned target
  indices with frequencies, used to restrict the target vocabulary

The indexed dataset lives in two files read through numpy memory maps:
    <path>.idx: int64 row offsets, one more than the number of entries
    <path>.bin: int64 (target_index, frequency) rows
"""

import json
from pathlib import Path
from typing import Dict, Iterable, Mapping, Sequence, Tuple, Union

import numpy as np
import torch


def load_unk_align_dict(path: Union[str, Path, None]) -> Dict[str, str]:
    """Load the unknown-word alignment dictionary.

    Args:
        path: A ``.json`` file, or any file written with ``torch.save``
            holding a mapping. Empty means no dictionary.

    Returns:
        Source token -> replacement string.
    """
    if not path:
        return {}

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Alignment dictionary not found: {path}")

    if path.suffix == '.json':
        with open(path, 'r', encoding='utf-8') as f:
            table = json.load(f)
    else:
        table = torch.load(path, map_location='cpu')

    if not isinstance(table, Mapping):
        raise ValueError(
            f"Alignment dictionary must hold a mapping, got {type(table).__name__}"
        )

    return {str(k): str(v) for k, v in table.items()}


class IndexedAlignmentDataset:
    """Memory-mapped reader over an indexed alignment dataset.

    Args:
        path: Path prefix; ``.idx`` and ``.bin`` are appended.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = str(path)
        index_file = Path(f"{self.path}.idx")
        data_file = Path(f"{self.path}.bin")

        for f in (index_file, data_file):
            if not f.exists():
                raise FileNotFoundError(f"Indexed alignment file not found: {f}")

        self.offsets = np.memmap(index_file, dtype=np.int64, mode='r')
        if data_file.stat().st_size > 0:
            self.data = np.memmap(data_file, dtype=np.int64, mode='r').reshape(-1, 2)
        else:
            self.data = np.zeros((0, 2), dtype=np.int64)

    def __len__(self) -> int:
        return len(self.offsets) - 1

    def __getitem__(self, index: int) -> np.ndarray:
        """Aligned (target_index, frequency) rows for a source index."""
        if index < 0 or index >= len(self):
            raise IndexError(f"Source index {index} out of range [0, {len(self)})")
        start, end = int(self.offsets[index]), int(self.offsets[index + 1])
        return np.asarray(self.data[start:end])


def write_indexed_alignments(
    path: Union[str, Path],
    entries: Sequence[Iterable[Tuple[int, int]]]
):
    """Write an indexed alignment dataset.

    Args:
        path: Path prefix for the ``.idx`` and ``.bin`` files.
        entries: For each source index, its (target_index, frequency)
            pairs. Rows are stored by decreasing frequency.
    """
    offsets = [0]
    rows = []
    for pairs in entries:
        pairs = sorted(pairs, key=lambda p: p[1], reverse=True)
        rows.extend(pairs)
        offsets.append(len(rows))

    np.asarray(offsets, dtype=np.int64).tofile(f"{path}.idx")
    np.asarray(rows, dtype=np.int64).reshape(-1, 2).tofile(f"{path}.bin")


def target_vocab_from_alignment(
    source: torch.Tensor,
    aligndict: IndexedAlignmentDataset,
    nmostcommon: int,
    topnalign: int,
    freqthreshold: int = -1,
    exclude: Iterable[int] = ()
) -> torch.Tensor:
    """Target indices reachable from a batch of source indices.

    The vocabulary holds the ``nmostcommon`` first target indices (the
    dictionary is sorted by frequency, special symbols first) and, for
    every source index, up to ``topnalign`` aligned targets occurring at
    least ``freqthreshold`` times.

    Args:
        source: Source indices of any shape.
        aligndict: Indexed alignment dataset.
        nmostcommon: Number of most common target words always kept.
        topnalign: Aligned candidates considered per source index.
        freqthreshold: Minimum alignment frequency (-1 for no limit).
        exclude: Source indices to ignore (padding, end of sequence).

    Returns:
        Sorted LongTensor of target indices.
    """
    vocab = set(range(nmostcommon))
    exclude = set(exclude)

    for idx in torch.unique(source).tolist():
        if idx in exclude or idx >= len(aligndict):
            continue
        rows = aligndict[idx][:topnalign]
        if freqthreshold >= 0:
            rows = rows[rows[:, 1] >= freqthreshold]
        vocab.update(int(t) for t in rows[:, 0])

    return torch.tensor(sorted(vocab), dtype=torch.long)


def clamp_nmostcommon(nmostcommon: int, nspecial: int, dict_size: int) -> int:
    """Keep at least the special symbols and at most the whole dictionary."""
    return min(max(nmostcommon, nspecial), dict_size)
