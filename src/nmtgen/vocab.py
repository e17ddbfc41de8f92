"""
Dictionary Helpers for Generation.

Works with any dictionary exposing the fairseq ``Dictionary`` interface
(``index``, ``__getitem__``, ``__len__``, ``eos``, ``pad``, ``unk``):
- Tensorizing source lines and padded batches
- Rendering target indices, cut at the first end-of-sequence symbol
- Restricted output vocabularies read from a word list
"""

from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple, Union

import torch


def load_vocab_restriction(path: Union[str, Path]) -> Set[str]:
    """Read a word list, keeping every word together with all its prefixes.

    Prefixes let sub-word units that start an allowed word through.
    """
    vocab = set()
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            word = line.rstrip('\n')
            for i in range(1, len(word) + 1):
                vocab.add(word[:i])
    return vocab


def restricted_indices(dictionary, vocab: Iterable[str]) -> torch.Tensor:
    """Target indices allowed by a restricted vocabulary.

    Special symbols (end of sequence, unknown, padding) are always allowed.
    """
    allowed = {dictionary.eos(), dictionary.unk(), dictionary.pad()}
    for word in vocab:
        idx = dictionary.index(word)
        if idx != dictionary.unk():
            allowed.add(idx)
    return torch.tensor(sorted(allowed), dtype=torch.long)


class SourceEncoder:
    """Converts between text and dictionary indices.

    Args:
        source_dict: Source language dictionary.
        target_dict: Target language dictionary.
    """

    def __init__(self, source_dict, target_dict):
        self.source_dict = source_dict
        self.target_dict = target_dict
        self.pad_id = source_dict.pad()
        self.eos_id = source_dict.eos()

    def encode(self, line: str) -> List[int]:
        """Whitespace-tokenize a line and append end of sequence."""
        return [self.source_dict.index(tok) for tok in line.split()] + [self.eos_id]

    def encode_batch(
        self,
        lines: List[str],
        max_len: Optional[int] = None
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """Encode lines into a right-padded batch.

        Args:
            lines: Source lines.
            max_len: Largest whitespace token count among ``lines``, if
                already known. Rows are padded to ``max_len + 1``.

        Returns:
            Tuple of (tokens, lengths).
            - tokens: LongTensor of shape (batch, width), padded with pad_id.
            - lengths: LongTensor of shape (batch,), including end of sequence.
        """
        encoded = [self.encode(line) for line in lines]
        if max_len is None:
            max_length = max(len(seq) for seq in encoded)
        else:
            max_length = max_len + 1

        tokens = torch.full((len(encoded), max_length), self.pad_id, dtype=torch.long)
        for i, seq in enumerate(encoded):
            tokens[i, :len(seq)] = torch.tensor(seq, dtype=torch.long)

        lengths = torch.tensor([len(seq) for seq in encoded], dtype=torch.long)
        return tokens, lengths

    def string(self, indices: Union[torch.Tensor, List[int]]) -> str:
        """Render target indices up to (not including) the first end of sequence."""
        if isinstance(indices, torch.Tensor):
            indices = indices.tolist()

        eos = self.target_dict.eos()
        pad = self.target_dict.pad()
        symbols = []
        for idx in indices:
            if idx == eos:
                break
            if idx != pad:
                symbols.append(self.target_dict[idx])
        return ' '.join(symbols)
