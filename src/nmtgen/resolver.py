"""
Unknown-Token Resolution.

Replaces unknown-word markers in generated hypotheses using the attention
alignment of each target position:
- In-range attention copies the attended source token, or its entry in
  the alignment dictionary
- Attention on the source end-of-sentence position copies the first
  source token at hypothesis position 1 and deletes the token elsewhere
- Out-of-range attention leaves the marker and reports the index
"""

import sys
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, TextIO

import torch


@dataclass(frozen=True)
class ResolverConfig:
    """Settings for unknown-token resolution.

    Attributes:
        marker: Exact token string of the unknown-word placeholder.
        offset: Constant added to every attention index.
        align_dict: Source token -> replacement string.
    """

    marker: str = "<unk>"
    offset: int = 0
    align_dict: Mapping[str, str] = field(default_factory=dict)


def attention_maxima(attention: torch.Tensor) -> List[int]:
    """1-based source position of maximum attention per target position.

    Args:
        attention: Attention weights of shape (tgt_len, src_len).

    Returns:
        One index in [1, src_len] per target position. The last entry
        belongs to the end-of-sequence token.
    """
    if attention.dim() != 2:
        raise ValueError(
            f"Expected attention of shape (tgt_len, src_len), got {tuple(attention.shape)}"
        )
    return (attention.argmax(dim=1) + 1).tolist()


def resolve_unknowns(
    hypothesis: Sequence[str],
    source: Sequence[str],
    attention: Sequence[int],
    offset: int = 0,
    marker: str = "<unk>",
    align_dict: Optional[Mapping[str, str]] = None,
    sentence: int = 1,
    err: Optional[TextIO] = None
) -> List[str]:
    """Substitute unknown-word markers in a hypothesis.

    Args:
        hypothesis: Hypothesis tokens, truncated at end of sequence.
        source: Source tokens.
        attention: 1-based attention maxima, at least one per hypothesis token.
        offset: Added to every consulted attention index.
        marker: Unknown-word placeholder.
        align_dict: Replacement for copied source tokens.
        sentence: Hypothesis ordinal used in diagnostics.
        err: Stream for diagnostics (stderr if None).

    Returns:
        New token list of the same length as ``hypothesis``.
    """
    align_dict = align_dict or {}
    if err is None:
        err = sys.stderr
    eos_position = len(source) + 1

    resolved = list(hypothesis)
    for j, token in enumerate(hypothesis):
        if token != marker:
            continue

        attn = attention[j] + offset
        if attn == eos_position:
            # Leading unknowns fall back to the first source token
            if j == 0 and source:
                resolved[j] = source[0]
            else:
                resolved[j] = ''
        elif attn < 1 or attn > eos_position:
            err.write(f"Sentence {sentence}: attention index out of bound: {attn}\n")
        else:
            stok = source[attn - 1]
            resolved[j] = align_dict.get(stok, stok)

    return resolved


class UnknownResolver:
    """Resolves hypotheses against raw attention matrices.

    Args:
        config: Marker, offset and alignment dictionary.
        err: Diagnostic stream (stderr if None).
    """

    def __init__(self, config: ResolverConfig, err: Optional[TextIO] = None):
        self.config = config
        self.err = err

    def resolve(
        self,
        hypothesis: Sequence[str],
        source: Sequence[str],
        attention: Optional[torch.Tensor],
        sentence: int = 1
    ) -> List[str]:
        """Resolve one hypothesis given its (tgt_len, src_len) attention."""
        if self.config.marker not in hypothesis:
            return list(hypothesis)
        if attention is None:
            raise RuntimeError(
                "Model returned no attention; unknown words cannot be resolved"
            )

        return resolve_unknowns(
            hypothesis,
            source,
            attention_maxima(attention),
            offset=self.config.offset,
            marker=self.config.marker,
            align_dict=self.config.align_dict,
            sentence=sentence,
            err=self.err
        )
