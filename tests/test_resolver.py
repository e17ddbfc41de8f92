"""
Unit tests for unknown-token resolution.

Tests cover:
- Copying and dictionary replacement for in-range attention
- End-of-sentence attention at first and later positions
- Out-of-range attention diagnostics
- Length preservation, passthrough and offset handling
- Attention maxima from raw attention matrices
"""

import io
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import torch

from nmtgen.resolver import (
    ResolverConfig,
    UnknownResolver,
    attention_maxima,
    resolve_unknowns,
)

UNK = "<unk>"


class TestResolveUnknowns(unittest.TestCase):
    """Test the substitution policy."""

    def test_in_range_copy(self):
        """An unknown attending a source token copies it."""
        resolved = resolve_unknowns(
            ["x", UNK, "y"], ["a", "b", "c"], [1, 2, 3, 4], offset=0, marker=UNK
        )
        self.assertEqual(resolved, ["x", "b", "y"])

    def test_alignment_dictionary_override(self):
        """Dictionary entries replace the copied source token."""
        resolved = resolve_unknowns(
            ["x", UNK, "y"], ["a", "b", "c"], [1, 2, 3, 4],
            marker=UNK, align_dict={"b": "bee"}
        )
        self.assertEqual(resolved[1], "bee")

    def test_dictionary_miss_copies_source(self):
        resolved = resolve_unknowns(
            [UNK], ["a", "b"], [2, 3], marker=UNK, align_dict={"a": "ay"}
        )
        self.assertEqual(resolved, ["b"])

    def test_end_of_sentence_first_position_copies_head(self):
        """Leading unknown attending end of sentence copies the first source token."""
        resolved = resolve_unknowns([UNK, "y"], ["a", "b"], [3, 1, 3], marker=UNK)
        self.assertEqual(resolved[0], "a")

    def test_end_of_sentence_later_position_deletes(self):
        """Later unknown attending end of sentence becomes empty."""
        resolved = resolve_unknowns(["x", UNK], ["a", "b"], [1, 3, 3], marker=UNK)
        self.assertEqual(resolved, ["x", ""])

    def test_end_of_sentence_empty_source(self):
        resolved = resolve_unknowns([UNK], [], [1], marker=UNK)
        self.assertEqual(resolved, [""])

    def test_out_of_range_leaves_marker_and_reports(self):
        """Out-of-range attention keeps the marker and writes one diagnostic."""
        err = io.StringIO()
        resolved = resolve_unknowns(
            ["x", UNK], ["a", "b"], [1, 10, 3], marker=UNK, sentence=4, err=err
        )

        self.assertEqual(resolved[1], UNK)
        lines = err.getvalue().splitlines()
        self.assertEqual(lines, ["Sentence 4: attention index out of bound: 10"])

    def test_below_range_reports(self):
        err = io.StringIO()
        resolved = resolve_unknowns([UNK], ["a"], [1, 2], offset=-1, marker=UNK, err=err)

        self.assertEqual(resolved, [UNK])
        self.assertIn("attention index out of bound: 0", err.getvalue())

    def test_length_preserved(self):
        """Resolution never inserts or removes positions."""
        hypothesis = [UNK, "x", UNK, UNK, "y", UNK]
        source = ["a", "b", "c"]
        attention = [4, 1, 2, 4, 9, 0, 4]

        resolved = resolve_unknowns(hypothesis, source, attention, marker=UNK, err=io.StringIO())

        self.assertEqual(len(resolved), len(hypothesis))
        self.assertEqual(resolved, ["a", "x", "b", "", "y", UNK])

    def test_non_marker_passthrough(self):
        hypothesis = ["x", UNK, "y", "z"]
        resolved = resolve_unknowns(hypothesis, ["a", "b"], [9, 1, 9, 9], marker=UNK)

        for j, token in enumerate(hypothesis):
            if token != UNK:
                self.assertEqual(resolved[j], token)

    def test_input_not_mutated(self):
        hypothesis = ["x", UNK]
        resolve_unknowns(hypothesis, ["a"], [1, 1], marker=UNK)
        self.assertEqual(hypothesis, ["x", UNK])

    def test_offset_is_additive(self):
        """Shifting indices by +k and offset by -k gives identical output."""
        hypothesis = [UNK, "x", UNK, UNK]
        source = ["a", "b", "c"]
        attention = [2, 1, 4, 3, 1]

        expected = resolve_unknowns(hypothesis, source, attention, offset=0, marker=UNK)
        for k in (-3, -1, 1, 5):
            shifted = [a + k for a in attention]
            resolved = resolve_unknowns(hypothesis, source, shifted, offset=-k, marker=UNK)
            self.assertEqual(resolved, expected)

    def test_passthrough_idempotent(self):
        """Hypotheses without markers come back unchanged."""
        hypothesis = ["a", "b", "c"]
        err = io.StringIO()
        for attention in ([0, 0, 0], [100, 100, 100], [1, 2, 3]):
            resolved = resolve_unknowns(hypothesis, ["s"], attention, marker=UNK, err=err)
            self.assertEqual(resolved, hypothesis)
        self.assertEqual(err.getvalue(), "")

    def test_custom_marker(self):
        resolved = resolve_unknowns(["UNK", "<unk>"], ["a", "b"], [2, 1, 3], marker="UNK")
        self.assertEqual(resolved, ["b", "<unk>"])

    def test_only_hypothesis_positions_consulted(self):
        """The trailing end-of-sequence attention entry is ignored."""
        resolved = resolve_unknowns([UNK], ["a", "b"], [1, 99], marker=UNK, err=io.StringIO())
        self.assertEqual(resolved, ["a"])


class TestAttentionMaxima(unittest.TestCase):
    """Test attention argmax extraction."""

    def test_one_based_argmax(self):
        attention = torch.tensor([
            [0.7, 0.2, 0.1],
            [0.1, 0.1, 0.8],
            [0.3, 0.6, 0.1],
        ])
        self.assertEqual(attention_maxima(attention), [1, 3, 2])

    def test_rejects_wrong_shape(self):
        with self.assertRaises(ValueError):
            attention_maxima(torch.zeros(2, 3, 4))


class TestUnknownResolver(unittest.TestCase):
    """Test resolution against raw attention matrices."""

    def test_resolve_with_attention_matrix(self):
        config = ResolverConfig(marker=UNK, offset=0, align_dict={"b": "bee"})
        resolver = UnknownResolver(config)

        # rows: "x", <unk>, </s>; columns: a, b, </s>
        attention = torch.tensor([
            [0.9, 0.05, 0.05],
            [0.1, 0.8, 0.1],
            [0.1, 0.1, 0.8],
        ])

        resolved = resolver.resolve(["x", UNK], ["a", "b"], attention)
        self.assertEqual(resolved, ["x", "bee"])

    def test_offset_from_config(self):
        resolver = UnknownResolver(ResolverConfig(marker=UNK, offset=1))
        attention = torch.tensor([[1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])

        self.assertEqual(resolver.resolve([UNK], ["a", "b"], attention), ["b"])

    def test_no_markers_skips_attention(self):
        resolver = UnknownResolver(ResolverConfig())
        self.assertEqual(resolver.resolve(["x", "y"], ["a"], None), ["x", "y"])

    def test_missing_attention_with_markers(self):
        resolver = UnknownResolver(ResolverConfig())
        with self.assertRaises(RuntimeError):
            resolver.resolve([UNK], ["a"], None)

    def test_diagnostics_to_configured_stream(self):
        err = io.StringIO()
        resolver = UnknownResolver(ResolverConfig(offset=5), err=err)
        attention = torch.tensor([[1.0, 0.0], [0.0, 1.0]])

        resolved = resolver.resolve([UNK], ["a"], attention, sentence=2)

        self.assertEqual(resolved, [UNK])
        self.assertEqual(err.getvalue(), "Sentence 2: attention index out of bound: 6\n")


if __name__ == '__main__':
    unittest.main()
