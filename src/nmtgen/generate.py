"""
Hypothesis Generation Drivers.

Runs the model ensemble over source text and post-processes every
hypothesis with unknown-word replacement:
- Line mode: one sentence at a time, n-best printed to stdout
- Batch mode: filtered fixed-size batches, scored n-best written to
  ``<sourcepath>.output`` with timing and throughput logs
"""

import sys
import time
from typing import Iterable, Iterator, List, Optional, TextIO, Tuple

import torch
from tqdm import tqdm

from .alignment import (
    IndexedAlignmentDataset,
    clamp_nmostcommon,
    load_unk_align_dict,
    target_vocab_from_alignment,
)
from .batching import LineBatcher
from .config import GenerationConfig
from .ensemble import EnsembleModel
from .output import HypothesisWriter
from .resolver import UnknownResolver
from .visualize import AttentionVisualizer
from .vocab import SourceEncoder, load_vocab_restriction, restricted_indices


class Translator:
    """Generates and post-processes n-best hypotheses.

    Args:
        model: Object with ``generate(config, batch, search)``, plus
            ``source_dict`` and ``target_dict``.
        config: Generation settings.
        resolver: Unknown-word resolver.
        vocab: Allowed target indices from a restricted vocabulary.
        aligndict: Indexed alignment dataset for target vocab selection.
        visualizer: Attention visualizer for the best hypothesis.
        out: Stream for printed output (stdout if None).
    """

    def __init__(
        self,
        model,
        config: GenerationConfig,
        resolver: UnknownResolver,
        vocab: Optional[torch.Tensor] = None,
        aligndict: Optional[IndexedAlignmentDataset] = None,
        visualizer: Optional[AttentionVisualizer] = None,
        out: Optional[TextIO] = None
    ):
        self.model = model
        self.config = config
        self.resolver = resolver
        self.vocab = vocab
        self.aligndict = aligndict
        self.visualizer = visualizer
        self.out = out

        self.encoder = SourceEncoder(model.source_dict, model.target_dict)
        self.nmostcommon = clamp_nmostcommon(
            config.nmostcommon, model.target_dict.nspecial, len(model.target_dict)
        )

    def _print(self, *args, **kwargs):
        print(*args, file=self.out or sys.stdout, **kwargs)

    def restriction(self, src_tokens: torch.Tensor) -> Optional[torch.Tensor]:
        """Allowed target indices for a batch, or None if unrestricted."""
        allowed = self.vocab

        if self.aligndict is not None:
            align_vocab = target_vocab_from_alignment(
                src_tokens,
                self.aligndict,
                nmostcommon=self.nmostcommon,
                topnalign=self.config.topnalign,
                freqthreshold=self.config.freqthreshold,
                exclude=(self.encoder.pad_id, self.encoder.eos_id)
            )
            if allowed is None:
                allowed = align_vocab
            else:
                allowed = align_vocab[torch.isin(align_vocab, allowed)]

        return allowed

    def translate(
        self,
        lines: List[str],
        max_len: Optional[int] = None
    ) -> List[List[Tuple[List[str], float]]]:
        """Generate and resolve n-best hypotheses for a batch of lines.

        Args:
            lines: Source lines.
            max_len: Largest whitespace token count of ``lines`` (computed
                if None), sets the padded source width.

        Returns:
            For each line, up to ``min(nbest, beam)`` (tokens, score) pairs.
        """
        batch = self.encoder.encode_batch(lines, max_len)
        output = self.model.generate(self.config, batch, self.restriction(batch[0]))

        results = []
        for k, line in enumerate(lines):
            source = line.split()
            candidates = []
            for i, (hypo, score, attention) in enumerate(
                output.nbest(k, self.config.candidates), 1
            ):
                tokens = self.encoder.string(hypo).split()

                if self.visualizer is not None and i == 1 and attention is not None:
                    self.visualizer.show(source, tokens, attention)

                resolved = self.resolver.resolve(
                    tokens, source, attention, sentence=k * self.config.beam + i
                )
                candidates.append((resolved, score))
            results.append(candidates)

        return results

    def translate_lines(self, lines: Iterable[str]):
        """Line mode: print ``H：<tokens>`` for each candidate of each line."""
        for line in lines:
            for tokens, _ in self.translate([line])[0]:
                self._print('H：', ' '.join(tokens), sep='\t')
            (self.out or sys.stdout).flush()

    def translate_batches(
        self,
        lines: Iterable[str],
        writer: HypothesisWriter
    ) -> LineBatcher:
        """Batch mode: write scored n-best lines for every kept source line.

        Returns:
            The batcher, holding kept and skipped line counts.
        """
        batcher = LineBatcher(self.config.batchsize, self.config.maxsourcelen)

        self._print(f"[{time.ctime()}] Starting!")
        start = time.time()

        for batch in tqdm(batcher(lines), desc="Generating", unit="batch",
                          disable=self.config.quiet):
            for candidates in self.translate(batch.lines, batch.max_len):
                for tokens, score in candidates:
                    writer.write(tokens, score)
            self._print(f"Spent time {time.time() - start} seconds!")

        elapsed = time.time() - start
        self._print(f"[{time.ctime()}] Ending!")
        self._print(f"Spent time {elapsed} seconds!")
        self._print(f"QPS: {batcher.count / elapsed if elapsed > 0 else 0.0}")
        if batcher.skipped:
            self._print(f"Skipped {batcher.skipped} lines longer than "
                        f"{self.config.maxsourcelen} tokens")

        return batcher


def read_lines(stream: TextIO, prompt: Optional[TextIO] = None) -> Iterator[str]:
    """Yield lines without newlines, prompting with ``> `` on a terminal."""
    prompt = prompt or sys.stdout
    while True:
        if stream.isatty():
            prompt.write('> ')
            prompt.flush()
        line = stream.readline()
        if not line:
            break
        yield line.rstrip('\n')


def build_translator(config: GenerationConfig, out: Optional[TextIO] = None) -> Translator:
    """Load models, dictionaries and alignment data named by ``config``."""
    out = out or sys.stdout
    restrict = bool(config.vocab or config.aligndictpath)
    endpoint = config.visdom_endpoint()
    align_dict = load_unk_align_dict(config.unkaligndict)

    model = EnsembleModel.load(config, restrict=restrict)
    print(f"| [target] Dictionary: {len(model.target_dict)} types", file=out)
    print(f"| [source] Dictionary: {len(model.source_dict)} types", file=out)

    aligndict = IndexedAlignmentDataset(config.aligndictpath) if config.aligndictpath else None

    vocab = None
    if config.vocab:
        vocab = restricted_indices(model.target_dict, load_vocab_restriction(config.vocab))

    visualizer = None
    if endpoint is not None:
        visualizer = AttentionVisualizer(*endpoint)

    resolver = UnknownResolver(config.resolver_config(align_dict))

    return Translator(
        model,
        config,
        resolver,
        vocab=vocab,
        aligndict=aligndict,
        visualizer=visualizer,
        out=out
    )
