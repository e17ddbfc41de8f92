"""
Model Ensemble Interface.

Wraps a fairseq model ensemble behind a single blocking call:

    generate(config, batch, search) -> GenerationOutput(hypos, scores, attns)

Hypotheses of batch element k (0-based) and candidate i live at flat index
``k * beam + i``. Attention matrices are returned as (tgt_len, src_len).
"""

import argparse
import warnings
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import torch


@dataclass
class GenerationOutput:
    """Flat n-best lists for one generated batch."""
    hypos: List[Optional[torch.Tensor]]
    scores: List[Optional[float]]
    attns: List[Optional[torch.Tensor]]
    beam: int

    def nbest(
        self,
        k: int,
        n: int
    ) -> Iterator[Tuple[torch.Tensor, float, Optional[torch.Tensor]]]:
        """Yield up to ``n`` (hypo, score, attention) candidates of element k."""
        base = k * self.beam
        for i in range(min(n, self.beam)):
            if self.hypos[base + i] is None:
                break
            yield self.hypos[base + i], self.scores[base + i], self.attns[base + i]


class EnsembleModel:
    """Ensemble of translation models with a configured search.

    Args:
        models: Loaded fairseq models.
        task: fairseq task owning the dictionaries.
        generator: Search generator built from ``models``.
        source_dict: Source dictionary (defaults to the task's).
        target_dict: Target dictionary (defaults to the task's).
        device: Device for inference.
    """

    def __init__(
        self,
        models,
        task,
        generator,
        source_dict=None,
        target_dict=None,
        device: Optional[torch.device] = None
    ):
        self.models = models
        self.task = task
        self.generator = generator
        self.source_dict = source_dict if source_dict is not None else task.source_dictionary
        self.target_dict = target_dict if target_dict is not None else task.target_dictionary
        self.device = device or torch.device('cuda' if torch.cuda.is_available() else 'cpu')

        # Allowed target indices for the batch being generated
        self._allowed: Optional[List[int]] = None

    def allowed_tokens(self, batch_id: int, prefix: torch.Tensor) -> List[int]:
        """Target indices the search may extend ``prefix`` with."""
        if self._allowed is None:
            return list(range(len(self.target_dict)))
        return self._allowed

    def make_fconv_fast(self, beam: int) -> int:
        """Switch fconv decoders to fast generation.

        Returns:
            Number of fconv models in the ensemble.
        """
        nfconv = 0
        for model in self.models:
            if type(model).__name__ == 'FConvModel':
                model.make_generation_fast_(beamable_mm_beam_size=beam, need_attn=True)
                nfconv += 1

        if nfconv == 0:
            raise RuntimeError('--fconvfast requires an fconv model in the ensemble')
        return nfconv

    @torch.no_grad()
    def generate(
        self,
        config,
        batch: Tuple[torch.Tensor, torch.Tensor],
        search: Optional[torch.Tensor] = None
    ) -> GenerationOutput:
        """Run beam search over a batch.

        Args:
            config: GenerationConfig (beam width).
            batch: Tuple of (src_tokens, src_lengths).
            search: Allowed target indices, or None for the full vocabulary.

        Returns:
            GenerationOutput with ``config.beam`` slots per batch element.
        """
        src_tokens, src_lengths = batch
        sample = {
            'net_input': {
                'src_tokens': src_tokens.to(self.device),
                'src_lengths': src_lengths.to(self.device),
            }
        }

        self._allowed = search.tolist() if search is not None else None
        try:
            results = self.task.inference_step(self.generator, self.models, sample)
        finally:
            self._allowed = None

        hypos, scores, attns = [], [], []
        for sentence_hypos in results:
            for i in range(config.beam):
                if i >= len(sentence_hypos):
                    hypos.append(None)
                    scores.append(None)
                    attns.append(None)
                    continue

                hypo = sentence_hypos[i]
                attention = hypo.get('attention')
                hypos.append(hypo['tokens'].cpu())
                scores.append(float(hypo['score']))
                attns.append(attention.t().float().cpu() if attention is not None else None)

        return GenerationOutput(hypos=hypos, scores=scores, attns=attns, beam=config.beam)

    @classmethod
    def load(cls, config, restrict: bool = False) -> 'EnsembleModel':
        """Load the ensemble named by ``config.path``.

        Args:
            config: GenerationConfig.
            restrict: Build a search that honors per-batch target restrictions.

        Returns:
            Initialized EnsembleModel.
        """
        try:
            from fairseq import checkpoint_utils
            from fairseq.data import Dictionary
        except ImportError as e:
            raise ImportError(
                "fairseq is required to load model ensembles: pip install 'nmtgen[fairseq]'"
            ) from e

        device = torch.device('cuda' if torch.cuda.is_available() else 'cpu')

        models, _, task = checkpoint_utils.load_model_ensemble_and_task(
            config.model_paths,
            arg_overrides={'data': config.datadir}
        )
        for model in models:
            model.to(device)
            model.eval()

        source_dict = Dictionary.load(config.sourcedict) if config.sourcedict else None
        target_dict = Dictionary.load(config.targetdict) if config.targetdict else None

        if config.subwordpen:
            warnings.warn("Subword penalty is not supported by the search backend; ignoring --subwordpen")
        if config.covpen:
            warnings.warn("Coverage penalty is not supported by the search backend; ignoring --covpen")

        ensemble = cls(models, task, None, source_dict=source_dict,
                       target_dict=target_dict, device=device)

        if config.fconvfast:
            ensemble.make_fconv_fast(config.beam)

        ensemble.generator = task.build_generator(
            models,
            search_args(config),
            prefix_allowed_tokens_fn=ensemble.allowed_tokens if restrict else None
        )

        return ensemble


def search_args(config):
    """Search options in the form ``build_generator`` reads them."""
    return argparse.Namespace(
        beam=config.beam,
        lenpen=config.lenpen,
        unkpen=config.unkpen,
        min_len=config.minlen,
        max_len_a=0,
        max_len_b=config.maxlen,
    )
