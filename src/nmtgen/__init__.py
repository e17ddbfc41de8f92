"""
Hypothesis Generation with Unknown-Word Replacement.

Command-line generation around a translation model ensemble, with
attention-guided replacement of unknown words.

Modules:
    - resolver: unknown-token resolution from attention maxima
    - ensemble: model ensemble and search backend
    - generate: line-by-line and batch drivers
    - batching: source-line filtering and batching
    - output: scored n-best output file
    - alignment: alignment dictionaries and target vocab selection
    - vocab: dictionary helpers and restricted vocabularies
"""

from .config import GenerationConfig
from .resolver import ResolverConfig, UnknownResolver, resolve_unknowns, attention_maxima

__version__ = "1.0.0"
__all__ = [
    "GenerationConfig",
    "ResolverConfig",
    "UnknownResolver",
    "resolve_unknowns",
    "attention_maxima",
]
