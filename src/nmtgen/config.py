"""
Generation Configuration Module.

Defines all settings for the generation drivers.
Uses frozen dataclasses so one parsed configuration is passed explicitly
to every component instead of being read from shared state.
"""

import argparse
import json
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Mapping, Optional, List, Tuple

from .resolver import ResolverConfig


@dataclass(frozen=True)
class GenerationConfig:
    """Settings shared by the line-by-line and batch drivers.

    Penalty semantics follow the search backend:
        lenpen < 1.0 favors shorter, > 1.0 longer hypotheses
        unkpen < 0 produces more, > 0 fewer unknown words
    """

    # Models
    path: str = "model1.pt,model2.pt"
    datadir: str = "data-bin"
    fconvfast: bool = False

    # Search
    beam: int = 1
    lenpen: float = 1.0
    unkpen: float = 0.0
    subwordpen: float = 0.0
    covpen: float = 0.0
    nbest: int = 1
    minlen: int = 1
    maxlen: int = 500

    # Input
    input: str = "-"
    sourcepath: str = ""
    maxsourcelen: int = 50
    batchsize: int = 5

    # Dictionaries
    sourcedict: str = ""
    targetdict: str = ""
    vocab: str = ""

    # Alignment-based target vocabulary
    aligndictpath: str = ""
    nmostcommon: int = 500
    topnalign: int = 100
    freqthreshold: int = -1

    # Unknown-word replacement
    unkaligndict: str = ""
    unkmarker: str = "<unk>"
    offset: int = 0

    # Visualization (host:port)
    visdom: str = ""

    # Output
    quiet: bool = False

    def __post_init__(self):
        """Validate configuration."""
        assert self.beam > 0, f"beam ({self.beam}) must be positive"
        assert self.nbest > 0, f"nbest ({self.nbest}) must be positive"
        assert self.batchsize > 0, f"batchsize ({self.batchsize}) must be positive"
        assert self.minlen <= self.maxlen, \
            f"minlen ({self.minlen}) must not exceed maxlen ({self.maxlen})"

    @property
    def model_paths(self) -> List[str]:
        """Checkpoint paths of the ensemble."""
        return [p for p in self.path.split(',') if p]

    @property
    def candidates(self) -> int:
        """Hypotheses emitted per sentence."""
        return min(self.nbest, self.beam)

    def visdom_endpoint(self) -> Optional[Tuple[str, int]]:
        """Parse the visdom ``host:port`` setting."""
        if not self.visdom:
            return None
        host, sep, port = self.visdom.rpartition(':')
        if not sep or not host or not port.isdigit():
            raise ValueError(f"Expected visdom endpoint as host:port, got {self.visdom!r}")
        return host, int(port)

    def resolver_config(self, align_dict: Optional[Mapping[str, str]] = None) -> ResolverConfig:
        """Unknown-word replacement settings."""
        return ResolverConfig(
            marker=self.unkmarker,
            offset=self.offset,
            align_dict=dict(align_dict or {})
        )

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "GenerationConfig":
        """Build from parsed options, ignoring unrelated attributes."""
        values = {f.name: getattr(args, f.name) for f in fields(cls) if hasattr(args, f.name)}
        return cls(**values)

    def save(self, path: Path):
        """Save configuration to JSON file."""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Path) -> "GenerationConfig":
        """Load configuration from JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            return cls(**json.load(f))


def add_generation_args(parser: argparse.ArgumentParser, batch: bool = False):
    """Register the options shared by both drivers.

    Args:
        parser: Parser to extend.
        batch: Use the batch driver's defaults and add its options.
    """
    # Models
    parser.add_argument("--path", type=str, default="model1.pt,model2.pt",
                       help="Comma-separated path(s) to saved model(s)")
    parser.add_argument("--datadir", type=str, default="data-bin",
                       help="Data directory holding the task dictionaries")
    parser.add_argument("--fconvfast", action="store_true",
                       help="Make fconv models faster")

    # Search
    parser.add_argument("--beam", type=int, default=10 if batch else 1,
                       help="Search beam width")
    parser.add_argument("--lenpen", type=float, default=1.0,
                       help="Length penalty: <1.0 favors shorter, >1.0 favors longer sentences")
    parser.add_argument("--unkpen", type=float, default=0.0,
                       help="Unknown word penalty: <0 produces more, >0 produces less unknown words")
    parser.add_argument("--subwordpen", type=float, default=0.0,
                       help="Subword penalty: <0 favors longer, >0 favors shorter words")
    parser.add_argument("--covpen", type=float, default=0.0,
                       help="Coverage penalty: favor hypotheses that cover all source tokens")
    parser.add_argument("--nbest", type=int, default=5 if batch else 1,
                       help="Number of candidate hypotheses")
    parser.add_argument("--minlen", type=int, default=1,
                       help="Minimum length of generated hypotheses")
    parser.add_argument("--maxlen", type=int, default=500,
                       help="Maximum length of generated hypotheses")

    # Input
    if batch:
        parser.add_argument("--sourcepath", type=str, required=True,
                           help="Source file path; output goes to <sourcepath>.output")
        parser.add_argument("--maxsourcelen", type=int, default=50,
                           help="Maximum length of source sentences")
        parser.add_argument("--batchsize", type=int, default=5,
                           help="Number of source sentences per batch")
        parser.add_argument("--quiet", action="store_true",
                           help="Disable the progress bar")
    else:
        parser.add_argument("--input", type=str, default="-",
                           help="Source language input text file ('-' for stdin)")

    # Dictionaries
    parser.add_argument("--sourcedict", type=str, default="",
                       help="Source language dictionary (default: from --datadir)")
    parser.add_argument("--targetdict", type=str, default="",
                       help="Target language dictionary (default: from --datadir)")
    parser.add_argument("--vocab", type=str, default="",
                       help="Restrict output to target vocab")
    parser.add_argument("--visdom", type=str, default="",
                       help="Visualize attention with visdom (host:port)")

    # Alignment
    parser.add_argument("--aligndictpath", type=str, default="",
                       help="Path prefix of an indexed alignment dictionary (optional)")
    parser.add_argument("--nmostcommon", type=int, default=500,
                       help="Number of most common words to keep when using alignment")
    parser.add_argument("--topnalign", type=int, default=100,
                       help="Number of the most common alignments to use")
    parser.add_argument("--freqthreshold", type=int, default=-1,
                       help="Minimum frequency for an alignment candidate "
                            "to be considered (default no limit)")

    # Unknown words
    parser.add_argument("--unkaligndict", type=str, default="",
                       help="Path to unknown-word alignment dictionary (.json or torch file)")
    parser.add_argument("--unkmarker", type=str, default="<unk>",
                       help="Unknown word marker")
    parser.add_argument("--offset", type=int, default=0,
                       help="Apply offset to attention maxima")

    return parser


def required_files(config: GenerationConfig) -> List[str]:
    """Files that must exist before any input is processed."""
    files = list(config.model_paths)
    for name in ("sourcedict", "targetdict", "vocab", "unkaligndict"):
        value = getattr(config, name)
        if value:
            files.append(value)
    if config.aligndictpath:
        files.append(f"{config.aligndictpath}.idx")
        files.append(f"{config.aligndictpath}.bin")
    return files
