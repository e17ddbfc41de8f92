"""N-best output file for batch generation."""

from pathlib import Path
from typing import Sequence, Union


def output_path_for(sourcepath: Union[str, Path]) -> Path:
    """Output file written next to the source file."""
    return Path(f"{sourcepath}.output")


def format_hypothesis(tokens: Sequence[str], score: float) -> str:
    """Render one n-best line: tokens, a tab, the score to 6 decimals."""
    return f"{' '.join(tokens)}\t{float(score):.6f}\n"


class HypothesisWriter:
    """Appends scored hypotheses to a single output file.

    The file is opened once on construction and stays open until
    ``close()`` (or the end of a ``with`` block).

    Args:
        path: Output file path.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.file = open(self.path, 'w', encoding='utf-8')
        self.lines_written = 0

    def write(self, tokens: Sequence[str], score: float):
        self.file.write(format_hypothesis(tokens, score))
        self.lines_written += 1

    def close(self):
        if not self.file.closed:
            self.file.close()

    def __enter__(self) -> 'HypothesisWriter':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
