#!/usr/bin/env python3
"""
Line-by-Line Hypothesis Generation.

Reads a text file line by line and prints the n-best hypotheses of each
line with unknown words replaced. Runs interactively (with a "> " prompt)
when reading from a terminal.

Usage:
    python scripts/generate_lines.py --path model.pt --datadir data-bin --unkaligndict unk.json
    python scripts/generate_lines.py --path a.pt,b.pt --beam 5 --nbest 2 --input test.txt
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from nmtgen.config import GenerationConfig, add_generation_args, required_files
from nmtgen.generate import build_translator, read_lines


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate hypotheses line by line (interactive by default)"
    )
    add_generation_args(parser, batch=False)

    args = parser.parse_args(argv)

    try:
        config = GenerationConfig.from_args(args)
    except AssertionError as e:
        parser.error(str(e))

    missing = [f for f in required_files(config) if not Path(f).exists()]
    if args.input != '-' and not Path(args.input).exists():
        missing.append(args.input)
    if missing:
        parser.error(f"File(s) not found: {', '.join(missing)}")

    return args


def main():
    args = parse_args()
    config = GenerationConfig.from_args(args)

    translator = build_translator(config)

    if config.input == '-':
        translator.translate_lines(read_lines(sys.stdin))
    else:
        with open(config.input, 'r', encoding='utf-8') as f:
            translator.translate_lines(read_lines(f))


if __name__ == "__main__":
    main()
