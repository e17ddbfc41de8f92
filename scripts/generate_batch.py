#!/usr/bin/env python3
"""
Batch Hypothesis Generation.

Translates a source file in fixed-size batches and writes the scored
n-best hypotheses of every sentence to <sourcepath>.output:

    <space-joined tokens><TAB><score with 6 decimals>

Lines longer than --maxsourcelen tokens are skipped. Prints start/end
timestamps, elapsed time and throughput (lines per second).

Usage:
    python scripts/generate_batch.py --path model.pt --sourcepath test.txt --unkaligndict unk.json
    python scripts/generate_batch.py --path a.pt,b.pt --sourcepath test.txt --batchsize 16 --beam 10 --nbest 5
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from nmtgen.config import GenerationConfig, add_generation_args, required_files
from nmtgen.generate import build_translator
from nmtgen.output import HypothesisWriter, output_path_for


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate scored n-best hypotheses in batches")
    add_generation_args(parser, batch=True)

    args = parser.parse_args(argv)

    try:
        config = GenerationConfig.from_args(args)
    except AssertionError as e:
        parser.error(str(e))

    missing = [f for f in required_files(config) if not Path(f).exists()]
    if not Path(args.sourcepath).exists():
        missing.append(args.sourcepath)
    if missing:
        parser.error(f"File(s) not found: {', '.join(missing)}")

    return args


def main():
    args = parse_args()
    config = GenerationConfig.from_args(args)

    translator = build_translator(config)

    output_path = output_path_for(config.sourcepath)
    with HypothesisWriter(output_path) as writer, \
            open(config.sourcepath, 'r', encoding='utf-8') as f:
        translator.translate_batches(f, writer)

    print(f"Hypotheses saved to {output_path}")


if __name__ == "__main__":
    main()
