#!/usr/bin/env python3
"""
Copyright (c) 2025, Josh Walker

Redistribution and use in source and binary forms, with or without
modification, are permitted provided that the following conditions are met:

1. Redistributions of source code must retain the above copyright notice, this
   list of conditions and the following disclaimer.

2. Redistributions in binary form must reproduce the above copyright notice,
   this list of conditions and the following disclaimer in the documentation
   and/or other materials provided with the distribution.

THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

Command line interface: edit distance between two FASTA files.
"""

import argparse
import logging
import pathlib
import sys
import time

from . import (
    DEFAULT_CACHE_SIZE,
    DEFAULT_THRESHOLD,
    METHODS,
    TuningParams,
    distance_bounds,
    edit_distance,
)


def read_fasta(path):
    """
    Read the first record of a FASTA file.

    Header lines start with '>'. Sequence lines are joined with their line
    terminators removed; every other character is kept as-is so the engines
    can skip non-bases themselves. A file without a header is read as raw
    sequence text.

    Args:
        path: Path to the file

    Returns:
        str: Sequence of the first record (empty if there is none)
    """
    chunks = []
    seen_header = False
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            if line.startswith(">"):
                if seen_header:
                    break
                seen_header = True
                continue
            chunks.append(line.rstrip("\r\n"))
    return "".join(chunks)


def _build_parser():
    parser = argparse.ArgumentParser(
        prog="nw-distance",
        description="Needleman-Wunsch edit distance between two DNA sequences",
    )
    parser.add_argument("seq1", help="FASTA file of the first sequence")
    parser.add_argument("seq2", help="FASTA file of the second sequence")
    parser.add_argument("--method", choices=[*METHODS, "all"], default="iterative")
    parser.add_argument("--cache-size", type=int, default=DEFAULT_CACHE_SIZE,
                        help="Cache budget in bytes for the cache-aware engine")
    parser.add_argument("--threshold", type=int, default=DEFAULT_THRESHOLD,
                        help="Leaf size in columns for the cache-oblivious engine")
    parser.add_argument("--bounds", action="store_true",
                        help="Also print edlib unit-cost bounds")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true")
    verbosity.add_argument("-q", "--quiet", action="store_true",
                           help="Do not report skipped non-base characters")
    return parser


def _configure_logging(verbose, quiet):
    log = logging.getLogger("nw_distance")
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
        log.addHandler(handler)
    if quiet:
        log.setLevel(logging.ERROR)
    elif verbose:
        log.setLevel(logging.DEBUG)
    else:
        log.setLevel(logging.INFO)
    return log


def main(argv=None):
    parser = _build_parser()
    args = parser.parse_args(argv)
    log = _configure_logging(args.verbose, args.quiet)

    try:
        tuning_params = TuningParams(cache_size=args.cache_size, threshold=args.threshold)
    except ValueError as e:
        parser.error(str(e))

    sequences = []
    for name in (args.seq1, args.seq2):
        try:
            sequences.append(read_fasta(pathlib.Path(name)))
        except (OSError, UnicodeDecodeError) as e:
            parser.error(f"cannot read {name}: {e}")
    seq1, seq2 = sequences
    log.debug("Loaded sequences of length %d and %d", len(seq1), len(seq2))

    methods = list(METHODS) if args.method == "all" else [args.method]
    distances = set()
    for method in methods:
        started = time.perf_counter()
        distance = edit_distance(seq1, seq2, method=method, tuning_params=tuning_params)
        elapsed = time.perf_counter() - started
        distances.add(distance)
        print(f"{method}\t{distance}\t{elapsed:.6f}")

    if args.bounds:
        bounds = distance_bounds(seq1, seq2)
        print(f"bounds\t{bounds.lower}\t{bounds.upper}")

    if len(distances) > 1:
        log.error("Engines disagree: %s", sorted(distances))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
