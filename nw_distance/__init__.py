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

Needleman-Wunsch Edit Distance for DNA Sequences

This module computes the global edit distance between two nucleotide
sequences under a fixed cost model:

- substitution of two different known bases costs 1
- substitution involving an unknown base (N or any IUPAC ambiguity code) costs 1
- insertion or deletion of a base costs 2
- characters that are not bases (gaps, digits, punctuation) are skipped for free

The same recurrence is evaluated four ways: top-down with a memoization table,
bottom-up with a single row, blocked to fit a cache budget, and by recursive
bisection of the column range (cache-oblivious). All four return the same value.
"""

import edlib
import logging
from dataclasses import dataclass

logger = logging.getLogger("nw_distance")

# Operation costs
SUBSTITUTION_COST = 1           # Two different known bases
SUBSTITUTION_UNKNOWN_COST = 1   # Either base unknown, whatever the other one is
INSERTION_COST = 2              # Insertion or deletion of one base

# Marks memo cells not evaluated yet (never a legal distance)
NOT_YET_COMPUTED = -1

# Cache-aware blocking: CACHE_ARRAYS live arrays of the block width must fit the budget
CACHE_ARRAYS = 5
ELEMENT_SIZE = 8                # Bytes per stored distance

DEFAULT_CACHE_SIZE = 32768      # Typical L1 data cache, in bytes
DEFAULT_THRESHOLD = 64          # Columns per cache-oblivious leaf

UNKNOWN_BASE = 'N'

# IUPAC nucleotide codes
IUPAC_CODES = {
    'A': {'A'},
    'T': {'T'},
    'C': {'C'},
    'G': {'G'},
    'U': {'T'},           # RNA uracil read as thymine
    'R': {'A', 'G'},      # puRine
    'Y': {'C', 'T'},      # pYrimidine
    'S': {'G', 'C'},      # Strong (3 H bonds)
    'W': {'A', 'T'},      # Weak (2 H bonds)
    'K': {'G', 'T'},      # Keto
    'M': {'A', 'C'},      # aMino
    'B': {'C', 'G', 'T'}, # not A
    'D': {'A', 'G', 'T'}, # not C
    'H': {'A', 'C', 'T'}, # not G
    'V': {'A', 'C', 'G'}, # not T
    'N': {'A', 'C', 'G', 'T'}, # aNy
}

# Character -> canonical base symbol, filled by init_base_match()
_BASE_MATCH = {}


@dataclass(frozen=True)
class TuningParams:
    """
    Tuning parameters for the cache-aware and cache-oblivious engines.

    Neither parameter changes the computed distance, only the memory access pattern.

    Attributes:
        cache_size: Cache budget in bytes for the cache-aware engine. The block width
                    is cache_size // (CACHE_ARRAYS * ELEMENT_SIZE), at least 1.
        threshold: Largest column range the cache-oblivious engine evaluates
                   without splitting it further.
    """
    cache_size: int = DEFAULT_CACHE_SIZE    # Bytes
    threshold: int = DEFAULT_THRESHOLD      # Columns

    def __post_init__(self):
        """Validate that both parameters are positive integers."""
        _check_positive('cache_size', self.cache_size)
        _check_positive('threshold', self.threshold)


@dataclass(frozen=True)
class OrientationContext:
    """The two sequences of one call, longest first.

    Fields:
        x: Longest sequence
        m: Length of x
        y: Shortest sequence
        n: Length of y, n <= m
    """
    x: object
    m: int
    y: object
    n: int


@dataclass(frozen=True)
class DistanceBounds:
    """Cheap bounds on the edit distance derived from the unit-cost distance.

    Fields:
        levenshtein: Unit-cost global edit distance of the base-only sequences
        lower: Lower bound on the edit distance
        upper: Upper bound on the edit distance
    """
    levenshtein: int
    lower: int
    upper: int

    def __contains__(self, distance):
        return self.lower <= distance <= self.upper


def _check_positive(name, value):
    # bool is an int subclass but never a meaningful size
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be a positive integer, got: {value!r}")


# Default tuning parameters
DEFAULT_TUNING_PARAMS = TuningParams()


def init_base_match():
    """
    Build the character to base lookup table.

    Safe to call any number of times; the table is only built once per process.
    Every public entry point calls it, so callers never need to.
    """
    if _BASE_MATCH:
        return
    table = {}
    for code, bases in IUPAC_CODES.items():
        symbol = next(iter(bases)) if len(bases) == 1 else UNKNOWN_BASE
        table[code] = symbol
        table[code.lower()] = symbol
    _BASE_MATCH.update(table)


def to_base(c):
    """
    Map a character to its canonical base symbol.

    Args:
        c (str): Single character

    Returns:
        str or None: 'A', 'C', 'G', 'T', UNKNOWN_BASE for any ambiguity code,
                     or None if c is not a base at all

    Examples:
        >>> to_base('g')
        'G'
        >>> to_base('R')
        'N'
        >>> to_base('-') is None
        True
    """
    init_base_match()
    return _BASE_MATCH.get(c)


def is_base(c):
    """True if c is a known or unknown base."""
    return to_base(c) is not None


def is_unknown_base(c):
    """True if c is N or another IUPAC ambiguity code."""
    return to_base(c) == UNKNOWN_BASE


def is_same_base(c1, c2):
    """
    True if both characters denote the same known base.

    Unknown bases are never the same base as anything, not even another N.
    """
    base = to_base(c1)
    return base is not None and base != UNKNOWN_BASE and base == to_base(c2)


def report_non_base(c):
    """Default anomaly hook: log a non-base character that is being skipped."""
    logger.warning("Skipping non-base character %r", c)


def _substitution_cost(c1, c2):
    if is_unknown_base(c1) or is_unknown_base(c2):
        return SUBSTITUTION_UNKNOWN_COST
    return 0 if is_same_base(c1, c2) else SUBSTITUTION_COST


def order_sequences(seq1, seq2):
    """
    Orient two sequences so that the longest comes first.

    Ties keep the given order. Every engine relies on n <= m, which bounds
    the row arrays by the shorter sequence.

    Args:
        seq1: First sequence
        seq2: Second sequence

    Returns:
        OrientationContext: x, m (longest) and y, n (shortest)
    """
    if len(seq1) >= len(seq2):
        return OrientationContext(x=seq1, m=len(seq1), y=seq2, n=len(seq2))
    return OrientationContext(x=seq2, m=len(seq2), y=seq1, n=len(seq1))


def _classify(ctx, on_anomaly):
    """
    Classify every position of both sequences once.

    Reports each non-base position of x, then of y, through on_anomaly.

    Returns:
        tuple: (x_is_base, y_is_base) lists of bool
    """
    classified = []
    for seq in (ctx.x, ctx.y):
        flags = [is_base(c) for c in seq]
        for c, flag in zip(seq, flags):
            if not flag:
                on_anomaly(c)
        classified.append(flags)
    return classified[0], classified[1]


def _memo_moves(ctx, i, j, report):
    """
    The transitions of phi(i, j) as (cost, i', j') triples.

    phi(i, j) is the minimum of cost + phi(i', j') over the returned moves,
    or 0 when there are none (both suffixes exhausted).
    """
    x, m, y, n = ctx.x, ctx.m, ctx.y, ctx.n
    if i == m:
        if j == n:
            return ()
        if not is_base(y[j]):
            report('y', j)
            return ((0, i, j + 1),)
        return ((INSERTION_COST, i, j + 1),)
    if j == n:
        if not is_base(x[i]):
            report('x', i)
            return ((0, i + 1, j),)
        return ((INSERTION_COST, i + 1, j),)
    if not is_base(x[i]):
        report('x', i)
        return ((0, i + 1, j),)
    if not is_base(y[j]):
        report('y', j)
        return ((0, i, j + 1),)
    return (
        (_substitution_cost(x[i], y[j]), i + 1, j + 1),
        (INSERTION_COST, i + 1, j),
        (INSERTION_COST, i, j + 1),
    )


def edit_distance_recursive(seq1, seq2, on_anomaly=None):
    """
    Top-down Needleman-Wunsch with a full memoization table.

    phi(i, j) is the cost of aligning x[i:] against y[j:]; the result is phi(0, 0).
    The recurrence is driven by an explicit stack instead of Python recursion,
    so long sequences cannot exhaust the interpreter's recursion limit.
    Each cell of the (m+1) x (n+1) table is evaluated at most once.

    Args:
        seq1: First sequence (str or any indexable sequence of characters)
        seq2: Second sequence
        on_anomaly (callable, optional): Called with each non-base character,
                                         once per position, in the order the
                                         recurrence first reaches it.
                                         Defaults to report_non_base.

    Returns:
        int: Edit distance between seq1 and seq2

    Examples:
        >>> edit_distance_recursive("ACGT", "AGT")
        2
    """
    init_base_match()
    if on_anomaly is None:
        on_anomaly = report_non_base
    ctx = order_sequences(seq1, seq2)

    memo = [[NOT_YET_COMPUTED] * (ctx.n + 1) for _ in range(ctx.m + 1)]
    reported = set()

    def report(axis, index):
        if (axis, index) not in reported:
            reported.add((axis, index))
            on_anomaly(ctx.x[index] if axis == 'x' else ctx.y[index])

    stack = [(0, 0)]
    while stack:
        i, j = stack[-1]
        if memo[i][j] != NOT_YET_COMPUTED:
            stack.pop()
            continue

        moves = _memo_moves(ctx, i, j, report)
        pending = [(a, b) for _, a, b in moves if memo[a][b] == NOT_YET_COMPUTED]
        if pending:
            # Evaluated in recurrence order: diagonal, then x side, then y side
            stack.extend(reversed(pending))
            continue

        memo[i][j] = min((cost + memo[a][b] for cost, a, b in moves), default=0)
        stack.pop()

    return memo[0][0]


def _sweep_row(tab, carry, xi, xi_is_base, y, y_is_base, start, width):
    """
    Advance one row of the table over columns 1..width of a block.

    Columns run from the end of y toward its start: column k of the block
    reads y[start - k]. On entry tab[0] already holds the new row's value
    for column 0 and carry holds the previous row's value there. tab[k] is
    overwritten in place; carry keeps its old value for the next diagonal.
    """
    for k in range(1, width + 1):
        yj = start - k
        if not y_is_base[yj]:
            carry, tab[k] = tab[k], tab[k - 1]
        elif not xi_is_base:
            carry = tab[k]
        else:
            best = min(tab[k], tab[k - 1]) + INSERTION_COST
            diagonal = carry + _substitution_cost(xi, y[yj])
            carry = tab[k]
            tab[k] = min(best, diagonal)


def edit_distance_iterative(seq1, seq2, on_anomaly=None):
    """
    Bottom-up Needleman-Wunsch with a single row of n+1 running totals.

    The row starts as the cumulative insertion cost over y scanned from its
    end, then is rewritten once per base of x (also from its end). Memory is
    O(min(len(seq1), len(seq2))).

    Args:
        seq1: First sequence
        seq2: Second sequence
        on_anomaly (callable, optional): Called with each non-base character,
                                         once per position. Defaults to report_non_base.

    Returns:
        int: Edit distance between seq1 and seq2
    """
    init_base_match()
    if on_anomaly is None:
        on_anomaly = report_non_base
    ctx = order_sequences(seq1, seq2)
    x_is_base, y_is_base = _classify(ctx, on_anomaly)
    m, n = ctx.m, ctx.n

    tab = [0] * (n + 1)
    for j in range(1, n + 1):
        tab[j] = tab[j - 1] + (INSERTION_COST if y_is_base[n - j] else 0)

    for i in range(1, m + 1):
        xi_is_base = x_is_base[m - i]
        carry = tab[0]
        if xi_is_base:
            tab[0] += INSERTION_COST
        _sweep_row(tab, carry, ctx.x[m - i], xi_is_base, ctx.y, y_is_base, n, n)

    return tab[n]


def _boundary_column(ctx, x_is_base):
    """Cumulative insertion cost over x scanned from its end: column 0 of every row."""
    col = [0] * (ctx.m + 1)
    for i in range(1, ctx.m + 1):
        col[i] = col[i - 1] + (INSERTION_COST if x_is_base[ctx.m - i] else 0)
    return col


def _sweep_block(ctx, x_is_base, y_is_base, col, tab, lo, width):
    """
    Evaluate columns lo+1..lo+width for every row, resuming from col.

    On entry col[i] holds row i's value at column lo; on return it holds
    row i's value at column lo + width.
    """
    m, n = ctx.m, ctx.n
    start = n - lo

    tab[0] = col[0]
    for k in range(1, width + 1):
        tab[k] = tab[k - 1] + (INSERTION_COST if y_is_base[start - k] else 0)
    col[0] = tab[width]

    for i in range(1, m + 1):
        carry = tab[0]
        tab[0] = col[i]
        _sweep_row(tab, carry, ctx.x[m - i], x_is_base[m - i], ctx.y, y_is_base, start, width)
        col[i] = tab[width]


def edit_distance_cache_aware(seq1, seq2, cache_size=DEFAULT_CACHE_SIZE, on_anomaly=None):
    """
    Blocked Needleman-Wunsch sized to a cache budget.

    Columns are processed in blocks of cache_size // (CACHE_ARRAYS * ELEMENT_SIZE)
    (at least one) so that the working row of a block stays in cache while every
    row of x streams past it. A boundary array of m+1 values carries each row's
    last column from one block to the next. The block width never changes the result.

    Args:
        seq1: First sequence
        seq2: Second sequence
        cache_size (int): Cache budget in bytes, must be positive
        on_anomaly (callable, optional): Called with each non-base character,
                                         once per position. Defaults to report_non_base.

    Returns:
        int: Edit distance between seq1 and seq2

    Raises:
        ValueError: If cache_size is not a positive integer
    """
    _check_positive('cache_size', cache_size)
    init_base_match()
    if on_anomaly is None:
        on_anomaly = report_non_base
    ctx = order_sequences(seq1, seq2)
    x_is_base, y_is_base = _classify(ctx, on_anomaly)

    block_width = max(1, cache_size // (CACHE_ARRAYS * ELEMENT_SIZE))
    col = _boundary_column(ctx, x_is_base)
    tab = [0] * (min(block_width, ctx.n) + 1)

    done = 0
    while done < ctx.n:
        width = min(block_width, ctx.n - done)
        _sweep_block(ctx, x_is_base, y_is_base, col, tab, done, width)
        done += width

    return col[ctx.m]


def _oblivious_split(ctx, x_is_base, y_is_base, col, threshold, lo, hi):
    """Bisect columns [lo, hi) until a range fits the threshold, left half first."""
    if hi - lo > threshold:
        mid = lo + (hi - lo) // 2
        _oblivious_split(ctx, x_is_base, y_is_base, col, threshold, lo, mid)
        _oblivious_split(ctx, x_is_base, y_is_base, col, threshold, mid, hi)
        return
    tab = [0] * (hi - lo + 1)
    _sweep_block(ctx, x_is_base, y_is_base, col, tab, lo, hi - lo)


def edit_distance_cache_oblivious(seq1, seq2, threshold=DEFAULT_THRESHOLD, on_anomaly=None):
    """
    Cache-oblivious Needleman-Wunsch by recursive bisection of the columns.

    The column range is halved until it spans at most threshold columns; each
    leaf is evaluated like a cache-aware block. The left half always completes
    before the right half starts because the right half resumes from the
    boundary array the left half leaves behind. Recursion depth is
    log2(n / threshold).

    Args:
        seq1: First sequence
        seq2: Second sequence
        threshold (int): Largest column range evaluated without splitting, must be positive
        on_anomaly (callable, optional): Called with each non-base character,
                                         once per position. Defaults to report_non_base.

    Returns:
        int: Edit distance between seq1 and seq2

    Raises:
        ValueError: If threshold is not a positive integer
    """
    _check_positive('threshold', threshold)
    init_base_match()
    if on_anomaly is None:
        on_anomaly = report_non_base
    ctx = order_sequences(seq1, seq2)
    x_is_base, y_is_base = _classify(ctx, on_anomaly)

    col = _boundary_column(ctx, x_is_base)
    _oblivious_split(ctx, x_is_base, y_is_base, col, threshold, 0, ctx.n)
    return col[ctx.m]


METHODS = {
    'recursive': edit_distance_recursive,
    'iterative': edit_distance_iterative,
    'cache-aware': edit_distance_cache_aware,
    'cache-oblivious': edit_distance_cache_oblivious,
}


def edit_distance(seq1, seq2, method='iterative', tuning_params=None, on_anomaly=None):
    """
    Compute the edit distance with the named engine.

    Args:
        seq1 (str): First DNA sequence
        seq2 (str): Second DNA sequence
        method (str): One of METHODS: 'recursive', 'iterative', 'cache-aware',
                      'cache-oblivious'. All return the same value.
        tuning_params (TuningParams, optional): Cache budget and threshold.
                                                Defaults to DEFAULT_TUNING_PARAMS.
        on_anomaly (callable, optional): Non-base character hook, see the engines.

    Returns:
        int: Edit distance between seq1 and seq2

    Raises:
        ValueError: If method is not one of METHODS

    Example:
        >>> edit_distance("AAATTTGGG", "AAAATTTGGG", method='cache-oblivious')
        2
    """
    if method not in METHODS:
        raise ValueError(f"Unknown method {method!r}, expected one of: {', '.join(METHODS)}")
    if tuning_params is None:
        tuning_params = DEFAULT_TUNING_PARAMS

    if method == 'cache-aware':
        return edit_distance_cache_aware(seq1, seq2, tuning_params.cache_size, on_anomaly)
    if method == 'cache-oblivious':
        return edit_distance_cache_oblivious(seq1, seq2, tuning_params.threshold, on_anomaly)
    return METHODS[method](seq1, seq2, on_anomaly)


def distance_bounds(seq1, seq2):
    """
    Bound the edit distance using edlib's unit-cost global alignment.

    Non-base characters are dropped and the remaining bases canonicalized.
    Unknown bases of seq2 are rewritten to a symbol of their own so that
    edlib, like this cost model, never counts N against N as a match.
    Every operation costs between 1 and INSERTION_COST, so the unit-cost
    distance L gives L <= distance <= INSERTION_COST * L.

    Args:
        seq1 (str): First DNA sequence
        seq2 (str): Second DNA sequence

    Returns:
        DistanceBounds: levenshtein, lower and upper
    """
    query = ''.join(base for base in map(to_base, seq1) if base is not None)
    target = ''.join(
        base.lower() if base == UNKNOWN_BASE else base
        for base in map(to_base, seq2) if base is not None
    )

    # edlib needs something to align against
    if not query or not target:
        levenshtein = max(len(query), len(target))
    else:
        result = edlib.align(query, target, mode="NW", task="distance")
        levenshtein = result['editDistance']

    max_cost = max(SUBSTITUTION_COST, SUBSTITUTION_UNKNOWN_COST, INSERTION_COST)
    return DistanceBounds(levenshtein=levenshtein, lower=levenshtein, upper=max_cost * levenshtein)
