"""Packed storage of symmetric matrices over pairs of initial conditions.

Spectra for a pair of initial conditions (ic1, ic2) are symmetric in the pair,
so each mode stores only the upper triangle, row by row:

    (0,0) (0,1) ... (0,n-1) (1,1) (1,2) ... (n-1,n-1)

References:
    CLASS source: include/common.h (index_symmetric_matrix)
"""

from __future__ import annotations

from typing import Iterator, Tuple


def ic_ic_size(n: int) -> int:
    """Number of independent entries of an n x n symmetric matrix."""
    return n * (n + 1) // 2


def index_symmetric_matrix(i: int, j: int, n: int) -> int:
    """Offset of the unordered pair (i, j) in the packed upper triangle.

    Symmetric in (i, j); for fixed i the offsets of j = i, i+1, ... are
    contiguous. Result lies in [0, n(n+1)/2).
    """
    if i > j:
        i, j = j, i
    return i * n - i * (i + 1) // 2 + j


def iter_pairs(n: int) -> Iterator[Tuple[int, int, int]]:
    """Yield (ic1, ic2, offset) for ic1 <= ic2, in storage order."""
    for i in range(n):
        for j in range(i, n):
            yield i, j, index_symmetric_matrix(i, j, n)


def pair_diagonals(n: int) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """For each packed pair (i, j), in storage order: offsets of (i, i) and of (j, j)."""
    first = tuple(index_symmetric_matrix(i, i, n) for i, _, _ in iter_pairs(n))
    second = tuple(index_symmetric_matrix(j, j, n) for _, j, _ in iter_pairs(n))
    return first, second
