"""Test packed storage of symmetric IC-pair matrices."""

import pytest

from jaxprimordial.indexing import ic_ic_size, index_symmetric_matrix, iter_pairs, pair_diagonals


@pytest.mark.parametrize("n", [1, 2, 3, 5])
def test_symmetric(n):
    for i in range(n):
        for j in range(n):
            assert index_symmetric_matrix(i, j, n) == index_symmetric_matrix(j, i, n)


@pytest.mark.parametrize("n", [1, 2, 3, 5])
def test_bijection(n):
    """Offsets of the unordered pairs cover [0, n(n+1)/2) exactly once."""
    offsets = [index_symmetric_matrix(i, j, n) for i in range(n) for j in range(i, n)]
    assert sorted(offsets) == list(range(ic_ic_size(n)))


def test_contiguous_rows():
    """For fixed i, consecutive j >= i have consecutive offsets."""
    n = 4
    for i in range(n):
        row = [index_symmetric_matrix(i, j, n) for j in range(i, n)]
        assert row == list(range(row[0], row[0] + len(row)))


def test_known_layout():
    # (0,0) (0,1) (0,2) (1,1) (1,2) (2,2)
    assert [index_symmetric_matrix(i, j, 3) for i, j in
            [(0, 0), (0, 1), (0, 2), (1, 1), (1, 2), (2, 2)]] == [0, 1, 2, 3, 4, 5]
    assert ic_ic_size(3) == 6
    first, second = pair_diagonals(3)
    assert first == (0, 0, 0, 3, 3, 5)
    assert second == (0, 3, 5, 3, 5, 5)


def test_iter_pairs_storage_order():
    assert [offset for _, _, offset in iter_pairs(4)] == list(range(ic_ic_size(4)))
    assert all(i <= j for i, j, _ in iter_pairs(4))
