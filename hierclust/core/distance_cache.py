"""
Distance Cache.

Memoizes leaf-to-leaf distances for one clustering run. The matrix is
symmetric with an empty diagonal, so only the strict upper triangle is stored
in a flat array of n * (n - 1) / 2 slots.

Triangular indexing: for row indices i < j out of n rows, pair (i, j) lives at

    i * (2n - i - 1) / 2 + (j - i - 1)

i.e. the slots of rows 0..i-1 (n-1 + n-2 + ... + n-i of them) followed by the
offset of j within row i. Pairs are unordered, so (j, i) maps to the same slot.
"""

from typing import Callable

import numpy as np


class DistanceCache:
    """
    Lazily filled symmetric distance matrix over the n input rows.

    A separate filled-flag array marks computed slots, so a NaN distance is
    memoized like any other value. Once set, a slot is never overwritten.
    """

    def __init__(self, n_rows: int):
        if n_rows < 0:
            raise ValueError(f"n_rows must be >= 0, got {n_rows}")
        self.n_rows = n_rows
        size = n_rows * (n_rows - 1) // 2
        self._values = np.zeros(size, dtype=np.float64)
        self._filled = np.zeros(size, dtype=bool)
        self.hit_count = 0
        self.miss_count = 0

    def __len__(self) -> int:
        return self._values.size

    def _index(self, i: int, j: int) -> int:
        n = self.n_rows
        if not (0 <= i < n and 0 <= j < n):
            raise IndexError(f"Row pair ({i}, {j}) outside cache of {n} rows")
        if i == j:
            raise IndexError(f"Distance cache holds no diagonal entry ({i}, {j})")
        if i > j:
            i, j = j, i
        return i * (2 * n - i - 1) // 2 + (j - i - 1)

    def get_or_compute(self, i: int, j: int, compute_fn: Callable[[], float]) -> float:
        """
        Return the cached distance for (i, j), computing and storing it on first use.

        Args:
            i: Row index of the first leaf
            j: Row index of the second leaf
            compute_fn: Zero-argument callable producing the distance

        Raises:
            IndexError: If either index is outside [0, n) or i == j
        """
        idx = self._index(i, j)
        if self._filled[idx]:
            self.hit_count += 1
            return float(self._values[idx])

        value = float(compute_fn())
        self._values[idx] = value
        self._filled[idx] = True
        self.miss_count += 1
        return value

    def contains(self, i: int, j: int) -> bool:
        """Whether the pair has been computed."""
        return bool(self._filled[self._index(i, j)])

    @property
    def filled_count(self) -> int:
        return int(np.count_nonzero(self._filled))

    @property
    def nbytes(self) -> int:
        return self._values.nbytes + self._filled.nbytes

    @staticmethod
    def estimate_nbytes(n_rows: int) -> int:
        """Memory a cache over n_rows would allocate (float64 value + bool flag per pair)."""
        return (n_rows * (n_rows - 1) // 2) * (np.dtype(np.float64).itemsize + np.dtype(bool).itemsize)
