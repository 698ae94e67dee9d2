"""Sparse indicator-matrix operations for slice finding."""
from typing import Sequence

import numpy as np
import scipy.sparse as sparse

from ..exceptions import InvalidDataError

INDICATOR_DTYPE = np.int32


class IndicatorHelper:
    """Helper class for 0/1 indicator matrices.

    Slices, candidate joins and one-hot encoded rows are all stored as
    CSR matrices with unit entries. Construction always goes through
    explicit (row, col) triplets so that every cell is written exactly once.
    """

    @staticmethod
    def from_triplets(rows: np.ndarray, cols: np.ndarray, shape: Sequence[int]) -> sparse.csr_matrix:
        """Assemble an indicator matrix from (row, col) index arrays.

        Args:
            rows: Row index of every set cell
            cols: Column index of every set cell
            shape: Shape of the output matrix

        Returns:
            CSR matrix with sorted indices

        Raises:
            InvalidDataError: If the same cell is addressed twice
        """
        rows = np.asarray(rows, dtype=np.int64)
        cols = np.asarray(cols, dtype=np.int64)
        n_rows, n_cols = int(shape[0]), int(shape[1])

        if rows.size:
            flat = rows * max(n_cols, 1) + cols
            if np.unique(flat).size != flat.size:
                raise InvalidDataError("Indicator triplets address the same cell more than once")

        data = np.ones(rows.size, dtype=INDICATOR_DTYPE)
        matrix = sparse.coo_matrix((data, (rows, cols)), shape=(n_rows, n_cols)).tocsr()
        matrix.sort_indices()
        return matrix

    @staticmethod
    def empty(n_cols: int) -> sparse.csr_matrix:
        """Return an indicator matrix with zero rows."""
        return sparse.csr_matrix((0, int(n_cols)), dtype=INDICATOR_DTYPE)

    @staticmethod
    def row_counts(matrix: sparse.csr_matrix) -> np.ndarray:
        """Number of set cells per row (the level of each slice row)."""
        return np.diff(matrix.indptr).astype(np.int64)

    @staticmethod
    def take_rows(matrix: sparse.csr_matrix, index: np.ndarray) -> sparse.csr_matrix:
        """Select rows by position or boolean mask."""
        index = np.asarray(index)
        if index.dtype == bool:
            index = np.flatnonzero(index)
        if index.size == 0:
            return IndicatorHelper.empty(matrix.shape[1])
        result = matrix[index]
        result.sort_indices()
        return result

    @staticmethod
    def union_rows(matrix: sparse.csr_matrix, left: np.ndarray, right: np.ndarray) -> sparse.csr_matrix:
        """Row-wise OR of ``matrix[left]`` and ``matrix[right]``."""
        joined = IndicatorHelper.take_rows(matrix, left) + IndicatorHelper.take_rows(matrix, right)
        joined = joined.tocsr()
        joined.data = np.ones_like(joined.data, dtype=INDICATOR_DTYPE)
        joined.sort_indices()
        return joined

    @staticmethod
    def stack(matrices: Sequence[sparse.csr_matrix], n_cols: int) -> sparse.csr_matrix:
        """Vertically stack indicator matrices, tolerating an empty sequence."""
        parts = [m for m in matrices if m.shape[0] > 0]
        if not parts:
            return IndicatorHelper.empty(n_cols)
        result = sparse.vstack(parts, format='csr', dtype=INDICATOR_DTYPE)
        result.sort_indices()
        return result

    @staticmethod
    def restrict_columns(matrix: sparse.csr_matrix, columns: np.ndarray) -> sparse.csr_matrix:
        """Keep only the given columns (boolean mask or positions)."""
        columns = np.asarray(columns)
        if columns.dtype == bool:
            columns = np.flatnonzero(columns)
        return matrix.tocsc()[:, columns].tocsr()
