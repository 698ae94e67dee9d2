"""Exact evaluation of candidate slices against the one-hot dataset.

A row satisfies a slice of level ``L`` iff its one-hot vector restricted to
the slice's bits sums to ``L``. Sizes, total errors and maximum tuple errors
are accumulated per slice in ascending row order, so every evaluation mode
(and every block partition) yields bit-identical statistics.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional

import numpy as np
import scipy.sparse as sparse

from .scoring import score
from ..core.data_structures import EvalMode, RunParams, SliceStats
from ..utils.sparse import IndicatorHelper

logger = logging.getLogger(__name__)


def accumulate_stats(rows: np.ndarray, cols: np.ndarray, errors: np.ndarray, n_slices: int,
                     e_avg: float, alpha: float, n_rows: int) -> SliceStats:
    """Aggregate (row, slice) membership pairs into slice statistics."""
    order = np.lexsort((rows, cols))
    rows, cols = rows[order], cols[order]
    row_errors = errors[rows]

    sizes = np.bincount(cols, minlength=n_slices).astype(float)
    total = np.bincount(cols, weights=row_errors, minlength=n_slices).astype(float)
    max_err = np.zeros(n_slices, dtype=float)
    np.maximum.at(max_err, cols, row_errors)

    return SliceStats(score(sizes, total, e_avg, alpha, n_rows), total, max_err, sizes)


def membership(X2: sparse.csr_matrix, slices: sparse.csr_matrix, levels: Optional[np.ndarray] = None):
    """Return (row, slice) index pairs of rows that satisfy each slice."""
    if levels is None:
        levels = IndicatorHelper.row_counts(slices)
    counts = (X2 @ slices.T).tocoo()
    hit = counts.data == levels[counts.col]
    return counts.row[hit].astype(np.int64), counts.col[hit].astype(np.int64)


def evaluate_slices(X2: sparse.csr_matrix, errors: np.ndarray, slices: sparse.csr_matrix,
                    e_avg: float, alpha: float, levels: Optional[np.ndarray] = None) -> SliceStats:
    """Evaluate all candidate slices in one combined pass.

    Args:
        X2: One-hot encoded dataset
        errors: Per-row error vector
        slices: One-hot slice rows
        e_avg: Average error over the dataset
        alpha: Weight of the error term
        levels: Predicate count per slice (defaults to the row bit counts)

    Returns:
        SliceStats aligned with ``slices``
    """
    n_slices = slices.shape[0]
    if n_slices == 0:
        return SliceStats.empty()

    rows, cols = membership(X2, slices, levels)
    return accumulate_stats(rows, cols, errors, n_slices, e_avg, alpha, X2.shape[0])


def evaluate_blocked(X2: sparse.csr_matrix, errors: np.ndarray, slices: sparse.csr_matrix,
                     e_avg: float, alpha: float, block_size: int, n_jobs: int = 1,
                     levels: Optional[np.ndarray] = None) -> SliceStats:
    """Evaluate candidates in independent fixed-size blocks.

    Blocks read the same immutable dataset and write disjoint output rows,
    so with ``n_jobs > 1`` they run on a thread pool in any order.
    """
    n_slices = slices.shape[0]
    if n_slices == 0:
        return SliceStats.empty()
    if levels is None:
        levels = IndicatorHelper.row_counts(slices)

    out = np.empty((n_slices, 4), dtype=float)

    def run_block(beg: int):
        end = min(beg + block_size, n_slices)
        stats = evaluate_slices(X2, errors, slices[beg:end], e_avg, alpha, levels[beg:end])
        return beg, end, stats

    starts = range(0, n_slices, block_size)
    if n_jobs == 1:
        for beg in starts:
            beg, end, stats = run_block(beg)
            out[beg:end] = stats.as_matrix()
    else:
        with ThreadPoolExecutor(max_workers=n_jobs) as executor:
            futures = [executor.submit(run_block, beg) for beg in starts]
            for future in as_completed(futures):
                beg, end, stats = future.result()
                out[beg:end] = stats.as_matrix()

    logger.debug(f"Evaluated {n_slices} slices in {len(starts)} block(s) of {block_size}")
    return SliceStats.from_matrix(out)


def evaluate(X2: sparse.csr_matrix, errors: np.ndarray, slices: sparse.csr_matrix, e_avg: float,
             params: RunParams, n_jobs: int = 1, levels: Optional[np.ndarray] = None,
             selected_columns: Optional[np.ndarray] = None) -> SliceStats:
    """Evaluate slices using the run's evaluation mode and feature selection."""
    if levels is None:
        levels = IndicatorHelper.row_counts(slices)

    if params.feature_selection and selected_columns is not None:
        X2 = IndicatorHelper.restrict_columns(X2, selected_columns)
        slices = IndicatorHelper.restrict_columns(slices, selected_columns)

    if params.eval_mode == EvalMode.BLOCKED:
        return evaluate_blocked(X2, errors, slices, e_avg, params.alpha, params.block_size, n_jobs, levels)
    return evaluate_slices(X2, errors, slices, e_avg, params.alpha, levels)
