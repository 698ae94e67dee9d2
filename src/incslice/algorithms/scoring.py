"""Slice scoring and sound score upper bounds.

    sc(s, e) = alpha * ((e / s) / eAvg - 1) - (1 - alpha) * (n / s - 1)

The first term rewards slices whose average error exceeds the dataset
average; the second penalises small slices. Empty slices and undefined
values score -inf, which never enters a top-k and is safe in every pruning
comparison.
"""
import numpy as np

from ..core.data_structures import SliceStats


def _finite_or_neg_inf(values: np.ndarray) -> np.ndarray:
    return np.where(np.isnan(values), -np.inf, values)


def score(sizes, errors, e_avg: float, alpha: float, n_rows: int) -> np.ndarray:
    """Score slices from their size and total error.

    Args:
        sizes: Slice sizes
        errors: Total slice errors
        e_avg: Average error over the whole dataset
        alpha: Weight of the error term in [0, 1]
        n_rows: Number of rows in the dataset

    Returns:
        Array of scores, -inf where the size is 0 or the score is undefined
    """
    sizes = np.asarray(sizes, dtype=float)
    errors = np.asarray(errors, dtype=float)
    with np.errstate(divide='ignore', invalid='ignore'):
        sc = alpha * ((errors / sizes) / e_avg - 1) - (1 - alpha) * (n_rows / sizes - 1)
    sc = _finite_or_neg_inf(sc)
    return np.where(sizes <= 0, -np.inf, sc)


def score_upper_bound(sizes, errors, max_errors, e_avg: float, min_support: int,
                      alpha: float, n_rows: int) -> np.ndarray:
    """Upper-bound the score of any slice within the given size/error bounds.

    A slice of size ``p`` with maximum tuple error ``m`` has an error of at
    most ``min(p * m, e)``. Over ``p`` in ``[min_support, s]`` the score is
    increasing while ``p <= e / m`` and monotone beyond it, so its maximum
    lies at one of three probes: ``min_support``, ``max(e / m, min_support)``
    and ``s``. The row-wise maximum over the probes is returned.

    Args:
        sizes: Upper bounds on slice size
        errors: Upper bounds on total slice error
        max_errors: Upper bounds on the maximum tuple error
        e_avg: Average error over the whole dataset
        min_support: Minimum slice size
        alpha: Weight of the error term in [0, 1]
        n_rows: Number of rows in the dataset

    Returns:
        Array of upper bounds, -inf where no probe is defined
    """
    ss = np.asarray(sizes, dtype=float)
    se = np.asarray(errors, dtype=float)
    sm = np.asarray(max_errors, dtype=float)

    with np.errstate(divide='ignore', invalid='ignore'):
        probes = (
            np.full_like(ss, float(min_support)),
            np.fmax(se / sm, float(min_support)),
            ss,
        )
        bound = np.full_like(ss, np.nan)
        for p in probes:
            err = np.minimum(p * sm, se) / p
            sc = alpha * (err / e_avg - 1) - (1 - alpha) * (n_rows / p - 1)
            bound = np.fmax(bound, sc)

    return _finite_or_neg_inf(bound)


def rescale_scores(stats: SliceStats, e_avg: float, alpha: float, n_rows: int) -> SliceStats:
    """Recompute the score column of persisted stats for a new row count and average error."""
    return stats.with_scores(score(stats.size, stats.error, e_avg, alpha, n_rows))


def stats_upper_bound(stats: SliceStats, e_avg: float, min_support: int, alpha: float, n_rows: int) -> np.ndarray:
    return score_upper_bound(stats.size, stats.error, stats.max_error, e_avg, min_support, alpha, n_rows)
