"""Candidate generation and pruning over the slice lattice.

Standard lattice pruning (always on):

* minimum support: only slices with ``size >= min_support`` and a positive
  error are kept as join parents;
* self-join conflicts: a candidate may not hold two values of one feature;
* missing parents: a level-``L`` candidate needs all ``L`` of its
  level-``L-1`` subslices among the valid parents;
* size and score bounds: the element-wise minimum of the parents' size,
  error and maximum tuple error bounds the candidate; it is dropped when the
  size bound is below ``min_support`` or its score upper bound is below the
  current top-k cutoff.

All of these are sound: anti-monotonicity of size, error and maximum error
means a dropped candidate, and every refinement of it, can never reach the
top-k.

The incremental rules selected by ``PruningStrategy`` live here as well;
the orchestrator decides when to apply them.
"""
import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import scipy.sparse as sparse

from .evaluation import accumulate_stats, membership
from .scoring import score_upper_bound, stats_upper_bound
from ..core.data_structures import SliceStats
from ..core.encoding import OffsetEncoder
from ..core.identity import SliceIdentity
from ..utils.sparse import IndicatorHelper

logger = logging.getLogger(__name__)


@dataclass
class CandidateSet:
    """Deduplicated candidates of one level.

    Attributes:
        slices: One-hot candidate rows, sorted by canonical id
        ids: Canonical ids
        bounds: Upper bounds (score column holds the score upper bound)
        n_pairs: Number of joinable parent pairs before deduplication
    """

    slices: sparse.csr_matrix
    ids: np.ndarray
    bounds: SliceStats
    n_pairs: int = 0

    def __len__(self) -> int:
        return self.slices.shape[0]

    @classmethod
    def empty(cls, n_cols: int, id_dtype=np.int64) -> 'CandidateSet':
        return cls(IndicatorHelper.empty(n_cols), np.empty(0, dtype=id_dtype), SliceStats.empty())


def column_stats(X2: sparse.csr_matrix, errors: np.ndarray, e_avg: float, alpha: float) -> SliceStats:
    """Size, error, maximum error and score of every one-hot column."""
    coo = X2.tocoo()
    return accumulate_stats(coo.row.astype(np.int64), coo.col.astype(np.int64), errors,
                            X2.shape[1], e_avg, alpha, X2.shape[0])


def basic_slices(X2: sparse.csr_matrix, errors: np.ndarray, e_avg: float, alpha: float,
                 min_support: int) -> Tuple[sparse.csr_matrix, SliceStats, np.ndarray]:
    """Create and score the level-1 slices.

    Columns below ``min_support`` or without error are discarded: a
    zero-error slice cannot exceed the average error.

    Returns:
        Tuple of (one-hot slices, their stats, boolean mask of selected columns)
    """
    stats = column_stats(X2, errors, e_avg, alpha)
    selected = stats.valid_mask(min_support)
    columns = np.flatnonzero(selected)
    slices = IndicatorHelper.from_triplets(np.arange(columns.size), columns, (columns.size, X2.shape[1]))
    return slices, stats.take(columns), selected


def changed_hits(X2_changed: sparse.csr_matrix, slices: sparse.csr_matrix) -> np.ndarray:
    """Number of changed (added or removed) rows satisfying each slice."""
    if slices.shape[0] == 0 or X2_changed.shape[0] == 0:
        return np.zeros(slices.shape[0], dtype=np.int64)
    _, cols = membership(X2_changed, slices)
    return np.bincount(cols, minlength=slices.shape[0]).astype(np.int64)


def _conflict_free(P: sparse.csr_matrix, encoder: OffsetEncoder, level: int) -> np.ndarray:
    coo = P.tocoo()
    n_features = max(encoder.n_features, 1)
    flat = coo.row.astype(np.int64) * n_features + encoder.column_features[coo.col]
    distinct = np.bincount(np.unique(flat) // n_features, minlength=P.shape[0])
    return distinct == level


def _group_min(values: np.ndarray, groups: np.ndarray, n_groups: int) -> np.ndarray:
    result = np.full(n_groups, np.inf)
    np.minimum.at(result, groups, values)
    return result


def paired_candidates(slices: sparse.csr_matrix, stats: SliceStats, level: int, cutoff: float,
                      e_avg: float, min_support: int, alpha: float, n_rows: int,
                      encoder: OffsetEncoder, identity: SliceIdentity) -> CandidateSet:
    """Join level ``level-1`` slices into pruned, deduplicated level ``level`` candidates.

    Args:
        slices: One-hot slices of the previous level
        stats: Their exact statistics
        level: Level of the candidates to generate (>= 2)
        cutoff: Current top-k cutoff score; candidates bounded below it are dropped
        e_avg: Average error over the dataset
        min_support: Minimum slice size
        alpha: Weight of the error term
        n_rows: Number of rows in the dataset
        encoder: Offset scheme of ``slices``
        identity: Canonical id scheme of ``encoder``

    Returns:
        CandidateSet sorted by canonical id
    """
    valid = stats.valid_mask(min_support)
    parents = IndicatorHelper.take_rows(slices, valid)
    stats = stats.take(valid)
    n = parents.shape[0]
    if n < 2:
        return CandidateSet.empty(encoder.n_columns, identity.dtype)

    # parents sharing exactly level-2 constrained features
    if level == 2:
        rix, cix = np.triu_indices(n, k=1)
    else:
        join = (parents @ parents.T).tocoo()
        pair = (join.row < join.col) & (join.data == level - 2)
        rix, cix = join.row[pair], join.col[pair]
    rix = rix.astype(np.int64)
    cix = cix.astype(np.int64)
    n_pairs = int(rix.size)
    if n_pairs == 0:
        return CandidateSet.empty(encoder.n_columns, identity.dtype)

    P = IndicatorHelper.union_rows(parents, rix, cix)
    ok = _conflict_free(P, encoder, level)
    P = IndicatorHelper.take_rows(P, ok)
    rix, cix = rix[ok], cix[ok]
    if rix.size == 0:
        return CandidateSet(IndicatorHelper.empty(encoder.n_columns), np.empty(0, dtype=identity.dtype),
                            SliceStats.empty(), n_pairs)

    ids = identity.ids_from_onehot(P, encoder)
    uniq, first, groups = np.unique(ids, return_index=True, return_inverse=True)
    groups = groups.reshape(-1).astype(np.int64)
    n_groups = uniq.size

    ub_size = _group_min(np.minimum(stats.size[rix], stats.size[cix]), groups, n_groups)
    ub_error = _group_min(np.minimum(stats.error[rix], stats.error[cix]), groups, n_groups)
    ub_max = _group_min(np.minimum(stats.max_error[rix], stats.max_error[cix]), groups, n_groups)
    ub_score = score_upper_bound(ub_size, ub_error, ub_max, e_avg, min_support, alpha, n_rows)

    group_parent = np.unique(np.concatenate([groups * n + rix, groups * n + cix]))
    n_parents = np.bincount(group_parent // n, minlength=n_groups)

    f_size = ub_size >= min_support
    f_score = ub_score >= cutoff
    f_parents = n_parents == level
    keep = f_size & f_score & f_parents

    logger.debug(
        f"Level {level}: {n_pairs} pairs, {n_groups} distinct candidates, "
        f"pruned size={int((~f_size).sum())} score={int((~f_score).sum())} "
        f"parents={int((~f_parents).sum())}, kept {int(keep.sum())}"
    )

    return CandidateSet(
        slices=IndicatorHelper.take_rows(P, first[keep]),
        ids=uniq[keep],
        bounds=SliceStats(ub_score[keep], ub_error[keep], ub_max[keep], ub_size[keep]),
        n_pairs=n_pairs,
    )


def is_unchanged_below_support(hits: np.ndarray, prior_sizes: np.ndarray, min_support: int) -> np.ndarray:
    """Whether a persisted slice can be reused without re-evaluation.

    A slice qualifies when no changed row satisfies it AND its recorded size
    was already below ``min_support``: its statistics are then unchanged and
    it still cannot be valid. Anything else must be regenerated and
    re-evaluated.
    """
    hits = np.asarray(hits)
    prior_sizes = np.asarray(prior_sizes, dtype=float)
    return (hits == 0) & (prior_sizes < min_support)


def unaffected_score_prunable(hits: np.ndarray, prior_stats: SliceStats, cutoff: float, e_avg: float,
                              min_support: int, alpha: float, n_rows: int) -> np.ndarray:
    """Unaffected slices whose bound over their exact prior stats is below the cutoff.

    Their statistics did not change, so the bound over those statistics
    (rescaled to the current dataset) covers the slice and all refinements.
    """
    ub = stats_upper_bound(prior_stats, e_avg, min_support, alpha, n_rows)
    return (np.asarray(hits) == 0) & (ub < cutoff)


def approximate_column_skip(added_stats: SliceStats, removed_stats: SliceStats, hits: np.ndarray,
                            prior_scores: np.ndarray, cutoff: float, e_avg: float) -> np.ndarray:
    """Heuristic level-1 skip for columns touched by the change.

    A changed column is skipped when its previously recorded score (rescaled)
    was below the cutoff, its added rows are no worse than the average error
    and its removed rows were no better than it. Unaffected columns are left
    to the maxscore rule, whose bound over their unchanged statistics is
    exact; only a changed column has a stale prior bound, so only changed
    columns are candidates here. The column's refinements are not bounded by
    its own score, so this may miss true top-k slices.
    """
    with np.errstate(divide='ignore', invalid='ignore'):
        added_rate = added_stats.error / added_stats.size
        removed_rate = removed_stats.error / removed_stats.size
    added_ok = (added_stats.size == 0) | (added_rate <= e_avg)
    removed_ok = (removed_stats.size == 0) | (removed_rate >= e_avg)
    return (np.asarray(hits) > 0) & added_ok & removed_ok & (np.asarray(prior_scores) < cutoff)
