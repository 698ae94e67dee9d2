"""Deduplicated top-k maintenance across levels and runs."""
import numpy as np
import scipy.sparse as sparse

from ..core.data_structures import SliceStats, TopK
from ..utils.sparse import IndicatorHelper


def _rank(scores: np.ndarray, ids: np.ndarray) -> np.ndarray:
    if ids.dtype != object:
        return np.lexsort((ids, -scores))
    return np.array(sorted(range(scores.size), key=lambda i: (-scores[i], ids[i])), dtype=np.int64)


def maintain_top_k(top_k: TopK, slices: sparse.csr_matrix, stats: SliceStats, ids: np.ndarray,
                   k: int, min_support: int) -> TopK:
    """Merge evaluated slices into the top-k.

    Only slices with ``size >= min_support`` and a positive error are
    eligible. Candidates and current entries are merged, ranked by score
    (ties by canonical id), duplicate ids dropped and the result cut to k.

    Args:
        top_k: Current top-k
        slices: Newly evaluated one-hot slices
        stats: Their exact statistics
        ids: Their canonical ids
        k: Number of slices to keep
        min_support: Minimum slice size

    Returns:
        New TopK
    """
    all_slices = IndicatorHelper.stack([top_k.slices, slices], top_k.slices.shape[1])
    all_stats = SliceStats.concat([top_k.stats, stats])
    all_ids = np.concatenate([top_k.ids, np.asarray(ids)])

    valid = np.flatnonzero(all_stats.valid_mask(min_support))
    if valid.size == 0 or k == 0:
        return TopK(IndicatorHelper.empty(all_slices.shape[1]), SliceStats.empty(), all_ids[:0])

    scores = all_stats.score[valid]
    order = valid[_rank(scores, all_ids[valid])]

    ranked_ids = all_ids[order]
    distinct = np.ones(order.size, dtype=bool)
    distinct[1:] = ranked_ids[1:] != ranked_ids[:-1]
    order = order[distinct][:k]

    return TopK(IndicatorHelper.take_rows(all_slices, order), all_stats.take(order), all_ids[order])
