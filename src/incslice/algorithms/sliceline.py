"""SliceLine top-k slice finding and its incremental variant.

A run walks the slice lattice level by level: level 1 scores every one-hot
column, each further level joins the surviving slices of the previous level
into candidates, prunes them, evaluates the rest exactly and merges them
into the top-k.

An incremental run starts from the state of the previous run. The prior
top-k, re-evaluated on the new data, seeds the pruning cutoff, and slices
that no added or removed row satisfies keep their persisted statistics, so
they can be reused or pruned without touching the data again.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import scipy.sparse as sparse

from .base_algorithm import BaseSliceFinder, check_no_prior
from .evaluation import evaluate, evaluate_slices
from .pruning import (
    approximate_column_skip,
    basic_slices,
    changed_hits,
    column_stats,
    is_unchanged_below_support,
    paired_candidates,
    unaffected_score_prunable,
)
from .scoring import rescale_scores
from .topk import maintain_top_k
from ..core.data_structures import RunParams, Slice, SliceStats, TopK
from ..core.dataset import SliceDataset
from ..core.encoding import OffsetEncoder
from ..core.identity import IdMapping, SliceIdentity
from ..core.lattice import LatticeLevel, LatticeStore, RunState
from ..core.result import LevelTrace, SliceResult
from ..exceptions import IncompletePriorStateError, InvalidDataError, ParameterMismatchError
from ..utils.sparse import IndicatorHelper

logger = logging.getLogger(__name__)

_LevelRows = Tuple[sparse.csr_matrix, SliceStats, np.ndarray]


@dataclass
class _PriorLevel:
    """One prior lattice level moved into the current encoding, sorted by id."""

    slices: sparse.csr_matrix
    ids: np.ndarray
    stats: SliceStats
    hits: np.ndarray
    mapping: IdMapping

    def lookup(self, ids: np.ndarray) -> Tuple[np.ndarray, SliceStats, np.ndarray]:
        """Prior stats and changed-row hits of ``ids``; meaningful only where found."""
        if len(self.mapping) == 0:
            n = np.asarray(ids).size
            zeros = np.zeros(n)
            return np.zeros(n, dtype=bool), SliceStats(zeros, zeros, zeros, zeros), np.zeros(n, dtype=np.int64)
        found, codes = self.mapping.lookup(ids)
        return found, self.stats.take(codes), self.hits[codes]

    def carried(self, regenerated_ids: np.ndarray) -> _LevelRows:
        """Unaffected rows that the current run did not generate again."""
        regenerated, _ = IdMapping(regenerated_ids).lookup(self.ids)
        keep = (self.hits == 0) & ~regenerated
        return IndicatorHelper.take_rows(self.slices, keep), self.stats.take(keep), self.ids[keep]


class _PriorLattice:
    """Read-only view of the previous run's lattice under the current offsets."""

    def __init__(self, prior: RunState, encoder: OffsetEncoder, identity: SliceIdentity,
                 X2_changed: sparse.csr_matrix, e_avg: float, alpha: float, n_rows: int):
        self._lattice = prior.lattice
        self._source = prior.encoder
        self._encoder = encoder
        self._identity = identity
        self._X2_changed = X2_changed
        self._e_avg = e_avg
        self._alpha = alpha
        self._n_rows = n_rows
        self._cache: Dict[int, _PriorLevel] = {}

    @property
    def levels(self) -> List[int]:
        return self._lattice.levels

    def level(self, level: int) -> Optional[_PriorLevel]:
        if level in self._cache:
            return self._cache[level]
        entry = self._lattice.get(level)
        if entry is None:
            return None

        slices = self._encoder.reencode(entry.onehot(self._source), self._source)
        ids = self._identity.ids_from_onehot(slices, self._encoder)
        order = np.argsort(ids, kind='stable')
        slices = IndicatorHelper.take_rows(slices, order)
        ids = ids[order]
        stats = rescale_scores(entry.stats.take(order), self._e_avg, self._alpha, self._n_rows)

        view = _PriorLevel(slices, ids, stats, changed_hits(self._X2_changed, slices), IdMapping(ids))
        self._cache[level] = view
        return view


def _merge_level(level: int, parts: List[_LevelRows], n_cols: int, compact: bool) -> LatticeLevel:
    slices = IndicatorHelper.stack([p[0] for p in parts], n_cols)
    stats = SliceStats.concat([p[1] for p in parts])
    ids = np.concatenate([p[2] for p in parts])
    order = np.argsort(ids, kind='stable')
    return LatticeLevel.build(level, IndicatorHelper.take_rows(slices, order), stats.take(order),
                              ids[order], compact)


def _trace(level: int, generated: int, valid: int, top_k: TopK, evaluated: int, reused: int = 0) -> LevelTrace:
    max_score, min_score = top_k.score_range()
    return LevelTrace(level, int(generated), int(valid), max_score, min_score, int(evaluated), int(reused))


class IncSliceLine(BaseSliceFinder):
    """Incremental SliceLine.

    Without ``prior`` this is a plain SliceLine run. With ``prior`` (the
    RunState of the previous run) the added rows are appended to the prior
    data, ``removed`` rows are deleted from it, and the top-k of the
    combined data is found reusing the prior lattice. With an exact pruning
    strategy the result equals a fresh run on the combined data.

    Example:
        >>> finder = IncSliceLine(k=4, min_support=32, pruning_strategy='exact-only')
        >>> finder.fit(X_old, e_old)
        >>> finder.fit(X_new, e_new, prior=finder.get_state(), removed=[0, 5])
        >>> for s in finder.get_slices():
        ...     print(s)
    """

    def _find(self, dataset: SliceDataset, prior: Optional[RunState],
              removed: Optional[np.ndarray]) -> SliceResult:
        params = self.params
        log = logger.info if params.verbose else logger.debug
        strategy = params.pruning_strategy

        # combined data
        if prior is None:
            if removed is not None and removed.size:
                raise IncompletePriorStateError("Removing rows requires the prior state")
            X, errors = dataset.X, dataset.errors
            keep = None
            encoder = OffsetEncoder.fit(X)
        else:
            self._check_prior(prior, dataset)
            keep = self._kept_rows(prior, removed)
            X = np.vstack([prior.X[keep], dataset.X])
            errors = np.concatenate([prior.errors[keep], dataset.errors])
            encoder = OffsetEncoder.fit(X, prior_domains=prior.encoder.domains)

        identity = SliceIdentity.for_encoder(encoder)
        n_rows = X.shape[0]
        X2 = encoder.encode(X)
        e_avg = float(errors.sum() / n_rows) if n_rows else 0.0
        top_k = TopK.empty(encoder.n_columns, identity.dtype)
        log(f"Init: {n_rows} rows, {encoder.n_features} features, {encoder.n_columns} one-hot columns, "
            f"e_avg={e_avg:.6g}")

        prior_view = None
        if prior is not None:
            X2_removed = encoder.encode(prior.X[~keep])
            X2_added = encoder.encode(dataset.X)
            X2_changed = IndicatorHelper.stack([X2_removed, X2_added], encoder.n_columns)
            prior_view = _PriorLattice(prior, encoder, identity, X2_changed, e_avg, params.alpha, n_rows)
            top_k = self._reseed_top_k(prior, encoder, identity, X2, errors, e_avg, top_k)
            log(f"Init: {X2_removed.shape[0]} rows removed, {X2_added.shape[0]} added, "
                f"prior top-k re-evaluated, cutoff={top_k.cutoff(params.k):.6g}")

        # level 1
        S, R, selected = basic_slices(X2, errors, e_avg, params.alpha, params.min_support)
        ids = identity.ids_from_onehot(S, encoder)
        top_k = maintain_top_k(top_k, S, R, ids, params.k, params.min_support)

        lattice = LatticeStore()
        lattice.put(_merge_level(1, [(S, R, ids)], encoder.n_columns, params.compact_encoding))
        trace = [_trace(1, encoder.n_columns, S.shape[0], top_k, evaluated=encoder.n_columns)]

        working = np.ones(len(R), dtype=bool)
        if prior_view is not None:
            working &= ~self._level_one_skips(
                prior_view, S, R, ids, selected, top_k, e_avg, n_rows,
                added=(X2_added, dataset.errors), removed=(X2_removed, prior.errors[~keep]),
            )
        log(f"Level 1: {encoder.n_columns} columns, {S.shape[0]} valid, {int(working.sum())} in working set")
        S_work = IndicatorHelper.take_rows(S, working)
        R_work = R.take(working)

        # levels 2..
        level = 1
        max_level = params.max_level or encoder.n_features
        while S_work.shape[0] > 0 and level < max_level and level < encoder.n_features:
            level += 1
            cutoff = top_k.cutoff(params.k)
            candidates = paired_candidates(S_work, R_work, level, cutoff, e_avg, params.min_support,
                                           params.alpha, n_rows, encoder, identity)

            reuse = np.zeros(len(candidates), dtype=bool)
            prior_level = prior_view.level(level) if prior_view is not None else None
            if prior_level is not None and len(candidates):
                found, prior_stats, hits = prior_level.lookup(candidates.ids)
                if strategy.uses('size'):
                    reuse |= found & is_unchanged_below_support(hits, prior_stats.size, params.min_support)
                if strategy.uses('score'):
                    reuse |= found & unaffected_score_prunable(hits, prior_stats, cutoff, e_avg,
                                                               params.min_support, params.alpha, n_rows)

            P = IndicatorHelper.take_rows(candidates.slices, ~reuse)
            P_ids = candidates.ids[~reuse]
            R_eval = evaluate(X2, errors, P, e_avg, params, self.n_jobs, selected_columns=selected)
            top_k = maintain_top_k(top_k, P, R_eval, P_ids, params.k, params.min_support)

            parts = [(P, R_eval, P_ids)]
            if reuse.any():
                parts.append((IndicatorHelper.take_rows(candidates.slices, reuse), prior_stats.take(reuse),
                              candidates.ids[reuse]))
            if prior_level is not None:
                parts.append(prior_level.carried(candidates.ids))
            lattice.put(_merge_level(level, parts, encoder.n_columns, params.compact_encoding))

            entry = _trace(level, len(candidates), R_eval.valid_mask(params.min_support).sum(), top_k,
                           evaluated=P.shape[0], reused=reuse.sum())
            trace.append(entry)
            log(f"Level {level}: {candidates.n_pairs} pairs, {entry.generated} candidates, "
                f"{entry.evaluated} evaluated, {entry.reused} reused, {entry.valid} valid, "
                f"top-k scores [{entry.min_score:.6g}, {entry.max_score:.6g}]")

            S_work, R_work = P, R_eval

        # unaffected prior levels the run did not reach
        if prior_view is not None:
            for prior_level_no in prior_view.levels:
                if prior_level_no > level:
                    no_ids = np.empty(0, dtype=identity.dtype)
                    rows = prior_view.level(prior_level_no).carried(no_ids)
                    lattice.put(_merge_level(prior_level_no, [rows], encoder.n_columns,
                                             params.compact_encoding))

        categories = encoder.decode(top_k.slices)
        slices = [
            Slice.from_categories(
                categories[i], dataset.feature_names,
                score=float(top_k.stats.score[i]), error=float(top_k.stats.error[i]),
                max_error=float(top_k.stats.max_error[i]), size=int(top_k.stats.size[i]),
            )
            for i in range(len(top_k))
        ]
        state = RunState(X=X, errors=errors, foffb=encoder.foffb, foffe=encoder.foffe,
                         lattice=lattice, top_k=top_k, params=params)

        metadata = {
            'incremental': prior is not None,
            'rows_added': int(dataset.row_count),
            'rows_removed': 0 if keep is None else int((~keep).sum()),
            'n_jobs': self.n_jobs,
            **self._params
        }
        return SliceResult(slices, trace, state, algorithm=self.__class__.__name__, **metadata)

    def _check_prior(self, prior: RunState, dataset: SliceDataset):
        if not self.params.matches(prior.params):
            diff = ', '.join(self.params.differences(prior.params))
            raise ParameterMismatchError(f"Run parameters differ from the prior run: {diff}")
        if dataset.col_count != prior.X.shape[1]:
            raise InvalidDataError(
                f"Added rows have {dataset.col_count} features, prior data has {prior.X.shape[1]}"
            )

    @staticmethod
    def _kept_rows(prior: RunState, removed: Optional[np.ndarray]) -> np.ndarray:
        keep = np.ones(prior.X.shape[0], dtype=bool)
        if removed is None or removed.size == 0:
            return keep
        if removed.min() < 0 or removed.max() >= keep.size:
            raise InvalidDataError(f"Removed row positions must lie in [0, {keep.size})")
        if np.unique(removed).size != removed.size:
            raise InvalidDataError("Removed row positions must be unique")
        keep[removed] = False
        return keep

    def _reseed_top_k(self, prior: RunState, encoder: OffsetEncoder, identity: SliceIdentity,
                      X2: sparse.csr_matrix, errors: np.ndarray, e_avg: float, top_k: TopK) -> TopK:
        if len(prior.top_k) == 0:
            return top_k
        slices = encoder.reencode(prior.top_k.slices, prior.encoder)
        stats = evaluate_slices(X2, errors, slices, e_avg, self.params.alpha)
        ids = identity.ids_from_onehot(slices, encoder)
        return maintain_top_k(top_k, slices, stats, ids, self.params.k, self.params.min_support)

    def _level_one_skips(self, prior_view: _PriorLattice, S: sparse.csr_matrix, R: SliceStats,
                         ids: np.ndarray, selected: np.ndarray, top_k: TopK, e_avg: float, n_rows: int,
                         added: Tuple[sparse.csr_matrix, np.ndarray],
                         removed: Tuple[sparse.csr_matrix, np.ndarray]) -> np.ndarray:
        params: RunParams = self.params
        skip = np.zeros(len(R), dtype=bool)
        prior_level = prior_view.level(1)
        if prior_level is None or len(R) == 0:
            return skip

        cutoff = top_k.cutoff(params.k)
        found, prior_stats, hits = prior_level.lookup(ids)
        if params.pruning_strategy.uses('maxscore'):
            skip |= found & unaffected_score_prunable(hits, prior_stats, cutoff, e_avg,
                                                      params.min_support, params.alpha, n_rows)
        if params.pruning_strategy.uses('approximate'):
            columns = np.flatnonzero(selected)
            added_stats = column_stats(added[0], added[1], e_avg, params.alpha).take(columns)
            removed_stats = column_stats(removed[0], removed[1], e_avg, params.alpha).take(columns)
            prior_scores = np.where(found, prior_stats.score, np.inf)
            skip |= found & approximate_column_skip(added_stats, removed_stats, hits, prior_scores,
                                                    cutoff, e_avg)

        if skip.any():
            logger.debug(f"Level 1: skipping {int(skip.sum())} of {len(R)} columns from the working set")
        return skip


class SliceLine(IncSliceLine):
    """SliceLine from scratch: the same engine, without prior state.

    Example:
        >>> finder = SliceLine(k=4, min_support=32, alpha=0.95)
        >>> slices = finder.find(X, errors)
    """

    def _find(self, dataset: SliceDataset, prior: Optional[RunState],
              removed: Optional[np.ndarray]) -> SliceResult:
        check_no_prior(self, prior, removed)
        return super()._find(dataset, None, None)
