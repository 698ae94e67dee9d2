"""One-hot encoding of categorical feature matrices under a fixed offset scheme.

Feature ``j`` with domain size ``d_j`` (its largest category id) owns the
one-hot columns ``[foffb[j], foffe[j])``; category ``v >= 1`` maps to column
``foffb[j] + v - 1`` and category 0 (unconstrained / missing) sets no bit.
"""
import logging
from typing import Optional, Tuple

import numpy as np
import scipy.sparse as sparse

from ..exceptions import InvalidDataError
from ..utils.sparse import IndicatorHelper

logger = logging.getLogger(__name__)


def compute_offsets(X: np.ndarray, prior_domains: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Compute begin/end one-hot offsets from per-feature maximum category ids.

    Args:
        X: Feature matrix of non-negative category ids
        prior_domains: Domain sizes of a previous run; domains never shrink below them

    Returns:
        Tuple of (foffb, foffe) int64 arrays
    """
    X = np.asarray(X)
    if X.ndim != 2:
        raise InvalidDataError(f"Feature matrix must be 2-dimensional, got {X.ndim} dimensions")

    if X.shape[0] > 0:
        domains = X.max(axis=0).astype(np.int64)
    else:
        domains = np.zeros(X.shape[1], dtype=np.int64)

    if prior_domains is not None:
        prior_domains = np.asarray(prior_domains, dtype=np.int64)
        if prior_domains.shape != domains.shape:
            raise InvalidDataError(
                f"Feature count changed between runs: {prior_domains.size} -> {domains.size}"
            )
        domains = np.maximum(domains, prior_domains)

    foffe = np.cumsum(domains, dtype=np.int64)
    foffb = foffe - domains
    return foffb, foffe


class OffsetEncoder:
    """Encodes and decodes slices and rows for one offset scheme.

    Attributes:
        foffb: First one-hot column of every feature
        foffe: One past the last one-hot column of every feature
        domains: Domain size (largest category id) of every feature
        column_features: Feature index owning every one-hot column

    Example:
        >>> enc = OffsetEncoder.fit(np.array([[1, 2], [2, 1]]))
        >>> enc.n_columns
        4
        >>> enc.decode(enc.encode(np.array([[0, 2]]))).tolist()
        [[0, 2]]
    """

    def __init__(self, foffb: np.ndarray, foffe: np.ndarray):
        foffb = np.asarray(foffb, dtype=np.int64).reshape(-1)
        foffe = np.asarray(foffe, dtype=np.int64).reshape(-1)
        if foffb.shape != foffe.shape:
            raise InvalidDataError("Offset vectors must have the same length")
        if foffb.size and (foffb[0] != 0 or np.any(foffb[1:] != foffe[:-1]) or np.any(foffe < foffb)):
            raise InvalidDataError("Offsets must be contiguous and non-decreasing")

        self.foffb = foffb
        self.foffe = foffe
        self.domains = foffe - foffb
        self.column_features = np.repeat(np.arange(foffb.size, dtype=np.int64), self.domains)

    @classmethod
    def fit(cls, X: np.ndarray, prior_domains: Optional[np.ndarray] = None) -> 'OffsetEncoder':
        return cls(*compute_offsets(X, prior_domains))

    @property
    def n_features(self) -> int:
        return int(self.foffb.size)

    @property
    def n_columns(self) -> int:
        return int(self.foffe[-1]) if self.foffe.size else 0

    @property
    def offsets(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.foffb, self.foffe

    def encode(self, X: np.ndarray) -> sparse.csr_matrix:
        """One-hot encode a category matrix.

        Args:
            X: ``(m, n_features)`` matrix of category ids, 0 = unconstrained

        Returns:
            ``(m, n_columns)`` CSR indicator matrix

        Raises:
            InvalidDataError: If the shape or any value is outside the domains
        """
        X = np.asarray(X)
        if X.ndim != 2 or X.shape[1] != self.n_features:
            raise InvalidDataError(
                f"Expected a matrix with {self.n_features} features, got shape {X.shape}"
            )
        if X.size and X.min() < 0:
            raise InvalidDataError("Category ids must be non-negative")

        X = X.astype(np.int64, copy=False)
        rows, feats = np.nonzero(X)
        values = X[rows, feats]
        if values.size and np.any(values > self.domains[feats]):
            bad = int(feats[np.argmax(values > self.domains[feats])])
            raise InvalidDataError(
                f"Category id exceeds the domain of feature {bad} ({self.domains[bad]})"
            )

        cols = self.foffb[feats] + values - 1
        return IndicatorHelper.from_triplets(rows, cols, (X.shape[0], self.n_columns))

    def decode(self, S: sparse.spmatrix) -> np.ndarray:
        """Recover category ids from one-hot slice rows.

        Raises:
            InvalidDataError: If a row sets more than one bit within a feature
        """
        S = sparse.csr_matrix(S)
        if S.shape[1] != self.n_columns:
            raise InvalidDataError(f"Expected {self.n_columns} one-hot columns, got {S.shape[1]}")

        coo = S.tocoo()
        keep = coo.data != 0
        rows, cols = coo.row[keep], coo.col[keep]
        feats = self.column_features[cols]

        flat = rows.astype(np.int64) * max(self.n_features, 1) + feats
        if np.unique(flat).size != flat.size:
            raise InvalidDataError("Slice sets more than one value for the same feature")

        result = np.zeros((S.shape[0], self.n_features), dtype=np.int64)
        result[rows, feats] = cols - self.foffb[feats] + 1
        return result

    def reencode(self, S: sparse.spmatrix, source: 'OffsetEncoder') -> sparse.csr_matrix:
        """Move slice rows encoded under ``source`` into this encoder's column space."""
        if source == self:
            return sparse.csr_matrix(S)
        logger.debug(f"Re-encoding {S.shape[0]} slices: {source.n_columns} -> {self.n_columns} columns")
        return self.encode(source.decode(S))

    def __eq__(self, other) -> bool:
        if not isinstance(other, OffsetEncoder):
            return False
        return np.array_equal(self.foffb, other.foffb) and np.array_equal(self.foffe, other.foffe)

    def __hash__(self) -> int:
        return hash((self.foffb.tobytes(), self.foffe.tobytes()))

    def __repr__(self) -> str:
        return f"OffsetEncoder(domains={self.domains.tolist()})"


def encode(X: np.ndarray, foffb: np.ndarray, foffe: np.ndarray) -> sparse.csr_matrix:
    return OffsetEncoder(foffb, foffe).encode(X)


def decode(S: sparse.spmatrix, foffb: np.ndarray, foffe: np.ndarray) -> np.ndarray:
    return OffsetEncoder(foffb, foffe).decode(S)


def reencode(S: sparse.spmatrix, old_offsets: Tuple[np.ndarray, np.ndarray],
             new_offsets: Tuple[np.ndarray, np.ndarray]) -> sparse.csr_matrix:
    return OffsetEncoder(*new_offsets).reencode(S, OffsetEncoder(*old_offsets))
