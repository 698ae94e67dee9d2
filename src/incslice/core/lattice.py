"""Per-level lattice storage and the state carried between runs."""
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import numpy as np
import scipy.sparse as sparse

from .data_structures import RunParams, SliceStats, TopK
from .encoding import OffsetEncoder
from .identity import IdMapping, SliceIdentity
from ..exceptions import IncompletePriorStateError, InvalidDataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LatticeLevel:
    """Slices and statistics of one lattice level.

    Holds either one-hot ``slices`` or, with compact encoding, dense
    ``codes`` into the level's ``mapping`` of canonical ids.
    """

    level: int
    stats: SliceStats
    slices: Optional[sparse.csr_matrix] = None
    codes: Optional[np.ndarray] = None
    mapping: Optional[IdMapping] = None

    def __post_init__(self):
        if self.compact:
            if self.slices is not None or self.mapping is None:
                raise InvalidDataError("A compact lattice level needs codes and a mapping, and no slices")
            n = self.codes.size
        else:
            if self.slices is None:
                raise InvalidDataError("A lattice level needs either slices or codes")
            n = self.slices.shape[0]
        if n != len(self.stats):
            raise InvalidDataError(f"Lattice level {self.level}: {n} slices but {len(self.stats)} stat rows")

    @property
    def compact(self) -> bool:
        return self.codes is not None

    def __len__(self) -> int:
        return len(self.stats)

    @classmethod
    def build(cls, level: int, slices: sparse.csr_matrix, stats: SliceStats, ids: np.ndarray,
              compact: bool) -> 'LatticeLevel':
        if compact:
            mapping = IdMapping.build(ids)
            return cls(level, stats, codes=mapping.encode(ids), mapping=mapping)
        return cls(level, stats, slices=sparse.csr_matrix(slices))

    def ids(self, encoder: OffsetEncoder) -> np.ndarray:
        if self.compact:
            return self.mapping.decode(self.codes)
        return SliceIdentity.for_encoder(encoder).ids_from_onehot(self.slices, encoder)

    def onehot(self, encoder: OffsetEncoder) -> sparse.csr_matrix:
        if not self.compact:
            return self.slices
        categories = SliceIdentity.for_encoder(encoder).categories_from_ids(self.mapping.decode(self.codes))
        return encoder.encode(categories)


class LatticeStore:
    """Mapping from level to ``LatticeLevel``.

    A run reads the prior store and fills a new one with ``put``; the prior
    store is never written, and a returned store is not written again.

    Example:
        >>> store = LatticeStore()
        >>> store.put(LatticeLevel.build(1, slices, stats, ids, compact=False))
        >>> store.levels
        [1]
    """

    def __init__(self, levels: Optional[Dict[int, LatticeLevel]] = None):
        self._levels: Dict[int, LatticeLevel] = dict(levels or {})

    def put(self, entry: LatticeLevel):
        self._levels[entry.level] = entry

    def get(self, level: int) -> Optional[LatticeLevel]:
        return self._levels.get(level)

    @property
    def levels(self) -> List[int]:
        return sorted(self._levels)

    def __contains__(self, level: int) -> bool:
        return level in self._levels

    def __len__(self) -> int:
        return len(self._levels)

    def __iter__(self) -> Iterator[LatticeLevel]:
        return (self._levels[level] for level in self.levels)

    def to_onehot(self, level: int, encoder: OffsetEncoder) -> Optional[sparse.csr_matrix]:
        entry = self.get(level)
        return None if entry is None else entry.onehot(encoder)

    def ids(self, level: int, encoder: OffsetEncoder) -> Optional[np.ndarray]:
        entry = self.get(level)
        return None if entry is None else entry.ids(encoder)

    def total_slices(self) -> int:
        return sum(len(entry) for entry in self)

    def same_as(self, other: 'LatticeStore', encoder: OffsetEncoder, other_encoder: Optional[OffsetEncoder] = None) -> bool:
        """Compare slice rows and statistics level by level."""
        other_encoder = other_encoder or encoder
        if self.levels != other.levels:
            return False
        for entry in self:
            theirs = other.get(entry.level)
            mine = entry.onehot(encoder)
            other_rows = encoder.reencode(theirs.onehot(other_encoder), other_encoder)
            if mine.shape != other_rows.shape or (mine != other_rows).nnz != 0:
                return False
            if not entry.stats.equals(theirs.stats):
                return False
        return True

    def __repr__(self) -> str:
        sizes = ', '.join(f"{entry.level}: {len(entry)}" for entry in self)
        return f"LatticeStore({{{sizes}}})"


@dataclass(frozen=True)
class RunState:
    """Everything a run hands to the next incremental run.

    Attributes:
        X: Combined feature matrix
        errors: Combined error vector
        foffb: One-hot begin offsets
        foffe: One-hot end offsets
        lattice: Evaluated slices and stats per level
        top_k: Final top-k (one-hot, sorted)
        params: Run configuration
    """

    X: np.ndarray
    errors: np.ndarray
    foffb: np.ndarray
    foffe: np.ndarray
    lattice: LatticeStore
    top_k: TopK
    params: RunParams

    def __post_init__(self):
        if self.X.ndim != 2 or self.X.shape[0] != self.errors.shape[0]:
            raise InvalidDataError(
                f"Prior state rows do not match: X {self.X.shape}, errors {self.errors.shape}"
            )
        if self.foffb.size != self.X.shape[1]:
            raise InvalidDataError("Prior offsets do not match the prior feature count")
        if self.top_k.slices.shape[1] != self.encoder.n_columns:
            raise InvalidDataError("Prior top-k is not encoded under the prior offsets")

    @property
    def encoder(self) -> OffsetEncoder:
        return OffsetEncoder(self.foffb, self.foffe)

    @classmethod
    def from_parts(cls, X=None, errors=None, foffb=None, foffe=None, lattice=None,
                   top_k=None, params=None) -> Optional['RunState']:
        """Assemble a prior state from loose parts, all or nothing.

        Returns:
            RunState, or None when no part is given

        Raises:
            IncompletePriorStateError: If only some parts are given
        """
        parts = dict(X=X, errors=errors, foffb=foffb, foffe=foffe, lattice=lattice,
                     top_k=top_k, params=params)
        missing = [name for name, value in parts.items() if value is None]
        if len(missing) == len(parts):
            return None
        if missing:
            raise IncompletePriorStateError(
                f"Incremental run requires the complete prior state; missing: {', '.join(missing)}"
            )
        return cls(
            X=np.asarray(X), errors=np.asarray(errors, dtype=float),
            foffb=np.asarray(foffb, dtype=np.int64), foffe=np.asarray(foffe, dtype=np.int64),
            lattice=lattice, top_k=top_k, params=params,
        )
