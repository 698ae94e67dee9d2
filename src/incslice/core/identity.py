"""Canonical integer identities for slices.

A slice with category vector ``v`` (0 = unconstrained) gets the mixed-radix id

    id(v) = sum_j v_j * prod_{i<j} (d_i + 1)

where ``d_i`` is the domain size of feature ``i``. The mapping is a bijection
between category vectors and ``[0, prod_j (d_j + 1))``, and ascending id order
equals reverse-lexicographic order of the category vectors, whatever the
domain sizes are. Two runs with different offsets therefore break score ties
the same way.
"""
from typing import Tuple

import numpy as np
import scipy.sparse as sparse

from ..exceptions import InvalidDataError

_INT64_LIMIT = int(np.iinfo(np.int64).max)


class SliceIdentity:
    """Computes canonical ids for one set of feature domains.

    Ids are ``int64`` when the id space fits, otherwise Python ints held in
    ``object`` arrays so that wide lattices never overflow.

    Example:
        >>> ident = SliceIdentity([2, 2])
        >>> ident.ids_from_categories(np.array([[1, 0], [0, 1], [2, 2]])).tolist()
        [1, 3, 8]
    """

    def __init__(self, domains: np.ndarray):
        domains = np.asarray(domains, dtype=np.int64).reshape(-1)
        if domains.size and domains.min() < 0:
            raise InvalidDataError("Domain sizes must be non-negative")

        radix = []
        space = 1
        for d in domains.tolist():
            radix.append(space)
            space *= d + 1

        self.domains = domains
        self.space = space
        self.dtype = np.dtype(np.int64) if space <= _INT64_LIMIT else np.dtype(object)
        self.radix = np.array(radix, dtype=self.dtype)
        self.bases = np.array([d + 1 for d in domains.tolist()], dtype=self.dtype)

    @classmethod
    def for_encoder(cls, encoder) -> 'SliceIdentity':
        return cls(encoder.domains)

    @property
    def n_features(self) -> int:
        return int(self.domains.size)

    def ids_from_categories(self, categories: np.ndarray) -> np.ndarray:
        categories = np.asarray(categories, dtype=np.int64).reshape(-1, self.n_features)
        if self.dtype != object:
            return categories @ self.radix

        ids = np.zeros(categories.shape[0], dtype=object)
        for j in range(self.n_features):
            ids = ids + categories[:, j].astype(object) * self.radix[j]
        return ids

    def ids_from_onehot(self, slices: sparse.spmatrix, encoder) -> np.ndarray:
        return self.ids_from_categories(encoder.decode(slices))

    def categories_from_ids(self, ids: np.ndarray) -> np.ndarray:
        ids = np.asarray(ids, dtype=self.dtype).reshape(-1)
        categories = np.zeros((ids.size, self.n_features), dtype=np.int64)
        for j in range(self.n_features):
            categories[:, j] = ((ids // self.radix[j]) % self.bases[j]).astype(np.int64)
        return categories

    def __eq__(self, other) -> bool:
        return isinstance(other, SliceIdentity) and np.array_equal(self.domains, other.domains)

    def __hash__(self) -> int:
        return hash(self.domains.tobytes())


class IdMapping:
    """Bijective table between raw canonical ids and dense codes ``0..n-1``.

    Built once from the ids of a lattice level and used in both directions.
    Keys are kept sorted, so codes preserve id order.
    """

    def __init__(self, keys: np.ndarray):
        keys = np.asarray(keys).reshape(-1)
        if keys.size > 1 and not np.all(keys[1:] > keys[:-1]):
            raise InvalidDataError("IdMapping keys must be strictly increasing")
        self.keys = keys

    @classmethod
    def build(cls, ids: np.ndarray) -> 'IdMapping':
        return cls(np.unique(np.asarray(ids).reshape(-1)))

    def __len__(self) -> int:
        return int(self.keys.size)

    def lookup(self, ids: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Find ids in the table.

        Returns:
            Tuple of (found mask, codes); codes are only meaningful where found
        """
        ids = np.asarray(ids).reshape(-1)
        if self.keys.size == 0 or ids.size == 0:
            return np.zeros(ids.size, dtype=bool), np.zeros(ids.size, dtype=np.int64)

        pos = np.searchsorted(self.keys, ids)
        clipped = np.minimum(pos, self.keys.size - 1)
        found = (pos < self.keys.size) & (self.keys[clipped] == ids)
        return found.astype(bool), clipped.astype(np.int64)

    def encode(self, ids: np.ndarray) -> np.ndarray:
        found, codes = self.lookup(ids)
        if not found.all():
            raise InvalidDataError(f"{int((~found).sum())} ids are missing from the mapping table")
        return codes

    def decode(self, codes: np.ndarray) -> np.ndarray:
        codes = np.asarray(codes, dtype=np.int64).reshape(-1)
        if codes.size and (codes.min() < 0 or codes.max() >= self.keys.size):
            raise InvalidDataError("Code outside the mapping table")
        return self.keys[codes]

    def __eq__(self, other) -> bool:
        return isinstance(other, IdMapping) and np.array_equal(self.keys, other.keys)

    def __repr__(self) -> str:
        return f"IdMapping(n={len(self)})"
