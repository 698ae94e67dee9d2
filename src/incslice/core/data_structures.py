"""Core data structures for slice finding.

This module provides the value types shared by the encoder, the pruning
and evaluation routines and the orchestrating algorithms.
"""
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

import numpy as np
import scipy.sparse as sparse

from ..exceptions import InvalidParameterError
from ..utils.sparse import IndicatorHelper
from ..utils.validators import validate_alpha, validate_count, validate_support


class EvalMode(str, Enum):
    """How candidate slices of one level are evaluated."""

    COMBINED = 'combined'
    BLOCKED = 'blocked'


class PruningStrategy(str, Enum):
    """Selects the incremental pruning rules of a run.

    Standard lattice pruning (minimum support, score upper bound, missing
    parents) is always applied. The strategy only toggles the rules that
    exploit the prior run:

    ``maxscore``
        level 1: skip unaffected columns whose rescaled score bound is
        below the top-k cutoff.
    ``score``
        level >= 2: drop unaffected prior slices whose rescaled bound over
        their exact prior stats is below the cutoff.
    ``size``
        level >= 2: reuse unaffected prior slices that were already below
        minimum support.
    ``approximate``
        level 1: skip changed columns whose changed rows are no worse than
        average and whose prior score was below the cutoff. Not exact: it
        may miss true top-k slices, so only ``all`` enables it.
    """

    ALL = 'all'
    EXACT_ONLY = 'exact-only'
    SCORE_ONLY = 'score-only'
    MAXSCORE_ONLY = 'maxscore-only'
    SIZE_ONLY = 'size-only'
    NONE = 'none'

    @property
    def rules(self) -> FrozenSet[str]:
        return _STRATEGY_RULES[self]

    def uses(self, rule: str) -> bool:
        return rule in self.rules

    @property
    def is_exact(self) -> bool:
        return 'approximate' not in self.rules


_STRATEGY_RULES = {
    PruningStrategy.ALL: frozenset({'maxscore', 'score', 'size', 'approximate'}),
    PruningStrategy.EXACT_ONLY: frozenset({'maxscore', 'score', 'size'}),
    PruningStrategy.SCORE_ONLY: frozenset({'score'}),
    PruningStrategy.MAXSCORE_ONLY: frozenset({'maxscore'}),
    PruningStrategy.SIZE_ONLY: frozenset({'size'}),
    PruningStrategy.NONE: frozenset(),
}


@dataclass(frozen=True)
class RunParams:
    """Run configuration, fixed across a chain of incremental calls.

    Attributes:
        k: Number of top slices to return (0 returns nothing)
        max_level: Maximum number of predicates per slice (0 = unlimited)
        min_support: Minimum number of rows a slice must cover
        alpha: Weight of the error term against the size term in [0, 1]
        eval_mode: 'combined' or 'blocked' candidate evaluation
        block_size: Candidates per block in blocked evaluation
        pruning_strategy: Incremental pruning rule selector
        feature_selection: Evaluate on the selected level-1 columns only
        compact_encoding: Persist lattice levels as id codes instead of one-hot rows
        verbose: Log per-level progress at INFO instead of DEBUG
    """

    k: int = 4
    max_level: int = 0
    min_support: int = 32
    alpha: float = 0.5
    eval_mode: EvalMode = EvalMode.BLOCKED
    block_size: int = 16
    pruning_strategy: PruningStrategy = PruningStrategy.EXACT_ONLY
    feature_selection: bool = False
    compact_encoding: bool = False
    verbose: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'k', validate_count(self.k, 'k', minimum=0))
        object.__setattr__(self, 'max_level', validate_count(self.max_level, 'max_level', minimum=0))
        object.__setattr__(self, 'min_support', validate_support(self.min_support))
        object.__setattr__(self, 'alpha', validate_alpha(self.alpha))
        object.__setattr__(self, 'block_size', validate_count(self.block_size, 'block_size', minimum=1))
        try:
            object.__setattr__(self, 'eval_mode', EvalMode(self.eval_mode))
        except ValueError:
            raise InvalidParameterError(
                f"eval_mode must be one of {[m.value for m in EvalMode]}, got {self.eval_mode!r}"
            )
        try:
            object.__setattr__(self, 'pruning_strategy', PruningStrategy(self.pruning_strategy))
        except ValueError:
            raise InvalidParameterError(
                f"pruning_strategy must be one of {[s.value for s in PruningStrategy]}, "
                f"got {self.pruning_strategy!r}"
            )

    def matches(self, other: 'RunParams') -> bool:
        """Whether two configurations may be chained incrementally (verbose is ignored)."""
        return replace(self, verbose=False) == replace(other, verbose=False)

    def differences(self, other: 'RunParams') -> List[str]:
        return [
            f.name for f in fields(self)
            if f.name != 'verbose' and getattr(self, f.name) != getattr(other, f.name)
        ]

    def to_dict(self) -> Dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result['eval_mode'] = self.eval_mode.value
        result['pruning_strategy'] = self.pruning_strategy.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RunParams':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidParameterError(f"Unknown run parameters: {sorted(unknown)}")
        return cls(**data)


@dataclass
class SliceStats:
    """Per-slice statistics aligned row-wise with a slice matrix.

    Attributes:
        score: Slice score (-inf for empty slices)
        error: Total error of the rows in the slice
        max_error: Largest single-row error in the slice
        size: Number of rows in the slice
    """

    score: np.ndarray
    error: np.ndarray
    max_error: np.ndarray
    size: np.ndarray

    def __post_init__(self):
        self.score = np.asarray(self.score, dtype=float).reshape(-1)
        self.error = np.asarray(self.error, dtype=float).reshape(-1)
        self.max_error = np.asarray(self.max_error, dtype=float).reshape(-1)
        self.size = np.asarray(self.size, dtype=float).reshape(-1)
        n = self.score.size
        if not (self.error.size == self.max_error.size == self.size.size == n):
            raise ValueError("SliceStats columns must have the same length")

    def __len__(self) -> int:
        return self.score.size

    @classmethod
    def empty(cls) -> 'SliceStats':
        return cls(np.empty(0), np.empty(0), np.empty(0), np.empty(0))

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> 'SliceStats':
        """Build from an ``(n, 4)`` array of [score, error, max_error, size]."""
        matrix = np.asarray(matrix, dtype=float).reshape(-1, 4)
        return cls(matrix[:, 0], matrix[:, 1], matrix[:, 2], matrix[:, 3])

    @classmethod
    def concat(cls, parts: Sequence['SliceStats']) -> 'SliceStats':
        parts = list(parts)
        if not parts:
            return cls.empty()
        return cls(
            np.concatenate([p.score for p in parts]),
            np.concatenate([p.error for p in parts]),
            np.concatenate([p.max_error for p in parts]),
            np.concatenate([p.size for p in parts]),
        )

    def as_matrix(self) -> np.ndarray:
        return np.column_stack([self.score, self.error, self.max_error, self.size])

    def take(self, index: np.ndarray) -> 'SliceStats':
        return SliceStats(self.score[index], self.error[index], self.max_error[index], self.size[index])

    def valid_mask(self, min_support: int) -> np.ndarray:
        """Rows that may enter the top-k or act as join parents."""
        return (self.size >= min_support) & (self.error > 0)

    def with_scores(self, score: np.ndarray) -> 'SliceStats':
        return SliceStats(score, self.error.copy(), self.max_error.copy(), self.size.copy())

    def equals(self, other: 'SliceStats') -> bool:
        return len(self) == len(other) and np.array_equal(self.as_matrix(), other.as_matrix())


class Predicate:
    """A single ``feature == value`` condition.

    Example:
        >>> p = Predicate(0, 3)
        >>> print(p.to_string())
        f0=3

    Attributes:
        feature: Column index in the feature matrix
        value: Category id (always >= 1)
        name: Optional display name of the feature
    """

    def __init__(self, feature: int, value: int, name: Optional[str] = None):
        if value < 1:
            raise ValueError(f"Predicate value must be a category id >= 1, got {value}")

        self.feature = int(feature)
        self.value = int(value)
        self.name = name

    @property
    def tuple(self):
        return (self.feature, self.value)

    @property
    def label(self) -> str:
        return self.name if self.name is not None else f"f{self.feature}"

    def to_string(self) -> str:
        return f"{self.label}={self.value}"

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Predicate({self.feature}, {self.value})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Predicate):
            return False
        return self.tuple == other.tuple

    def __hash__(self) -> int:
        return hash(self.tuple)


@dataclass
class Slice:
    """A conjunction of predicates with its statistics.

    Example:
        >>> s = Slice.from_categories([1, 0, 2], score=0.4, error=10.0, max_error=5.0, size=3)
        >>> print(s.to_string())
        f0=1 AND f2=2

    Attributes:
        predicates: Constrained features, ordered by feature index
        score: Slice score
        error: Total error of the slice
        max_error: Largest single-row error in the slice
        size: Number of rows in the slice
    """

    predicates: List[Predicate] = field(default_factory=list)
    score: float = float('-inf')
    error: float = 0.0
    max_error: float = 0.0
    size: int = 0

    @classmethod
    def from_categories(cls, categories: Sequence[int], feature_names: Optional[Sequence[str]] = None,
                        **stats) -> 'Slice':
        predicates = []
        for j, value in enumerate(categories):
            if value != 0:
                name = feature_names[j] if feature_names is not None else None
                predicates.append(Predicate(j, int(value), name))
        return cls(predicates=predicates, **stats)

    @property
    def level(self) -> int:
        return len(self.predicates)

    def categories(self, n_features: int) -> np.ndarray:
        result = np.zeros(n_features, dtype=np.int64)
        for p in self.predicates:
            result[p.feature] = p.value
        return result

    def to_string(self) -> str:
        if not self.predicates:
            return "<all rows>"
        return " AND ".join(p.to_string() for p in self.predicates)

    def to_dict(self) -> dict:
        return {
            'slice': self.to_string(),
            'predicates': {p.label: p.value for p in self.predicates},
            'score': self.score,
            'error': self.error,
            'max_error': self.max_error,
            'size': int(self.size),
            'level': self.level,
        }

    def __len__(self) -> int:
        return self.level

    def __str__(self) -> str:
        return f"{self.to_string()} : {self.score:.4f}"


@dataclass
class TopK:
    """Current top-k slices, sorted by (score desc, canonical id asc).

    Attributes:
        slices: One-hot slice rows
        stats: Statistics aligned with ``slices``
        ids: Canonical ids aligned with ``slices``
    """

    slices: sparse.csr_matrix
    stats: SliceStats
    ids: np.ndarray

    @classmethod
    def empty(cls, n_cols: int, id_dtype=np.int64) -> 'TopK':
        return cls(IndicatorHelper.empty(n_cols), SliceStats.empty(), np.empty(0, dtype=id_dtype))

    def __len__(self) -> int:
        return self.slices.shape[0]

    def cutoff(self, k: int) -> float:
        """Lowest score a slice needs to possibly enter the top-k.

        -inf while fewer than k slices are known, +inf when k is 0.
        """
        if k == 0:
            return np.inf
        if len(self) < k:
            return -np.inf
        return float(self.stats.score[k - 1])

    def score_range(self):
        if len(self) == 0:
            return np.nan, np.nan
        return float(self.stats.score[0]), float(self.stats.score[-1])
