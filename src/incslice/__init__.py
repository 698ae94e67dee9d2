"""Incremental Slice Finding - top-k problematic data slices

Finds the conjunctions of feature predicates (slices) on which a model's
errors are worst, and keeps them current as rows are added and removed
without recomputing from scratch.

Example:
    >>> from incslice import SliceFinder
    >>> finder = SliceFinder('incsliceline', k=4, min_support=32)
    >>> slices = finder.fit('data.csv', error_column='error')
    >>> slices = finder.update('more.csv', error_column='error', removed=[0, 1])
    >>> for s in slices:
    ...     print(f"{s.to_string()} : {s.score:.4f}")
"""

__version__ = '0.1.0'
__author__ = 'Slice Finding Team'

from .miner import SliceFinder
from .core.data_structures import EvalMode, Predicate, PruningStrategy, RunParams, Slice, SliceStats, TopK
from .core.dataset import SliceDataset
from .core.encoding import OffsetEncoder
from .core.identity import IdMapping, SliceIdentity
from .core.lattice import LatticeLevel, LatticeStore, RunState
from .core.persistence import load_state, save_state
from .core.result import LevelTrace, SliceResult

from .algorithms.base_algorithm import BaseSliceFinder
from .algorithms.sliceline import IncSliceLine, SliceLine

from .factory import AlgorithmRegistry

from .config import config

from .exceptions import (
    SliceFinderError,
    InvalidDataError,
    InvalidAlgorithmError,
    InvalidParameterError,
    IncompletePriorStateError,
    ParameterMismatchError,
    NotFittedError,
)

__all__ = [
    'SliceFinder',
    'EvalMode',
    'Predicate',
    'PruningStrategy',
    'RunParams',
    'Slice',
    'SliceStats',
    'TopK',
    'SliceDataset',
    'OffsetEncoder',
    'IdMapping',
    'SliceIdentity',
    'LatticeLevel',
    'LatticeStore',
    'RunState',
    'load_state',
    'save_state',
    'LevelTrace',
    'SliceResult',
    'BaseSliceFinder',
    'IncSliceLine',
    'SliceLine',
    'AlgorithmRegistry',
    'config',
    'SliceFinderError',
    'InvalidDataError',
    'InvalidAlgorithmError',
    'InvalidParameterError',
    'IncompletePriorStateError',
    'ParameterMismatchError',
    'NotFittedError',
]


def list_algorithms():
    """List all available algorithms."""
    return AlgorithmRegistry.list_algorithms()
