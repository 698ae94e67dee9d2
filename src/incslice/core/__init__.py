"""Core components for slice finding."""

from .data_structures import EvalMode, Predicate, PruningStrategy, RunParams, Slice, SliceStats, TopK
from .dataset import SliceDataset
from .encoding import OffsetEncoder, compute_offsets
from .identity import IdMapping, SliceIdentity
from .lattice import LatticeLevel, LatticeStore, RunState
from .persistence import load_state, save_state
from .result import LevelTrace, SliceResult

__all__ = [
    'EvalMode',
    'Predicate',
    'PruningStrategy',
    'RunParams',
    'Slice',
    'SliceStats',
    'TopK',
    'SliceDataset',
    'OffsetEncoder',
    'compute_offsets',
    'IdMapping',
    'SliceIdentity',
    'LatticeLevel',
    'LatticeStore',
    'RunState',
    'load_state',
    'save_state',
    'LevelTrace',
    'SliceResult',
]
