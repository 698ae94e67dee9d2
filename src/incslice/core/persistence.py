"""Saving and loading run state between incremental runs.

State is written as a single compressed ``.npz`` archive holding only plain
numeric and string arrays, so it loads with ``allow_pickle=False``.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Union

import numpy as np
import scipy.sparse as sparse

from .data_structures import RunParams, SliceStats, TopK
from .encoding import OffsetEncoder
from .identity import IdMapping, SliceIdentity
from .lattice import LatticeLevel, LatticeStore, RunState
from ..exceptions import InvalidDataError
from ..utils.sparse import IndicatorHelper

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def _pack_onehot(arrays: Dict[str, np.ndarray], prefix: str, matrix: sparse.csr_matrix):
    coo = matrix.tocoo()
    arrays[f"{prefix}_rows"] = coo.row.astype(np.int64)
    arrays[f"{prefix}_cols"] = coo.col.astype(np.int64)
    arrays[f"{prefix}_shape"] = np.array(matrix.shape, dtype=np.int64)


def _unpack_onehot(archive, prefix: str) -> sparse.csr_matrix:
    shape = tuple(int(v) for v in archive[f"{prefix}_shape"])
    return IndicatorHelper.from_triplets(archive[f"{prefix}_rows"], archive[f"{prefix}_cols"], shape)


def _pack_ids(ids: np.ndarray) -> np.ndarray:
    if ids.dtype == object:
        return np.array([str(int(v)) for v in ids], dtype=str)
    return ids.astype(np.int64)


def _unpack_ids(values: np.ndarray) -> np.ndarray:
    if values.dtype.kind == 'U':
        return np.array([int(v) for v in values], dtype=object)
    return values.astype(np.int64)


def save_state(state: RunState, path: Union[str, Path]) -> Path:
    """Write a run state to ``path``.

    Args:
        state: State returned by a finished run
        path: Target file, written as given

    Returns:
        Path of the written archive
    """
    path = Path(path)
    arrays: Dict[str, np.ndarray] = {
        'format_version': np.array(FORMAT_VERSION),
        'X': np.asarray(state.X, dtype=np.int64),
        'errors': np.asarray(state.errors, dtype=float),
        'foffb': np.asarray(state.foffb, dtype=np.int64),
        'foffe': np.asarray(state.foffe, dtype=np.int64),
        'params': np.array(json.dumps(state.params.to_dict())),
        'topk_stats': state.top_k.stats.as_matrix().reshape(-1, 4),
        'levels': np.array(state.lattice.levels, dtype=np.int64),
    }
    _pack_onehot(arrays, 'topk', state.top_k.slices)

    compact = []
    for entry in state.lattice:
        prefix = f"level{entry.level}"
        arrays[f"{prefix}_stats"] = entry.stats.as_matrix().reshape(-1, 4)
        if entry.compact:
            arrays[f"{prefix}_keys"] = _pack_ids(entry.mapping.keys)
            arrays[f"{prefix}_codes"] = entry.codes.astype(np.int64)
        else:
            _pack_onehot(arrays, prefix, entry.slices)
        compact.append(entry.compact)
    arrays['compact'] = np.array(compact, dtype=bool)

    with open(path, 'wb') as f:
        np.savez_compressed(f, **arrays)

    logger.info(f"Saved state: {state.X.shape[0]} rows, {state.lattice.total_slices()} lattice slices -> {path}")
    return path


def load_state(path: Union[str, Path]) -> RunState:
    """Read a run state written by ``save_state``.

    Raises:
        InvalidDataError: If the file is not a state archive of a known version
    """
    path = Path(path)
    try:
        archive = np.load(path, allow_pickle=False)
    except (OSError, ValueError) as error:
        raise InvalidDataError(f"Cannot read state file {path}: {error}")

    if not hasattr(archive, 'files'):
        raise InvalidDataError(f"{path} is not a slice finder state file")

    with archive:
        if 'format_version' not in archive.files:
            raise InvalidDataError(f"{path} is not a slice finder state file")
        version = int(archive['format_version'])
        if version != FORMAT_VERSION:
            raise InvalidDataError(f"Unsupported state format version {version}")

        params = RunParams.from_dict(json.loads(str(archive['params'][()])))
        foffb = archive['foffb']
        foffe = archive['foffe']

        top_slices = _unpack_onehot(archive, 'topk')
        lattice = LatticeStore()
        for level, compact in zip(archive['levels'].tolist(), archive['compact'].tolist()):
            prefix = f"level{level}"
            stats = SliceStats.from_matrix(archive[f"{prefix}_stats"])
            if compact:
                mapping = IdMapping(_unpack_ids(archive[f"{prefix}_keys"]))
                lattice.put(LatticeLevel(level, stats, codes=archive[f"{prefix}_codes"], mapping=mapping))
            else:
                lattice.put(LatticeLevel(level, stats, slices=_unpack_onehot(archive, prefix)))

        X = archive['X']
        errors = archive['errors']
        top_stats = SliceStats.from_matrix(archive['topk_stats'])

    encoder = OffsetEncoder(foffb, foffe)
    top_ids = SliceIdentity.for_encoder(encoder).ids_from_onehot(top_slices, encoder)
    state = RunState(
        X=X, errors=errors, foffb=foffb, foffe=foffe, lattice=lattice,
        top_k=TopK(top_slices, top_stats, top_ids), params=params,
    )
    logger.info(f"Loaded state: {X.shape[0]} rows, {lattice!r} from {path}")
    return state
