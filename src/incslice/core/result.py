"""Result container for slice finding."""
import json
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from .data_structures import Slice
from .lattice import RunState


@dataclass
class LevelTrace:
    """Debug record of one lattice level.

    Attributes:
        level: Lattice level
        generated: Number of candidates generated (one-hot columns at level 1)
        valid: Number of evaluated candidates meeting support and error > 0
        max_score: Best top-k score after the level (NaN if the top-k is empty)
        min_score: Worst top-k score after the level (NaN if the top-k is empty)
        evaluated: Number of candidates actually evaluated
        reused: Number of candidates reused from the prior lattice
    """

    level: int
    generated: int
    valid: int
    max_score: float
    min_score: float
    evaluated: int = 0
    reused: int = 0


def _json_float(value: float) -> Optional[float]:
    return None if value is None or not math.isfinite(value) else float(value)


class SliceResult:
    """Container for slice finding results.

    Stores the decoded top-k slices, the per-level debug trace and the
    state to hand to the next incremental run.

    Attributes:
        slices: Top-k slices, best first
        trace: Per-level LevelTrace records
        state: RunState for the next incremental run
        algorithm: Name of algorithm used
        execution_time: Time taken to find the slices (seconds)
        metadata: Additional run metadata

    Example:
        >>> result = finder.get_result()
        >>> print(result.summary())
        >>> df = result.to_dataframe()
    """

    def __init__(
        self,
        slices: List[Slice],
        trace: List[LevelTrace],
        state: RunState,
        algorithm: str,
        execution_time: Optional[float] = None,
        **metadata
    ):
        self.slices = slices
        self.trace = trace
        self.state = state
        self.algorithm = algorithm
        self.execution_time = execution_time
        self.metadata = metadata
        self.timestamp = datetime.now()

    @property
    def params(self):
        return self.state.params

    @property
    def top_k_matrix(self) -> np.ndarray:
        """Top-k slices as a ``(k, n_features)`` category matrix (0 = unconstrained)."""
        return self.state.encoder.decode(self.state.top_k.slices)

    @property
    def top_k_stats(self) -> np.ndarray:
        """Top-k statistics as a ``(k, 4)`` matrix of [score, error, max_error, size]."""
        return self.state.top_k.stats.as_matrix().reshape(-1, 4)

    def __len__(self) -> int:
        """Return number of slices."""
        return len(self.slices)

    def __iter__(self):
        """Iterate over slices."""
        return iter(self.slices)

    def __getitem__(self, index: int) -> Slice:
        """Get slice by index."""
        return self.slices[index]

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary.

        Returns:
            Dictionary with all result information
        """
        slices = []
        for s in self.slices:
            row = s.to_dict()
            row['score'] = _json_float(row['score'])
            slices.append(row)

        trace = []
        for t in self.trace:
            row = asdict(t)
            row['max_score'] = _json_float(row['max_score'])
            row['min_score'] = _json_float(row['min_score'])
            trace.append(row)

        return {
            'algorithm': self.algorithm,
            'params': self.params.to_dict(),
            'num_slices': len(self.slices),
            'num_rows': int(self.state.X.shape[0]),
            'execution_time': self.execution_time,
            'timestamp': self.timestamp.isoformat(),
            'slices': slices,
            'trace': trace,
            'metadata': self.metadata
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert result to JSON string.

        Args:
            indent: JSON indentation level

        Returns:
            JSON string representation
        """
        return json.dumps(self.to_dict(), indent=indent)

    def save_json(self, filepath: str):
        """Save result to JSON file.

        Args:
            filepath: Path to output file
        """
        with open(filepath, 'w') as f:
            f.write(self.to_json())

    def to_dataframe(self) -> pd.DataFrame:
        """Convert result to pandas DataFrame.

        Returns:
            DataFrame with slice, level, score, error, max_error and size columns
        """
        data = [
            {
                'slice': s.to_string(),
                'level': s.level,
                'score': s.score,
                'error': s.error,
                'max_error': s.max_error,
                'size': int(s.size),
            }
            for s in self.slices
        ]
        return pd.DataFrame(data, columns=['slice', 'level', 'score', 'error', 'max_error', 'size'])

    def save_csv(self, filepath: str):
        """Save result to CSV file.

        Args:
            filepath: Path to output file
        """
        df = self.to_dataframe()
        df.to_csv(filepath, index=False)

    def trace_frame(self) -> pd.DataFrame:
        """Per-level debug trace as a DataFrame."""
        columns = ['level', 'generated', 'valid', 'max_score', 'min_score', 'evaluated', 'reused']
        return pd.DataFrame([asdict(t) for t in self.trace], columns=columns)

    def summary(self) -> str:
        """Get a summary of the run.

        Returns:
            Summary string
        """
        lines = [
            f"Algorithm: {self.algorithm}",
            f"Rows: {self.state.X.shape[0]}",
            f"k: {self.params.k}, Minimum Support: {self.params.min_support}, Alpha: {self.params.alpha}",
            f"Pruning: {self.params.pruning_strategy.value}",
            f"Levels: {len(self.trace)}",
            f"Slices Found: {len(self.slices)}",
        ]

        if self.execution_time is not None:
            lines.append(f"Execution Time: {self.execution_time:.3f}s")

        if self.slices:
            lines.append("\nTop Slices:")
            for i, s in enumerate(self.slices, 1):
                lines.append(f"  {i}. {s.to_string()} (score={s.score:.4f}, size={int(s.size)}, error={s.error:g})")

        return "\n".join(lines)

    def __str__(self) -> str:
        """String representation."""
        return self.summary()

    def __repr__(self) -> str:
        """Detailed representation."""
        return f"SliceResult(algorithm='{self.algorithm}', num_slices={len(self.slices)})"
