"""Main interface for incremental slice finding."""
from pathlib import Path
from typing import List, Optional, Sequence, Union
import logging

import numpy as np
import pandas as pd

from .core.data_structures import Slice
from .core.dataset import SliceDataset
from .core.lattice import RunState
from .core.persistence import load_state, save_state
from .core.result import SliceResult
from .factory import AlgorithmRegistry
from .config import config
from .exceptions import NotFittedError

logger = logging.getLogger(__name__)

DataSource = Union[pd.DataFrame, np.ndarray, str, Path, SliceDataset]


class SliceFinder:
    """Main interface for slice finding.

    Provides a simple API that threads the run state through a chain of
    ``fit`` and ``update`` calls.

    Args:
        algorithm: Algorithm name (e.g., 'sliceline', 'incsliceline')
        state: Optional RunState (or path to a saved state) to continue from
        **kwargs: Run parameters (k, min_support, alpha, ...) and n_jobs

    Example:
        >>> finder = SliceFinder('incsliceline', k=4, min_support=32)
        >>> slices = finder.fit(X, errors)
        >>> slices = finder.update(X_new, errors_new, removed=[3, 7])
        >>> finder.save('state.npz')

        >>> # Continue later from the saved state
        >>> finder = SliceFinder('incsliceline', state='state.npz', k=4, min_support=32)
        >>> slices = finder.update(X_more, errors_more)
    """

    def __init__(self, algorithm: str = 'incsliceline',
                 state: Optional[Union[RunState, str, Path]] = None, **kwargs):
        if not config.suppress_prints:
            config.setup_logging()

        kwargs.setdefault('n_jobs', config.n_jobs)
        if config.verbose:
            kwargs.setdefault('verbose', True)

        self.algorithm_name = algorithm
        algorithm_class = AlgorithmRegistry.get(algorithm)
        self.algorithm = algorithm_class(**kwargs)

        if isinstance(state, (str, Path)):
            state = load_state(state)
        self.state: Optional[RunState] = state
        self.feature_names: Optional[List[str]] = None

        logger.info(f"Initialized {algorithm} slice finder with {self.algorithm.params}")

    def fit(self, data: DataSource, errors=None, error_column: Optional[str] = None,
            feature_names: Optional[Sequence[str]] = None) -> List[Slice]:
        """Find the top-k slices from scratch, discarding any held state.

        Returns:
            List of top-k slices
        """
        self.state = None
        return self._run(data, errors, None, error_column, feature_names)

    def update(self, data: Optional[DataSource] = None, errors=None, removed: Optional[Sequence[int]] = None,
               error_column: Optional[str] = None) -> List[Slice]:
        """Add and remove rows and refresh the top-k incrementally.

        Args:
            data: Added rows (None for a removal-only update)
            errors: Errors of the added rows
            removed: Positions of rows to delete, relative to the current data
            error_column: Name of the error column in a DataFrame or CSV

        Returns:
            List of top-k slices over the updated data

        Raises:
            NotFittedError: If there is no state to update
        """
        if self.state is None:
            raise NotFittedError("No state to update. Call fit() first or pass a state.")

        if data is None:
            data = SliceDataset.empty(self.state.X.shape[1], self.feature_names)
        return self._run(data, errors, removed, error_column, self.feature_names)

    def _run(self, data, errors, removed, error_column, feature_names) -> List[Slice]:
        if not isinstance(data, SliceDataset):
            data = SliceDataset(data, errors, error_column=error_column, feature_names=feature_names)
        self.feature_names = data.feature_names

        self.algorithm.fit(data, prior=self.state, removed=removed)
        self.state = self.algorithm.get_state()
        return self.algorithm.get_slices()

    def get_slices(self) -> List[Slice]:
        """Get slices from the last run.

        Raises:
            NotFittedError: If no run has happened yet
        """
        return self.algorithm.get_slices()

    def get_result(self) -> SliceResult:
        """Get the result of the last run.

        Raises:
            NotFittedError: If no run has happened yet
        """
        return self.algorithm.get_result()

    def save(self, path: Union[str, Path]) -> Path:
        """Persist the current state for a later incremental run."""
        if self.state is None:
            raise NotFittedError("No state to save. Call fit() first.")
        return save_state(self.state, path)

    def __repr__(self) -> str:
        """String representation."""
        rows = 'none' if self.state is None else self.state.X.shape[0]
        return f"SliceFinder(algorithm='{self.algorithm_name}', rows={rows})"
