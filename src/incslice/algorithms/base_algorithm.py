"""Base class for all slice finding algorithms."""
from abc import ABC, abstractmethod
from dataclasses import fields
from typing import Any, Dict, List, Optional, Sequence, Union
import logging
import time

import numpy as np
import pandas as pd

from ..core.data_structures import RunParams, Slice
from ..core.dataset import SliceDataset
from ..core.lattice import RunState
from ..core.result import SliceResult
from ..exceptions import InvalidParameterError, NotFittedError
from ..utils.validators import validate_n_jobs

logger = logging.getLogger(__name__)

_PARAM_NAMES = tuple(f.name for f in fields(RunParams))


class BaseSliceFinder(ABC):
    """Abstract base class for slice finding algorithms.

    All slice finders should inherit from this class and implement the
    _find() method.

    Attributes:
        params: Validated RunParams
        n_jobs: Worker threads for blocked evaluation
        dataset: SliceDataset of the last fit (the added rows for incremental fits)
        result: SliceResult of the last fit
        execution_time: Time taken by the last fit
        is_fitted: Whether the algorithm has been fitted

    Example:
        >>> finder = IncSliceLine(k=4, min_support=32)
        >>> finder.fit(X, errors)
        >>> slices = finder.get_slices()
        >>> finder.fit(X_new, errors_new, prior=finder.get_state())
    """

    def __init__(self, k: int = 4, max_level: int = 0, min_support: int = 32, alpha: float = 0.5,
                 eval_mode: str = 'blocked', block_size: int = 16, pruning_strategy: str = 'exact-only',
                 feature_selection: bool = False, compact_encoding: bool = False,
                 verbose: bool = False, n_jobs: int = 1, **kwargs):
        """Initialize base algorithm.

        Args:
            k: Number of top slices to return
            max_level: Maximum number of predicates per slice (0 = unlimited)
            min_support: Minimum number of rows per slice
            alpha: Weight of the error term against the size term in [0, 1]
            eval_mode: 'combined' or 'blocked'
            block_size: Candidates per block in blocked evaluation
            pruning_strategy: One of all, exact-only, score-only, maxscore-only, size-only, none
            feature_selection: Evaluate on the selected level-1 columns only
            compact_encoding: Persist lattice levels as id codes
            verbose: Log per-level progress at INFO
            n_jobs: Worker threads for blocked evaluation (-1 = all cores)
            **kwargs: Additional metadata recorded with results

        Raises:
            InvalidParameterError: If parameters are invalid
        """
        self.params = RunParams(
            k=k, max_level=max_level, min_support=min_support, alpha=alpha, eval_mode=eval_mode,
            block_size=block_size, pruning_strategy=pruning_strategy,
            feature_selection=feature_selection, compact_encoding=compact_encoding, verbose=verbose,
        )
        self.n_jobs = validate_n_jobs(n_jobs)
        self.dataset: Optional[SliceDataset] = None
        self.result: Optional[SliceResult] = None
        self.execution_time: Optional[float] = None
        self.is_fitted = False
        self._params = kwargs

        logger.debug(f"Initialized {self.__class__.__name__} with {self.params}")

    @abstractmethod
    def _find(self, dataset: SliceDataset, prior: Optional[RunState],
              removed: Optional[np.ndarray]) -> SliceResult:
        """Find the top-k slices.

        This method must be implemented by subclasses.

        Args:
            dataset: Added rows (all rows for a fresh run)
            prior: State of the previous run, or None for a fresh run
            removed: Row positions of ``prior.X`` to delete, or None

        Returns:
            SliceResult carrying the next RunState
        """
        raise NotImplementedError("Subclass must implement _find() method")

    def fit(self, data: Union[pd.DataFrame, np.ndarray, str, SliceDataset],
            errors: Optional[Union[np.ndarray, Sequence[float]]] = None,
            prior: Optional[RunState] = None,
            removed: Optional[Sequence[int]] = None,
            error_column: Optional[str] = None,
            feature_names: Optional[Sequence[str]] = None) -> 'BaseSliceFinder':
        """Run slice finding on the data.

        Args:
            data: Features (DataFrame, CSV path, array or SliceDataset)
            errors: Per-row errors, unless ``data`` carries them
            prior: RunState of the previous run for an incremental fit
            removed: Row positions of the prior data to delete
            error_column: Name of the error column in a DataFrame or CSV
            feature_names: Display names for the features

        Returns:
            Self for method chaining

        Raises:
            Exception: If slice finding fails
        """
        if isinstance(data, SliceDataset):
            self.dataset = data
        else:
            self.dataset = SliceDataset(data, errors, error_column=error_column, feature_names=feature_names)

        removed_rows = None if removed is None else np.asarray(removed, dtype=np.int64).reshape(-1)

        mode = 'incremental' if prior is not None else 'fresh'
        logger.info(
            f"Fitting {self.__class__.__name__} ({mode}) on {self.dataset.row_count} added rows"
            + (f", {removed_rows.size} removed" if removed_rows is not None else "")
        )

        start_time = time.time()
        try:
            result = self._find(self.dataset, prior, removed_rows)
            self.execution_time = time.time() - start_time
            result.execution_time = self.execution_time
            self.result = result
            self.is_fitted = True

            logger.info(f"Slice finding completed in {self.execution_time:.3f}s, found {len(result)} slices")

        except Exception as e:
            logger.error(f"Slice finding failed: {e}")
            raise

        return self

    def _check_fitted(self):
        if not self.is_fitted:
            raise NotFittedError("Algorithm must be fitted before getting results. Call fit() first.")

    def get_slices(self) -> List[Slice]:
        """Get the top-k slices.

        Raises:
            NotFittedError: If algorithm hasn't been fitted yet
        """
        self._check_fitted()
        return self.result.slices

    def get_result(self) -> SliceResult:
        """Get the full SliceResult of the last fit.

        Raises:
            NotFittedError: If algorithm hasn't been fitted yet
        """
        self._check_fitted()
        return self.result

    def get_state(self) -> RunState:
        """Get the state to pass as ``prior`` to the next incremental fit.

        Raises:
            NotFittedError: If algorithm hasn't been fitted yet
        """
        self._check_fitted()
        return self.result.state

    def find(self, data, errors=None, **fit_params) -> List[Slice]:
        """Convenience method to fit and get slices in one call."""
        self.fit(data, errors, **fit_params)
        return self.get_slices()

    def find_and_get_result(self, data, errors=None, **fit_params) -> SliceResult:
        """Convenience method to fit and get result in one call."""
        self.fit(data, errors, **fit_params)
        return self.get_result()

    def get_params(self) -> Dict[str, Any]:
        """Get algorithm parameters.

        Returns:
            Dictionary of parameters
        """
        return {
            **self.params.to_dict(),
            'n_jobs': self.n_jobs,
            **self._params
        }

    def set_params(self, **params):
        """Set algorithm parameters.

        Args:
            **params: Parameters to set

        Returns:
            Self for method chaining
        """
        if 'n_jobs' in params:
            self.n_jobs = validate_n_jobs(params.pop('n_jobs'))

        run_params = {name: params.pop(name) for name in list(params) if name in _PARAM_NAMES}
        if run_params:
            merged = {**self.params.to_dict(), **run_params}
            self.params = RunParams.from_dict(merged)

        self._params.update(params)
        self.is_fitted = False  # Reset fit status
        return self

    def __repr__(self) -> str:
        """String representation."""
        params_str = ', '.join(f"{k}={v}" for k, v in self.get_params().items())
        return f"{self.__class__.__name__}({params_str})"


def check_no_prior(finder: BaseSliceFinder, prior: Optional[RunState], removed) -> None:
    if prior is not None or (removed is not None and len(removed)):
        raise InvalidParameterError(
            f"{finder.__class__.__name__} only runs from scratch; use IncSliceLine for incremental updates"
        )
