"""Dataset handling for slice finding."""
import csv
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..exceptions import InvalidDataError
from ..utils.validators import validate_data

logger = logging.getLogger(__name__)


class SliceDataset:
    """Feature matrix and aligned error vector for slice finding.

    Features are non-negative integer category (or bin) ids, where 0 means
    unconstrained / missing. Errors are non-negative per-row model errors.
    The dataset may be empty (zero rows), e.g. the added batch of a
    removal-only incremental run.

    Attributes:
        X: ``(m, n)`` int64 feature matrix
        errors: ``(m,)`` float error vector
        feature_names: Column names used when printing slices
        row_count: Number of rows
        col_count: Number of features

    Example:
        >>> dataset = SliceDataset('data.csv', error_column='error')
        >>> dataset.row_count, dataset.col_count
        (1000, 12)
    """

    def __init__(self, data_source: Union[pd.DataFrame, np.ndarray, str, Path],
                 errors: Optional[Union[np.ndarray, Sequence[float], pd.Series]] = None,
                 error_column: Optional[str] = None,
                 feature_names: Optional[Sequence[str]] = None):
        """Initialize dataset.

        Args:
            data_source: Path to CSV file, pandas DataFrame or 2-d array of category ids
            errors: Per-row errors (required unless ``error_column`` is given)
            error_column: Name of the column holding errors in a DataFrame or CSV
            feature_names: Optional names for the feature columns

        Raises:
            InvalidDataError: If the data is invalid
        """
        validate_data(data_source)

        if isinstance(data_source, (str, Path)):
            data_source = self._read_csv(data_source)

        if isinstance(data_source, pd.DataFrame):
            frame = data_source
            if error_column is not None:
                if error_column not in frame.columns:
                    raise InvalidDataError(f"Error column '{error_column}' not found")
                if errors is not None:
                    raise InvalidDataError("Pass either errors or error_column, not both")
                errors = frame[error_column].to_numpy()
                frame = frame.drop(columns=[error_column])
            names = [str(c) for c in frame.columns]
            features = frame.to_numpy()
        else:
            if error_column is not None:
                raise InvalidDataError("error_column requires a DataFrame or CSV source")
            features = np.asarray(data_source)
            names = [f"f{j}" for j in range(features.shape[1])]

        if errors is None:
            raise InvalidDataError("Errors are required: pass errors or error_column")

        self.X, self.errors = self._clean(features, errors)
        self.row_count, self.col_count = self.X.shape

        if feature_names is not None:
            if len(feature_names) != self.col_count:
                raise InvalidDataError(
                    f"Got {len(feature_names)} feature names for {self.col_count} features"
                )
            names = [str(n) for n in feature_names]
        self.feature_names: List[str] = names

        logger.info(f"Loaded dataset: {self.row_count} rows, {self.col_count} features")

    @classmethod
    def empty(cls, n_features: int, feature_names: Optional[Sequence[str]] = None) -> 'SliceDataset':
        """A dataset with no rows, used for removal-only incremental runs."""
        return cls(np.zeros((0, n_features), dtype=np.int64), np.zeros(0), feature_names=feature_names)

    @staticmethod
    def _read_csv(path: Union[str, Path]) -> pd.DataFrame:
        file_path = Path(path)
        try:
            with open(file_path, 'r') as f:
                dialect = csv.Sniffer().sniff(f.readline(), delimiters=";,\t")
            frame = pd.read_csv(file_path, sep=dialect.delimiter)
        except (csv.Error, pd.errors.ParserError, pd.errors.EmptyDataError) as error:
            raise InvalidDataError(f"Error reading CSV: {error}")

        logger.debug(f"Data loaded from CSV: {file_path}")
        return frame

    @staticmethod
    def _clean(features, errors) -> Tuple[np.ndarray, np.ndarray]:
        features = np.asarray(features)
        if features.ndim != 2:
            raise InvalidDataError(f"Feature matrix must be 2-dimensional, got {features.ndim} dimensions")

        try:
            as_float = features.astype(float)
        except (TypeError, ValueError):
            raise InvalidDataError("Features must be numeric category ids")
        if np.isnan(as_float).any():
            raise InvalidDataError("Features contain missing values; encode them as 0")
        if np.any(as_float != np.floor(as_float)):
            raise InvalidDataError("Features must be integer category ids")
        if as_float.size and as_float.min() < 0:
            raise InvalidDataError("Features must be non-negative (0 = unconstrained)")

        try:
            errors = np.asarray(errors, dtype=float).reshape(-1)
        except (TypeError, ValueError):
            raise InvalidDataError("Errors must be numeric")
        if errors.shape[0] != features.shape[0]:
            raise InvalidDataError(
                f"Feature matrix has {features.shape[0]} rows but error vector has {errors.shape[0]}"
            )
        if not np.all(np.isfinite(errors)):
            raise InvalidDataError("Errors must be finite")
        if errors.size and errors.min() < 0:
            raise InvalidDataError("Errors must be non-negative")

        return as_float.astype(np.int64), errors
