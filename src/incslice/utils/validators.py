"""Validation utilities for slice finding."""
import numbers
from typing import Union
import numpy as np
import pandas as pd
from pathlib import Path

from ..exceptions import InvalidParameterError, InvalidDataError


def validate_count(value: int, param_name: str, minimum: int = 0) -> int:
    """Validate an integer parameter with a lower bound.

    Args:
        value: Value to validate
        param_name: Name of parameter (for error messages)
        minimum: Smallest accepted value

    Returns:
        The value as a plain int

    Raises:
        InvalidParameterError: If value is not an integer or below minimum
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidParameterError(f"{param_name} must be an integer, got {type(value)}")

    if value < minimum:
        raise InvalidParameterError(f"{param_name} must be >= {minimum}, got {value}")

    return int(value)


def validate_support(support: int, param_name: str = "min_support") -> int:
    """Validate an absolute minimum support (row count).

    Raises:
        InvalidParameterError: If support is not a positive integer
    """
    return validate_count(support, param_name, minimum=1)


def validate_alpha(alpha: float) -> float:
    """Validate the error/size trade-off weight.

    Raises:
        InvalidParameterError: If alpha is not a number in [0, 1]
    """
    if isinstance(alpha, bool) or not isinstance(alpha, numbers.Real):
        raise InvalidParameterError(f"alpha must be a number, got {type(alpha)}")

    if not 0.0 <= float(alpha) <= 1.0:
        raise InvalidParameterError(f"alpha must be in [0, 1], got {alpha}")

    return float(alpha)


def validate_data(data: Union[pd.DataFrame, np.ndarray, str]) -> None:
    """Validate input data.

    Args:
        data: Data to validate (DataFrame, array or file path)

    Raises:
        InvalidDataError: If data is invalid
    """
    if isinstance(data, pd.DataFrame):
        if data.shape[1] < 1:
            raise InvalidDataError("DataFrame must have at least 1 column")

    elif isinstance(data, np.ndarray):
        if data.ndim != 2:
            raise InvalidDataError(f"Feature matrix must be 2-dimensional, got {data.ndim} dimensions")

    elif isinstance(data, (str, Path)):
        file_path = Path(data)
        if not file_path.exists():
            raise InvalidDataError(f"File not found: {data}")

        if not file_path.is_file():
            raise InvalidDataError(f"Path is not a file: {data}")

    else:
        raise InvalidDataError(f"Data must be DataFrame, ndarray or file path, got {type(data)}")


def validate_n_jobs(n_jobs: int) -> int:
    """Validate and normalize n_jobs parameter.

    Args:
        n_jobs: Number of parallel jobs

    Returns:
        Normalized n_jobs value

    Raises:
        InvalidParameterError: If n_jobs is invalid
    """
    if not isinstance(n_jobs, int):
        raise InvalidParameterError(f"n_jobs must be an integer, got {type(n_jobs)}")

    if n_jobs == 0:
        raise InvalidParameterError("n_jobs cannot be 0")

    if n_jobs == -1:
        import multiprocessing
        return multiprocessing.cpu_count()

    if n_jobs < -1:
        raise InvalidParameterError(f"n_jobs must be -1 or positive, got {n_jobs}")

    return n_jobs
