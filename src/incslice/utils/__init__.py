"""Utility functions for slice finding."""

from .sparse import IndicatorHelper
from .validators import validate_support, validate_alpha, validate_count, validate_data, validate_n_jobs
from .formatters import format_slices, format_slice_string

__all__ = [
    'IndicatorHelper',
    'validate_support',
    'validate_alpha',
    'validate_count',
    'validate_data',
    'validate_n_jobs',
    'format_slices',
    'format_slice_string',
]
