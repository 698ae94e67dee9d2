"""Slice finding algorithms."""

from .base_algorithm import BaseSliceFinder
from .sliceline import IncSliceLine, SliceLine

__all__ = ['BaseSliceFinder', 'IncSliceLine', 'SliceLine']
