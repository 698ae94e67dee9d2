"""Algorithm factory for slice finding."""
import functools
from typing import Any, Dict, List, Type
import logging

from .algorithms.base_algorithm import BaseSliceFinder
from .algorithms.sliceline import IncSliceLine, SliceLine
from .core.data_structures import PruningStrategy
from .exceptions import InvalidAlgorithmError

logger = logging.getLogger(__name__)


class AlgorithmRegistry:
    """Registry for slice finding algorithms."""

    # Values are either a class (Type[BaseSliceFinder]) or a functools.partial
    # that pre-sets default kwargs (the per-strategy IncSliceLine aliases).
    _algorithms: Dict[str, Any] = {
        'sliceline':    SliceLine,
        'incsliceline': IncSliceLine,
        'incremental':  IncSliceLine,
        **{
            f'incsliceline-{strategy.value}': functools.partial(IncSliceLine, pruning_strategy=strategy.value)
            for strategy in PruningStrategy
        },
    }

    @classmethod
    def register(cls, name: str, algorithm_class: Type[BaseSliceFinder]):
        if not issubclass(algorithm_class, BaseSliceFinder):
            raise ValueError(f"{algorithm_class} must inherit from BaseSliceFinder")
        cls._algorithms[name.lower()] = algorithm_class
        logger.info(f"Registered algorithm: {name}")

    @classmethod
    def get(cls, name: str) -> Any:
        name_lower = name.lower()
        if name_lower not in cls._algorithms:
            available = cls.list_algorithms()
            raise InvalidAlgorithmError(
                f"Unknown algorithm '{name}'. Available algorithms: {', '.join(available)}"
            )
        return cls._algorithms[name_lower]

    @classmethod
    def list_algorithms(cls) -> List[str]:
        return sorted(set(cls._algorithms.keys()))

    @classmethod
    def has_algorithm(cls, name: str) -> bool:
        return name.lower() in cls._algorithms
