"""Injectable randomness for galaxy generation."""
from __future__ import annotations

from typing import Optional, Protocol, Tuple, Union

import numpy as np

Shape = Union[int, Tuple[int, ...]]


class RandomSource(Protocol):
    """Supplies uniform floats in [0, 1) and independent +/-1 signs."""

    def uniform(self, shape: Shape) -> np.ndarray:
        ...

    def signs(self, shape: Shape) -> np.ndarray:
        ...


class NumpyRandomSource:
    """RandomSource backed by a numpy Generator."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def uniform(self, shape: Shape) -> np.ndarray:
        return self.rng.random(shape)

    def signs(self, shape: Shape) -> np.ndarray:
        return np.where(self.rng.random(shape) < 0.5, 1.0, -1.0)
