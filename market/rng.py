"""
Injectable random source for the market simulation.

All randomness in the engine (price shocks, order-book sizes, event
selection) flows through a RandomSource instead of a module-level global,
so a session built from the same seed replays tick for tick.
"""

import math
from typing import Sequence, TypeVar

import numpy as np
from numpy.random import Generator

T = TypeVar("T")


class RandomSource:
    """
    Thin wrapper over a numpy Generator exposing the draws the engine needs.

    Attributes:
        seed: Seed used to build the generator (None = OS entropy)
        generator: Underlying numpy Generator
    """

    def __init__(self, seed: int | None = None, generator: Generator | None = None) -> None:
        self.seed = seed
        self.generator = generator if generator is not None else np.random.default_rng(seed)

    def random(self) -> float:
        """Uniform draw in [0, 1)."""
        return float(self.generator.random())

    def uniform(self, low: float, high: float) -> float:
        """Uniform draw in [low, high)."""
        return low + self.random() * (high - low)

    # randint and choice consume exactly one uniform each, so the draw order
    # (and a seeded replay) does not depend on how numpy samples integers.
    def randint(self, low: int, high: int) -> int:
        """Uniform integer in [low, high] (both inclusive)."""
        return int(math.floor(self.random() * (high - low + 1))) + low

    def choice(self, items: Sequence[T]) -> T:
        """Pick one element uniformly at random."""
        return items[int(math.floor(self.random() * len(items)))]

    def gaussian(self) -> float:
        """
        Standard-normal draw via the Box-Muller transform.

        Uses two uniform draws; zeros are redrawn so log(u) stays finite.
        """
        u = 0.0
        v = 0.0
        while u == 0.0:
            u = self.random()
        while v == 0.0:
            v = self.random()
        return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def default_source(seed: int | None = None) -> RandomSource:
    """Build a RandomSource from an optional integer seed."""
    return RandomSource(seed)
