from __future__ import annotations

import math
import random

import numpy as np
from pygame.math import Vector2

GENOME_RNG_SALT = 0x6E6E5EED0B5A17E5
RESOURCE_RNG_SALT = 0xF00DF00D5EED1234


def derive_stream_seed(seed: int, salt: int) -> int:
    return (int(seed) ^ int(salt)) & 0xFFFFFFFFFFFFFFFF


def genome_generator(seed: int) -> np.random.Generator:
    """numpy stream used by the genetic operators, independent of world sampling."""
    return np.random.default_rng(derive_stream_seed(seed, GENOME_RNG_SALT))


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_angle(self) -> float:
        return self._random.uniform(-math.pi, math.pi)

    def next_unit_circle(self) -> Vector2:
        angle = self.next_angle()
        return Vector2(math.cos(angle), math.sin(angle))

    def next_position(self, width: float, height: float) -> Vector2:
        return Vector2(self._random.uniform(0.0, width), self._random.uniform(0.0, height))

    def next_index(self, count: int) -> int:
        return self._random.randrange(count)

    def sample_choice(self, items):
        return self._random.choice(items)
