"""Genomes: the flat weight vectors that parameterise an agent's brain.

A genome never changes once it is assigned to an agent. Every operator in this
module returns a fresh genome and leaves its inputs untouched, so a brain that
is mid-evaluation can never observe a half-mutated weight vector.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator

import numpy as np

from .errors import InvalidGenomeError, ShapeMismatchError

if TYPE_CHECKING:
    from .brain import Topology


def _frozen(values: Iterable[float] | np.ndarray) -> np.ndarray:
    params = np.array(values, dtype=np.float64).reshape(-1)
    params.setflags(write=False)
    return params


@dataclass(frozen=True, eq=False)
class Genome:
    params: np.ndarray

    def __init__(self, params: Iterable[float] | np.ndarray):
        object.__setattr__(self, "params", _frozen(params))

    @classmethod
    def random(cls, topology: "Topology", rng: np.random.Generator, init_range: float = 1.0) -> "Genome":
        """Draw every parameter from U(-init_range, init_range)."""
        if init_range <= 0.0:
            raise ValueError(f"init_range must be positive, got {init_range}")
        return cls(rng.uniform(-init_range, init_range, topology.total_param_count))

    @classmethod
    def zeros(cls, topology: "Topology") -> "Genome":
        return cls(np.zeros(topology.total_param_count))

    def __len__(self) -> int:
        return int(self.params.shape[0])

    def __getitem__(self, index: int) -> float:
        return float(self.params[index])

    def __iter__(self) -> Iterator[float]:
        return (float(value) for value in self.params)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Genome):
            return NotImplemented
        return bool(np.array_equal(self.params, other.params))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Genome(len={len(self)})"

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.params)))

    def to_list(self) -> list[float]:
        return [float(value) for value in self.params]


def crossover(a: Genome, b: Genome, rng: np.random.Generator, mode: str = "uniform") -> Genome:
    """Combine two parents index by index.

    ``uniform`` takes ``a[i]`` where ``rng.random(n)[i] < 0.5`` and ``b[i]``
    otherwise. ``blend`` interpolates ``a + t * (b - a)`` with one
    ``t ~ U(0, 1)`` per parameter.
    """
    if len(a) != len(b):
        raise ShapeMismatchError(f"cannot cross genomes of length {len(a)} and {len(b)}")
    n = len(a)
    if mode == "uniform":
        mask = rng.random(n) < 0.5
        return Genome(np.where(mask, a.params, b.params))
    if mode == "blend":
        t = rng.random(n)
        return Genome(a.params + t * (b.params - a.params))
    raise ValueError(f"Unknown crossover mode: {mode}")


def mutate(genome: Genome, rate: float, magnitude: float, rng: np.random.Generator) -> Genome:
    """Perturb each parameter with probability ``rate`` by U(-magnitude, magnitude)."""
    if not 0.0 <= rate <= 1.0:
        raise ValueError(f"mutation rate must lie in [0, 1], got {rate}")
    if magnitude < 0.0:
        raise ValueError(f"mutation magnitude must be non-negative, got {magnitude}")
    n = len(genome)
    mask = rng.random(n) < rate
    delta = rng.uniform(-magnitude, magnitude, n)
    child = Genome(genome.params + np.where(mask, delta, 0.0))
    if not child.is_finite():
        raise InvalidGenomeError("mutation produced non-finite parameters")
    return child


def breed(
    a: Genome,
    b: Genome,
    rng: np.random.Generator,
    rate: float,
    magnitude: float,
    mode: str = "uniform",
) -> Genome:
    return mutate(crossover(a, b, rng, mode), rate, magnitude, rng)
