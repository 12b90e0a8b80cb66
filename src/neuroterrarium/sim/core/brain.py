from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import DimensionMismatchError, ShapeMismatchError
from .genome import Genome


@dataclass(frozen=True)
class Topology:
    """Layer sizes of the shared feed-forward architecture, inputs first."""

    layer_sizes: tuple[int, ...]

    def __post_init__(self) -> None:
        sizes = tuple(int(size) for size in self.layer_sizes)
        if len(sizes) < 2:
            raise ValueError("a topology needs at least an input and an output layer")
        if any(size <= 0 for size in sizes):
            raise ValueError(f"layer sizes must be positive, got {sizes}")
        object.__setattr__(self, "layer_sizes", sizes)

    @classmethod
    def build(cls, inputs: int, hidden: Sequence[int], outputs: int) -> "Topology":
        return cls((inputs, *hidden, outputs))

    @property
    def input_size(self) -> int:
        return self.layer_sizes[0]

    @property
    def output_size(self) -> int:
        return self.layer_sizes[-1]

    @property
    def layer_shapes(self) -> list[tuple[int, int]]:
        """(n_out, n_in) for every weight matrix."""
        return [(n_out, n_in) for n_in, n_out in zip(self.layer_sizes[:-1], self.layer_sizes[1:])]

    @property
    def total_param_count(self) -> int:
        return sum(n_out * n_in + n_out for n_out, n_in in self.layer_shapes)


def _unpack_layers(topology: Topology, genome: Genome) -> list[tuple[np.ndarray, np.ndarray]]:
    if len(genome) != topology.total_param_count:
        raise ShapeMismatchError(
            f"genome has {len(genome)} parameters, topology needs {topology.total_param_count}"
        )
    params = genome.params
    layers = []
    offset = 0
    for n_out, n_in in topology.layer_shapes:
        weights = params[offset : offset + n_out * n_in].reshape(n_out, n_in)
        offset += n_out * n_in
        bias = params[offset : offset + n_out]
        offset += n_out
        layers.append((weights, bias))
    return layers


def _forward(layers: list[tuple[np.ndarray, np.ndarray]], topology: Topology, sensors) -> np.ndarray:
    x = np.asarray(sensors, dtype=np.float64)
    if x.shape != (topology.input_size,):
        raise DimensionMismatchError(
            f"expected {topology.input_size} sensor values, got shape {x.shape}"
        )
    for weights, bias in layers:
        x = np.tanh(weights @ x + bias)
    return x


def evaluate(topology: Topology, genome: Genome, sensors) -> np.ndarray:
    """Forward pass ``tanh(W @ x + b)`` through every layer."""
    return _forward(_unpack_layers(topology, genome), topology, sensors)


class Brain:
    """A genome bound to a topology. Holds no state between evaluations."""

    __slots__ = ("topology", "genome", "_layers")

    def __init__(self, topology: Topology, genome: Genome):
        self.topology = topology
        self.genome = genome
        self._layers = _unpack_layers(topology, genome)

    def evaluate(self, sensors) -> np.ndarray:
        return _forward(self._layers, self.topology, sensors)
