from __future__ import annotations


class SimulationError(Exception):
    """Base class for errors raised by the simulation core."""


class ShapeMismatchError(SimulationError, ValueError):
    """Two genomes (or a genome and a topology) disagree on parameter count."""


class DimensionMismatchError(SimulationError, ValueError):
    """A sensor or actuator vector does not match the brain topology."""


class InvalidGenomeError(SimulationError, ValueError):
    """A genome contains non-finite parameters."""


class ConfigError(SimulationError, ValueError):
    """Configuration rejected before the simulation clock starts."""
