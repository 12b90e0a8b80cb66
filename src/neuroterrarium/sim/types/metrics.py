from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TickMetrics:
    tick: int
    population: int
    births: int
    deaths: int
    reseeded: int
    culled: int
    resources: int
    average_energy: float
    average_age: float
    max_generation: int
    lineages: int
    neighbor_checks: int
    tick_duration_ms: float = 0.0
