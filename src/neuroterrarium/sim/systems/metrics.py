from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from ..types.metrics import TickMetrics

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.population import PopulationReport
    from ..core.world import TickResult


def population_stats(agents: Iterable[Agent]) -> tuple[int, float, float, int, int]:
    population = 0
    energy_sum = 0.0
    age_sum = 0.0
    max_generation = 0
    lineages: set[int] = set()
    for agent in agents:
        if not agent.is_alive():
            continue
        population += 1
        energy_sum += agent.energy
        age_sum += agent.age
        if agent.generation > max_generation:
            max_generation = agent.generation
        lineages.add(agent.lineage_id)
    avg_energy = 0.0 if population == 0 else energy_sum / population
    avg_age = 0.0 if population == 0 else age_sum / population
    return population, avg_energy, avg_age, max_generation, len(lineages)


def create_metrics(
    result: TickResult,
    report: PopulationReport,
    injected: int,
    resources: int,
    duration_ms: float,
    stats: tuple[int, float, float, int, int],
) -> TickMetrics:
    population, avg_energy, avg_age, max_generation, lineages = stats
    return TickMetrics(
        tick=result.tick,
        population=population,
        births=report.births,
        deaths=report.removed,
        reseeded=report.reseeded + injected,
        culled=report.culled,
        resources=resources,
        average_energy=avg_energy,
        average_age=avg_age,
        max_generation=max_generation,
        lineages=lineages,
        neighbor_checks=result.neighbor_checks,
        tick_duration_ms=duration_ms,
    )
