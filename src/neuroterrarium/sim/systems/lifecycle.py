from __future__ import annotations

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.world import TickResult


def is_reproduction_candidate(agent: Agent) -> bool:
    species = agent.species
    return (
        agent.is_alive()
        and agent.energy >= species.reproduction_energy_threshold
        and agent.age >= species.maturity_age_ticks
        and agent.reproduction_cooldown <= 0.0
    )


def report_vital_events(living: List[Agent], dt: float, result: TickResult) -> None:
    """Age every agent that started the tick alive and sort it into deaths or candidates."""
    for agent in living:
        agent.age += 1
        if agent.reproduction_cooldown > 0.0:
            agent.reproduction_cooldown = max(0.0, agent.reproduction_cooldown - dt)
        if not agent.is_alive():
            agent.alive = False
            result.deaths.append(agent)
        elif is_reproduction_candidate(agent):
            result.reproduction_candidates.append(agent)
