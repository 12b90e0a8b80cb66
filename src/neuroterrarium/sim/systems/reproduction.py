from __future__ import annotations

import math
from typing import TYPE_CHECKING, List, Sequence, Tuple

import numpy as np

from ..core.genome import breed

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.config import EvolutionConfig
    from ..core.world import World

Pair = Tuple["Agent", "Agent"]


def can_mate(first: Agent, second: Agent, sexes: int) -> bool:
    """With one sex anyone can mate; otherwise partners must differ."""
    return sexes <= 1 or first.sex != second.sex


def pair_nearby(world: World, candidates: Sequence[Agent]) -> List[Pair]:
    """Pair each candidate, lowest id first, with the nearest unpaired candidate in perception range."""
    radius = world.config.species.perception_radius
    sexes = world.config.evolution.sexes
    ordered = sorted(candidates, key=lambda agent: agent.id)
    unpaired = {agent.id for agent in ordered}
    pairs: List[Pair] = []
    for agent in ordered:
        if agent.id not in unpaired:
            continue
        mate = None
        mate_dist_sq = math.inf
        neighbors, _, dist_sq = world.query_agents(agent.position, radius, exclude_id=agent.id)
        for other, d_sq in zip(neighbors, dist_sq):
            if other.id not in unpaired or not can_mate(agent, other, sexes):
                continue
            # Neighbors come in id order; strict comparison keeps the lowest id on ties.
            if d_sq < mate_dist_sq:
                mate = other
                mate_dist_sq = d_sq
        if mate is not None:
            unpaired.discard(agent.id)
            unpaired.discard(mate.id)
            pairs.append((agent, mate))
    return pairs


def pair_energy_proportional(
    candidates: Sequence[Agent], rng: np.random.Generator, sexes: int = 1
) -> List[Pair]:
    """Pair each candidate, lowest id first, with a compatible partner sampled by energy."""
    remaining = sorted(candidates, key=lambda agent: agent.id)
    pairs: List[Pair] = []
    while len(remaining) >= 2:
        agent = remaining.pop(0)
        options = [index for index, other in enumerate(remaining) if can_mate(agent, other, sexes)]
        if not options:
            continue
        weights = np.array([max(remaining[index].energy, 0.0) for index in options], dtype=np.float64)
        total = float(weights.sum())
        if total <= 0.0:
            choice = 0
        else:
            choice = int(rng.choice(len(options), p=weights / total))
        pairs.append((agent, remaining.pop(options[choice])))
    return pairs


def make_offspring(
    world: World,
    first: Agent,
    second: Agent,
    evolution: EvolutionConfig,
    rng: np.random.Generator,
) -> Agent:
    species = world.config.species
    genome = breed(
        first.genome,
        second.genome,
        rng,
        evolution.mutation_rate,
        evolution.mutation_magnitude,
        evolution.crossover_mode,
    )

    cost_first = first.energy * species.reproduction_cost_fraction
    cost_second = second.energy * species.reproduction_cost_fraction
    first.energy -= cost_first
    second.energy -= cost_second
    first.reproduction_cooldown = species.reproduction_cooldown_seconds
    second.reproduction_cooldown = species.reproduction_cooldown_seconds
    first.offspring += 1
    second.offspring += 1

    midpoint = first.position + world.toroidal_offset(first.position, second.position) * 0.5
    jitter = world.rng.next_unit_circle() * world.rng.next_range(0.0, species.offspring_spawn_jitter)
    return world.spawn_agent(
        genome,
        position=midpoint + jitter,
        heading=world.rng.next_angle(),
        energy=(cost_first + cost_second) * species.offspring_energy_efficiency,
        generation=max(first.generation, second.generation) + 1,
        lineage_id=first.lineage_id,
    )
