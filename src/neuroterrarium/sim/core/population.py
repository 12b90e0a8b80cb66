from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from pygame.math import Vector2

from ..systems import reproduction
from .agent import Agent
from .config import SimulationConfig
from .genome import Genome
from .rng import genome_generator
from .world import TickResult, World

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PopulationReport:
    removed: int = 0
    births: int = 0
    reseeded: int = 0
    culled: int = 0
    born: List[Agent] = field(default_factory=list)


class PopulationManager:
    """Selection policy on top of :class:`World` mechanics.

    Removes the dead, breeds reproduction candidates and keeps the agent count
    inside ``[min_population, max_population]``.
    """

    def __init__(self, world: World, config: SimulationConfig, rng: Optional[np.random.Generator] = None):
        self._world = world
        self._config = config
        self._rng = rng if rng is not None else genome_generator(config.seed)
        self._next_lineage_id = 0
        self._max_generation = 0
        self.total_births = 0
        self.total_deaths = 0
        self.total_reseeded = 0
        self.total_culled = 0

    @property
    def max_generation(self) -> int:
        return self._max_generation

    @property
    def next_lineage_id(self) -> int:
        return self._next_lineage_id

    def reset(self, rng: Optional[np.random.Generator] = None) -> None:
        self._rng = rng if rng is not None else genome_generator(self._config.seed)
        self._next_lineage_id = 0
        self._max_generation = 0
        self.total_births = 0
        self.total_deaths = 0
        self.total_reseeded = 0
        self.total_culled = 0

    def seed_initial(self) -> List[Agent]:
        return [self.spawn_random() for _ in range(self._config.initial_population)]

    def spawn_random(self, position: Optional[Vector2] = None) -> Agent:
        genome = Genome.random(self._world.topology, self._rng, self._config.brain.init_range)
        return self._world.spawn_agent(
            genome, position=position, generation=0, lineage_id=self._allocate_lineage_id()
        )

    def prepare_tick(self) -> int:
        """Top the population up to the floor before the world advances."""
        return self._reseed_to_floor()

    def on_tick_result(self, result: TickResult) -> PopulationReport:
        world = self._world
        report = PopulationReport()
        report.removed = len(world.remove_agents(agent.id for agent in result.deaths))

        candidates = [agent for agent in result.reproduction_candidates if agent.is_alive()]
        if self._config.evolution.mate_selection == "energy_proportional":
            pairs = reproduction.pair_energy_proportional(
                candidates, self._rng, self._config.evolution.sexes
            )
        else:
            pairs = reproduction.pair_nearby(world, candidates)
        for first, second in pairs:
            child = reproduction.make_offspring(world, first, second, self._config.evolution, self._rng)
            report.born.append(child)
            if child.generation > self._max_generation:
                self._max_generation = child.generation
        report.births = len(report.born)

        # A full reproduction cost can leave a parent (or a child) without energy.
        spent = [agent.id for agent in world.agents if not agent.is_alive()]
        report.removed += len(world.remove_agents(spent))

        report.reseeded = self._reseed_to_floor()
        report.culled = self._cull_to_ceiling()

        self.total_births += report.births
        self.total_deaths += report.removed
        self.total_reseeded += report.reseeded
        self.total_culled += report.culled
        return report

    def _reseed_to_floor(self) -> int:
        floor = self._config.min_population
        missing = floor - self._world.agent_count
        if missing <= 0:
            return 0
        anchors = []
        if self._config.reseed_near_survivors:
            anchors = [agent for agent in self._world.agents if agent.is_alive()]
        for _ in range(missing):
            self.spawn_random(self._reseed_position(anchors))
        logger.info(
            "population below floor (%d < %d); reseeded %d %s agents",
            floor - missing,
            floor,
            missing,
            "nearby" if anchors else "random",
        )
        return missing

    def _reseed_position(self, anchors: List[Agent]) -> Optional[Vector2]:
        """Scatter around a random survivor; None falls back to a uniform position."""
        if not anchors:
            return None
        rng = self._world.rng
        spread = self._config.reseed_spread
        anchor = rng.sample_choice(anchors)
        return Vector2(
            anchor.position.x + rng.next_range(-spread, spread),
            anchor.position.y + rng.next_range(-spread, spread),
        )

    def _cull_to_ceiling(self) -> int:
        excess = self._world.agent_count - self._config.max_population
        if excess <= 0:
            return 0
        victims = sorted(self._world.agents, key=lambda agent: (agent.energy, agent.id))[:excess]
        self._world.remove_agents(agent.id for agent in victims)
        logger.debug("culled %d lowest-energy agents", excess)
        return excess

    def _allocate_lineage_id(self) -> int:
        lineage = self._next_lineage_id
        self._next_lineage_id += 1
        return lineage
