from __future__ import annotations

import logging
from time import perf_counter
from typing import List, Optional

from ..systems import metrics as metrics_system
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot
from .config import SimulationConfig
from .population import PopulationManager
from .world import World

logger = logging.getLogger(__name__)


class Simulation:
    """One world plus its population manager, advanced by a single clock.

    ``latest_snapshot`` is replaced in one assignment at the end of every
    tick, so readers on other threads or tasks always see a whole tick.
    """

    def __init__(self, config: SimulationConfig):
        self._config = config.validate()
        self._world = World(config)
        self._population = PopulationManager(self._world, config)
        self._population.seed_initial()
        self._metrics: Optional[TickMetrics] = None
        self._latest_snapshot = self._world.snapshot()
        logger.info(
            "simulation ready: seed=%d population=%d genome_len=%d",
            config.seed,
            self._world.agent_count,
            self._world.topology.total_param_count,
        )

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def world(self) -> World:
        return self._world

    @property
    def population(self) -> PopulationManager:
        return self._population

    @property
    def metrics(self) -> Optional[TickMetrics]:
        return self._metrics

    @property
    def tick(self) -> int:
        return self._world.tick

    @property
    def latest_snapshot(self) -> Snapshot:
        return self._latest_snapshot

    def step(self) -> TickMetrics:
        start = perf_counter()
        injected = self._population.prepare_tick()
        result = self._world.step(self._config.time_step)
        report = self._population.on_tick_result(result)
        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            result,
            report,
            injected,
            len(self._world.resources),
            elapsed_ms,
            metrics_system.population_stats(self._world.agents),
        )
        self._metrics = metrics
        self._latest_snapshot = self._world.snapshot(metrics)
        return metrics

    def run(self, steps: int) -> List[TickMetrics]:
        return [self.step() for _ in range(steps)]

    def reset(self) -> None:
        self._world.reset()
        self._population.reset()
        self._population.seed_initial()
        self._metrics = None
        self._latest_snapshot = self._world.snapshot()
