from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import numpy as np
from pygame.math import Vector2

from ..systems import lifecycle, sensing
from ..types.metrics import TickMetrics
from ..types.snapshot import AgentView, ResourceView, Snapshot, SnapshotMetadata, SnapshotWorld
from ..utils.math2d import _clamp_value, _wrap_angle, _wrap_coordinate
from .agent import Agent
from .brain import Brain, Topology
from .config import SimulationConfig
from .errors import ShapeMismatchError
from .genome import Genome
from .resource import Resource
from .rng import RESOURCE_RNG_SALT, DeterministicRng, derive_stream_seed
from .spatial_grid import SpatialGrid, wrapped_delta

logger = logging.getLogger(__name__)


class TickPhase(str, Enum):
    IDLE = "Idle"
    SPAWN_RESOURCES = "SpawnResources"
    SENSE_ALL = "SenseAll"
    ACT_ALL = "ActAll"
    RESOLVE_INTERACTIONS = "ResolveInteractions"
    REPORT_VITAL_EVENTS = "ReportVitalEvents"


@dataclass(slots=True)
class TickResult:
    tick: int
    deaths: List[Agent] = field(default_factory=list)
    reproduction_candidates: List[Agent] = field(default_factory=list)
    neighbor_checks: int = 0
    consumed: float = 0.0


class World:
    """Arena, agents and resources, advanced one fixed step at a time.

    The world applies mechanics only. It reports deaths and reproduction
    candidates from :meth:`step` and leaves membership changes to the
    population manager.
    """

    def __init__(self, config: SimulationConfig):
        self._config = config
        self._rng = DeterministicRng(config.seed)
        self._resource_rng = DeterministicRng(derive_stream_seed(config.seed, RESOURCE_RNG_SALT))
        self._topology = Topology.build(
            sensing.SENSOR_COUNT, config.brain.hidden_layers, sensing.ACTUATOR_COUNT
        )
        self._width = config.world_width
        self._height = config.world_height
        self._agent_grid: SpatialGrid[Agent] = SpatialGrid(config.grid_cell_size, self._width, self._height)
        self._resource_grid: SpatialGrid[Resource] = SpatialGrid(
            config.grid_cell_size, self._width, self._height
        )
        self._agents: List[Agent] = []
        self._resources: List[Resource] = []
        self._next_id = 0
        self._next_resource_id = 0
        self._tick = 0
        self._phase = TickPhase.IDLE
        self._spawn_accumulator = 0.0
        self._neighbor_checks = 0
        self._index_dirty = True
        self._seed_resources()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def topology(self) -> Topology:
        return self._topology

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def resources(self) -> List[Resource]:
        return self._resources

    @property
    def rng(self) -> DeterministicRng:
        return self._rng

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def phase(self) -> TickPhase:
        return self._phase

    @property
    def agent_count(self) -> int:
        return len(self._agents)

    def reset(self) -> None:
        self._agents.clear()
        self._resources.clear()
        self._agent_grid.clear()
        self._resource_grid.clear()
        self._rng.reset()
        self._resource_rng.reset()
        self._next_id = 0
        self._next_resource_id = 0
        self._tick = 0
        self._phase = TickPhase.IDLE
        self._spawn_accumulator = 0.0
        self._index_dirty = True
        self._seed_resources()

    def step(self, dt: Optional[float] = None) -> TickResult:
        if dt is None:
            dt = self._config.time_step
        if dt <= 0.0:
            raise ValueError(f"dt must be positive, got {dt}")
        if self._phase is not TickPhase.IDLE:
            raise RuntimeError(f"step() called during phase {self._phase.value}")

        result = TickResult(tick=self._tick)
        try:
            self._phase = TickPhase.SPAWN_RESOURCES
            self._spawn_resources(dt)

            self._phase = TickPhase.SENSE_ALL
            self._rebuild_index()
            living = []
            for agent in self._agents:
                if agent.is_alive():
                    living.append(agent)
                elif agent.alive:
                    # Drained between ticks (e.g. by a reproduction cost); report it once.
                    agent.alive = False
                    result.deaths.append(agent)
            # Every decision is computed from the pre-tick state before anything moves.
            decisions: List[np.ndarray] = []
            self._neighbor_checks = 0
            for agent in living:
                decisions.append(agent.think(agent.sense(self)))
            result.neighbor_checks = self._neighbor_checks

            self._phase = TickPhase.ACT_ALL
            for agent, actuators in zip(living, decisions):
                agent.act(actuators, dt)
                self.wrap_position(agent.position)
            self._index_dirty = True

            self._phase = TickPhase.RESOLVE_INTERACTIONS
            self._rebuild_index()
            self._resolve_collisions(living)
            result.consumed = self._resolve_consumption(living)
            self._resolve_resting(living, dt)

            self._phase = TickPhase.REPORT_VITAL_EVENTS
            lifecycle.report_vital_events(living, dt, result)
            self._tick += 1
        finally:
            self._phase = TickPhase.IDLE
        return result

    def spawn_agent(
        self,
        genome: Genome,
        *,
        position: Optional[Vector2] = None,
        heading: Optional[float] = None,
        energy: Optional[float] = None,
        generation: int = 0,
        lineage_id: int = 0,
        sex: Optional[int] = None,
    ) -> Agent:
        if len(genome) != self._topology.total_param_count:
            raise ShapeMismatchError(
                f"genome has {len(genome)} parameters, topology needs {self._topology.total_param_count}"
            )
        species = self._config.species
        if position is None:
            position = self._rng.next_position(self._width, self._height)
        else:
            position = Vector2(position)
        self.wrap_position(position)
        if heading is None:
            heading = self._rng.next_angle()
        if energy is None:
            energy = species.initial_energy
        sexes = self._config.evolution.sexes
        if sex is None:
            sex = self._rng.next_index(sexes) if sexes > 1 else 0
        agent = Agent(
            id=self._next_id,
            generation=generation,
            lineage_id=lineage_id,
            position=position,
            heading=_wrap_angle(heading),
            genome=genome,
            brain=Brain(self._topology, genome),
            species=species,
            energy=_clamp_value(energy, 0.0, species.max_energy),
            sex=sex % sexes,
        )
        self._next_id += 1
        self._agents.append(agent)
        self._index_dirty = True
        return agent

    def remove_agents(self, ids: Iterable[int]) -> List[Agent]:
        doomed = set(ids)
        if not doomed:
            return []
        removed = []
        survivors = []
        for agent in self._agents:
            if agent.id in doomed:
                removed.append(agent)
            else:
                survivors.append(agent)
        self._agents = survivors
        self._index_dirty = True
        return removed

    def get_agent(self, agent_id: int) -> Optional[Agent]:
        for agent in self._agents:
            if agent.id == agent_id:
                return agent
        return None

    def add_resource(self, position: Optional[Vector2] = None, quantity: Optional[float] = None) -> Resource:
        if position is None:
            position = self._resource_rng.next_position(self._width, self._height)
        else:
            position = Vector2(position)
        self.wrap_position(position)
        if quantity is None:
            quantity = self._config.environment.resource_quantity
        resource = Resource(id=self._next_resource_id, position=position, quantity=quantity)
        self._next_resource_id += 1
        self._resources.append(resource)
        self._index_dirty = True
        return resource

    def query_agents(
        self, position: Vector2, radius: float, exclude_id: Optional[int] = None
    ) -> Tuple[List[Agent], List[Vector2], List[float]]:
        self._ensure_index()
        agents: List[Agent] = []
        offsets: List[Vector2] = []
        dist_sq: List[float] = []
        self._agent_grid.collect_neighbors(position, radius, agents, offsets, exclude_id, dist_sq)
        self._neighbor_checks += len(agents)
        return agents, offsets, dist_sq

    def query_resources(self, position: Vector2, radius: float) -> Tuple[List[Resource], List[Vector2], List[float]]:
        self._ensure_index()
        resources: List[Resource] = []
        offsets: List[Vector2] = []
        dist_sq: List[float] = []
        self._resource_grid.collect_neighbors(position, radius, resources, offsets, None, dist_sq)
        return resources, offsets, dist_sq

    def toroidal_offset(self, origin: Vector2, target: Vector2) -> Vector2:
        return Vector2(
            wrapped_delta(target.x - origin.x, self._width),
            wrapped_delta(target.y - origin.y, self._height),
        )

    def distance_sq(self, a: Vector2, b: Vector2) -> float:
        return self.toroidal_offset(a, b).length_squared()

    def wrap_position(self, position: Vector2) -> Vector2:
        position.update(
            _wrap_coordinate(position.x, self._width),
            _wrap_coordinate(position.y, self._height),
        )
        return position

    def snapshot(self, metrics: Optional[TickMetrics] = None) -> Snapshot:
        if self._phase is not TickPhase.IDLE:
            raise RuntimeError("snapshots are only available between ticks")
        config = self._config
        return Snapshot(
            tick=self._tick,
            metrics=metrics,
            agents=tuple(self._agent_view(agent) for agent in self._agents if agent.is_alive()),
            resources=tuple(
                ResourceView(id=res.id, x=res.position.x, y=res.position.y, quantity=res.quantity)
                for res in self._resources
            ),
            world=SnapshotWorld(width=self._width, height=self._height),
            metadata=SnapshotMetadata(
                sim_dt=config.time_step,
                tick_rate=0.0 if config.time_step <= 0 else 1.0 / config.time_step,
                seed=config.seed,
                config_version=config.config_version,
            ),
        )

    @staticmethod
    def _agent_view(agent: Agent) -> AgentView:
        return AgentView(
            id=agent.id,
            x=agent.position.x,
            y=agent.position.y,
            heading=agent.heading,
            energy=agent.energy,
            age=agent.age,
            generation=agent.generation,
            lineage_id=agent.lineage_id,
            sex=agent.sex,
        )

    def _seed_resources(self) -> None:
        environment = self._config.environment
        count = min(environment.initial_resources, environment.max_resources)
        for _ in range(count):
            self.add_resource()

    def _spawn_resources(self, dt: float) -> None:
        environment = self._config.environment
        self._spawn_accumulator += environment.resource_spawn_per_second * dt
        spawned = 0
        while self._spawn_accumulator >= 1.0:
            self._spawn_accumulator -= 1.0
            if len(self._resources) >= environment.max_resources:
                continue
            self.add_resource()
            spawned += 1
        if spawned:
            logger.debug("tick %d: spawned %d resources", self._tick, spawned)

    def _ensure_index(self) -> None:
        if self._index_dirty:
            self._rebuild_index()

    def _rebuild_index(self) -> None:
        self._agent_grid.rebuild(agent for agent in self._agents if agent.is_alive())
        self._resource_grid.rebuild(self._resources)
        self._index_dirty = False

    def _resolve_collisions(self, living: List[Agent]) -> None:
        body_radius = self._config.species.body_radius
        if body_radius <= 0.0:
            return
        contact = body_radius * 2.0
        contact_sq = contact * contact
        pushes: List[Tuple[Agent, float, float]] = []
        for agent in living:
            neighbors, offsets, dist_sq = self.query_agents(agent.position, contact, exclude_id=agent.id)
            push_x = 0.0
            push_y = 0.0
            for other, offset, d_sq in zip(neighbors, offsets, dist_sq):
                if d_sq >= contact_sq:
                    continue
                if d_sq <= 1e-12:
                    # Coincident bodies split along x, lower id toward -x.
                    push_x += -contact * 0.5 if agent.id < other.id else contact * 0.5
                    continue
                distance = math.sqrt(d_sq)
                overlap = (contact - distance) * 0.5
                push_x -= offset.x / distance * overlap
                push_y -= offset.y / distance * overlap
            if push_x or push_y:
                pushes.append((agent, push_x, push_y))
        # Applied after every query so the outcome does not depend on agent order.
        for agent, push_x, push_y in pushes:
            agent.position.update(agent.position.x + push_x, agent.position.y + push_y)
            self.wrap_position(agent.position)
        self._index_dirty = True

    def _resolve_consumption(self, living: List[Agent]) -> float:
        radius = self._config.species.interaction_radius
        if radius <= 0.0 or not self._resources:
            return 0.0
        consumed = 0.0
        for agent in living:
            if agent.energy <= 0.0:
                continue
            nearby, _, _ = self.query_resources(agent.position, radius)
            for resource in nearby:
                if resource.is_depleted():
                    continue
                consumed += agent.consume(resource)
                if agent.energy >= agent.species.max_energy:
                    break
        remaining = [resource for resource in self._resources if not resource.is_depleted()]
        if len(remaining) != len(self._resources):
            self._resources = remaining
            self._index_dirty = True
        return consumed

    def _resolve_resting(self, living: List[Agent], dt: float) -> None:
        species = self._config.species
        if species.rest_regen_per_second <= 0.0 and species.social_rest_regen_per_second <= 0.0:
            return
        resting = [agent for agent in living if agent.energy > 0.0 and agent.is_resting()]
        company = []
        for agent in resting:
            if species.social_rest_radius > 0.0:
                neighbors, _, _ = self.query_agents(agent.position, species.social_rest_radius, exclude_id=agent.id)
                company.append(bool(neighbors))
            else:
                company.append(False)
        for agent, has_company in zip(resting, company):
            agent.rest(dt, has_company)
