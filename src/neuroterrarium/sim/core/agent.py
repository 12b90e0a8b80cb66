from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from pygame.math import Vector2

from ..systems import sensing
from ..utils.math2d import _clamp_length_xy_f, _clamp_value, _wrap_angle
from .brain import Brain
from .config import SpeciesConfig
from .errors import DimensionMismatchError
from .genome import Genome
from .resource import Resource

if TYPE_CHECKING:
    from .world import World


@dataclass(slots=True)
class Agent:
    id: int
    generation: int
    lineage_id: int
    position: Vector2
    heading: float
    genome: Genome
    brain: Brain
    species: SpeciesConfig
    energy: float
    velocity: Vector2 = field(default_factory=Vector2)
    sex: int = 0
    age: int = 0
    reproduction_cooldown: float = 0.0
    food_eaten: int = 0
    offspring: int = 0
    alive: bool = True
    last_sensors: np.ndarray | None = None
    last_actuators: np.ndarray | None = None

    def sense(self, world: "World") -> np.ndarray:
        sensors = sensing.encode(world, self)
        self.last_sensors = sensors
        return sensors

    def think(self, sensors: np.ndarray) -> np.ndarray:
        actuators = self.brain.evaluate(sensors)
        self.last_actuators = actuators
        return actuators

    def act(self, actuators, dt: float) -> None:
        """Apply turn and thrust commands over ``dt`` and pay for the effort.

        ``actuators[0]`` is the turn command and ``actuators[1]`` the thrust
        command, both in [-1, 1]. Thrust only pushes forward.
        """
        if len(actuators) != sensing.ACTUATOR_COUNT:
            raise DimensionMismatchError(
                f"expected {sensing.ACTUATOR_COUNT} actuator values, got {len(actuators)}"
            )
        species = self.species
        turn_command = _clamp_value(float(actuators[sensing.ACT_TURN]), -1.0, 1.0)
        thrust = (_clamp_value(float(actuators[sensing.ACT_THRUST]), -1.0, 1.0) + 1.0) * 0.5

        self.heading = _wrap_angle(self.heading + turn_command * species.max_turn_rate * dt)
        push = thrust * species.max_acceleration * dt
        vel_x = self.velocity.x + math.cos(self.heading) * push
        vel_y = self.velocity.y + math.sin(self.heading) * push
        damping = math.exp(-species.drag * dt)
        vel_x, vel_y = _clamp_length_xy_f(vel_x * damping, vel_y * damping, species.max_speed)
        self.velocity.update(vel_x, vel_y)
        self.position.update(self.position.x + vel_x * dt, self.position.y + vel_y * dt)

        effort = (
            species.metabolic_cost_per_second
            + species.thrust_cost_per_second * thrust
            + species.turn_cost_per_second * abs(turn_command)
        )
        self.energy = _clamp_value(self.energy - effort * dt, 0.0, species.max_energy)

    def consume(self, resource: Resource) -> float:
        room = max(0.0, self.species.max_energy - self.energy)
        gained = resource.take(room)
        if gained > 0.0:
            self.energy = min(self.species.max_energy, self.energy + gained)
            self.food_eaten += 1
        return gained

    def rest(self, dt: float, has_company: bool) -> None:
        species = self.species
        rate = species.social_rest_regen_per_second if has_company else species.rest_regen_per_second
        self.energy = min(species.max_energy, self.energy + rate * dt)

    def is_resting(self) -> bool:
        return self.velocity.length() < self.species.rest_speed_threshold

    def is_alive(self) -> bool:
        return self.alive and self.energy > 0.0 and self.age < self.species.max_age_ticks

    def energy_fraction(self) -> float:
        return self.energy / self.species.max_energy

    def speed_fraction(self) -> float:
        if self.species.max_speed <= 0.0:
            return 0.0
        return min(1.0, self.velocity.length() / self.species.max_speed)
