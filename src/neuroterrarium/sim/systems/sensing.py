"""Sensor encoding.

Every agent reads the same fixed-length vector, whatever its surroundings.
Missing neighbours are encoded as a sentinel at maximum range (distance 1.0,
bearing 0.0) so the brain never sees a ragged input.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from ..utils.math2d import _bearing

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.world import World

SENSE_FOOD_DISTANCE = 0
SENSE_FOOD_BEARING = 1
SENSE_AGENT_DISTANCE = 2
SENSE_AGENT_BEARING = 3
SENSE_AGENT_ENERGY = 4
SENSE_AGENT_CROWD = 5
SENSE_FOOD_CROWD = 6
SENSE_OWN_ENERGY = 7
SENSE_OWN_SPEED = 8
SENSOR_COUNT = 9

ACT_TURN = 0
ACT_THRUST = 1
ACTUATOR_COUNT = 2


def encode(world: World, agent: Agent) -> np.ndarray:
    species = agent.species
    radius = species.perception_radius
    crowd = float(species.crowd_normalizer)
    sensors = np.zeros(SENSOR_COUNT, dtype=np.float64)
    sensors[SENSE_FOOD_DISTANCE] = 1.0
    sensors[SENSE_AGENT_DISTANCE] = 1.0

    resources, resource_offsets, resource_dist_sq = world.query_resources(agent.position, radius)
    nearest = _nearest_index(resource_dist_sq)
    if nearest is not None:
        sensors[SENSE_FOOD_DISTANCE] = math.sqrt(resource_dist_sq[nearest]) / radius
        sensors[SENSE_FOOD_BEARING] = _bearing(resource_offsets[nearest], agent.heading) / math.pi
    sensors[SENSE_FOOD_CROWD] = min(1.0, len(resources) / crowd)

    neighbors, neighbor_offsets, neighbor_dist_sq = world.query_agents(
        agent.position, radius, exclude_id=agent.id
    )
    nearest = _nearest_index(neighbor_dist_sq)
    if nearest is not None:
        sensors[SENSE_AGENT_DISTANCE] = math.sqrt(neighbor_dist_sq[nearest]) / radius
        sensors[SENSE_AGENT_BEARING] = _bearing(neighbor_offsets[nearest], agent.heading) / math.pi
        sensors[SENSE_AGENT_ENERGY] = neighbors[nearest].energy_fraction()
    sensors[SENSE_AGENT_CROWD] = min(1.0, len(neighbors) / crowd)

    sensors[SENSE_OWN_ENERGY] = agent.energy_fraction()
    sensors[SENSE_OWN_SPEED] = agent.speed_fraction()
    return sensors


def _nearest_index(dist_sq: list[float]) -> int | None:
    # Entries arrive ordered by id, so the first minimum is also the lowest id.
    best = None
    best_dist = math.inf
    for index, value in enumerate(dist_sq):
        if value < best_dist:
            best = index
            best_dist = value
    return best
