from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .metrics import TickMetrics


@dataclass(frozen=True, slots=True)
class AgentView:
    id: int
    x: float
    y: float
    heading: float
    energy: float
    age: int
    generation: int
    lineage_id: int
    sex: int


@dataclass(frozen=True, slots=True)
class ResourceView:
    id: int
    x: float
    y: float
    quantity: float


@dataclass(frozen=True, slots=True)
class SnapshotWorld:
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class SnapshotMetadata:
    sim_dt: float
    tick_rate: float
    seed: int
    config_version: str


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Read-only view of one tick boundary. Holds no genome or brain data."""

    tick: int
    metrics: Optional[TickMetrics]
    agents: Tuple[AgentView, ...]
    resources: Tuple[ResourceView, ...]
    world: SnapshotWorld
    metadata: SnapshotMetadata
