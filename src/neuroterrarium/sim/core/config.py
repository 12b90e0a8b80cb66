from __future__ import annotations

import math
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError

CROSSOVER_MODES = ("uniform", "blend")
MATE_SELECTION_MODES = ("nearby", "energy_proportional")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_problems(section, prefix: str = "") -> list[str]:
    """Compare every scalar field against the type of its default."""
    problems = []
    for entry in fields(section):
        if entry.default is MISSING:
            continue
        value = getattr(section, entry.name)
        default = entry.default
        name = f"{prefix}{entry.name}"
        if default is None:
            ok = value is None or _is_number(value)
        elif isinstance(default, bool):
            ok = isinstance(value, bool)
        elif isinstance(default, int):
            ok = isinstance(value, int) and not isinstance(value, bool)
        elif isinstance(default, float):
            ok = _is_number(value)
        elif isinstance(default, str):
            ok = isinstance(value, str)
        elif isinstance(default, tuple):
            ok = isinstance(value, tuple) and all(
                isinstance(item, int) and not isinstance(item, bool) for item in value
            )
        else:
            ok = True
        if not ok:
            problems.append(f"{name} has invalid value {value!r}")
    return problems


@dataclass
class SpeciesConfig:
    max_energy: float = 100.0
    initial_energy: float = 60.0
    metabolic_cost_per_second: float = 1.0
    thrust_cost_per_second: float = 2.0
    turn_cost_per_second: float = 0.5
    max_speed: float = 80.0
    max_acceleration: float = 120.0
    max_turn_rate: float = math.pi
    drag: float = 1.5
    perception_radius: float = 120.0
    interaction_radius: float = 12.0
    body_radius: float = 5.0
    crowd_normalizer: int = 8
    max_age_ticks: int = 6000
    maturity_age_ticks: int = 300
    reproduction_energy_threshold: float = 70.0
    reproduction_cooldown_seconds: float = 15.0
    reproduction_cost_fraction: float = 0.5
    offspring_energy_efficiency: float = 0.8
    offspring_spawn_jitter: float = 10.0
    # Agents slower than rest_speed_threshold regain energy; more with company in social_rest_radius.
    rest_speed_threshold: float = 1.0
    rest_regen_per_second: float = 0.0
    social_rest_regen_per_second: float = 0.0
    social_rest_radius: float = 50.0


@dataclass
class BrainConfig:
    hidden_layers: tuple[int, ...] = (6,)
    init_range: float = 1.0


@dataclass
class EnvironmentConfig:
    initial_resources: int = 40
    max_resources: int = 50
    resource_spawn_per_second: float = 2.0
    resource_quantity: float = 30.0


@dataclass
class EvolutionConfig:
    mutation_rate: float = 0.1
    mutation_magnitude: float = 0.5
    crossover_mode: str = "uniform"
    mate_selection: str = "nearby"
    # With more than one sex, only agents of different sexes can mate.
    sexes: int = 1


@dataclass
class SimulationConfig:
    time_step: float = 1.0 / 30.0
    world_width: float = 1000.0
    world_height: float = 1000.0
    # None sizes the grid cells to the perception radius.
    cell_size: Optional[float] = None
    initial_population: int = 50
    min_population: int = 10
    max_population: int = 100
    seed: int = 42
    reseed_near_survivors: bool = False
    reseed_spread: float = 50.0
    config_version: str = "v1"
    species: SpeciesConfig = field(default_factory=SpeciesConfig)
    brain: BrainConfig = field(default_factory=BrainConfig)
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)
    evolution: EvolutionConfig = field(default_factory=EvolutionConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        try:
            data = yaml.safe_load(Path(path).read_text())
        except yaml.YAMLError as exc:
            raise ConfigError(f"cannot parse {path}: {exc}") from exc
        if data is None:
            data = {}
        return load_config(data)

    @property
    def grid_cell_size(self) -> float:
        if self.cell_size is None:
            return self.species.perception_radius
        return self.cell_size

    def validate(self) -> "SimulationConfig":
        """Reject out-of-range parameters; returns self so calls can be chained."""
        type_problems = _type_problems(self)
        for prefix in ("species", "brain", "environment", "evolution"):
            type_problems.extend(_type_problems(getattr(self, prefix), prefix + "."))
        if type_problems:
            raise ConfigError("; ".join(type_problems))

        problems: list[str] = []

        def require(condition: bool, message: str) -> None:
            if not condition:
                problems.append(message)

        species = self.species
        evolution = self.evolution
        environment = self.environment

        require(self.time_step > 0.0, "time_step must be positive")
        require(self.world_width > 0.0 and self.world_height > 0.0, "world bounds must be positive")
        require(self.cell_size is None or self.cell_size > 0.0, "cell_size must be positive")
        require(self.min_population >= 0, "min_population must be non-negative")
        require(self.max_population > 0, "max_population must be positive")
        require(self.min_population <= self.max_population, "min_population exceeds max_population")
        require(
            0 <= self.initial_population <= self.max_population,
            "initial_population must lie in [0, max_population]",
        )
        require(self.reseed_spread >= 0.0, "reseed_spread must be non-negative")

        require(species.max_energy > 0.0, "species.max_energy must be positive")
        require(
            0.0 < species.initial_energy <= species.max_energy,
            "species.initial_energy must lie in (0, max_energy]",
        )
        for name in (
            "metabolic_cost_per_second",
            "thrust_cost_per_second",
            "turn_cost_per_second",
            "max_speed",
            "max_acceleration",
            "max_turn_rate",
            "drag",
            "interaction_radius",
            "body_radius",
            "offspring_spawn_jitter",
            "reproduction_cooldown_seconds",
            "rest_speed_threshold",
            "rest_regen_per_second",
            "social_rest_regen_per_second",
            "social_rest_radius",
        ):
            require(getattr(species, name) >= 0.0, f"species.{name} must be non-negative")
        require(species.perception_radius > 0.0, "species.perception_radius must be positive")
        require(species.crowd_normalizer > 0, "species.crowd_normalizer must be positive")
        require(species.max_age_ticks > 0, "species.max_age_ticks must be positive")
        require(species.maturity_age_ticks >= 0, "species.maturity_age_ticks must be non-negative")
        require(
            0.0 <= species.reproduction_cost_fraction <= 1.0,
            "species.reproduction_cost_fraction must lie in [0, 1]",
        )
        require(
            species.offspring_energy_efficiency >= 0.0,
            "species.offspring_energy_efficiency must be non-negative",
        )

        require(all(size > 0 for size in self.brain.hidden_layers), "brain.hidden_layers must be positive")
        require(self.brain.init_range > 0.0, "brain.init_range must be positive")

        require(environment.initial_resources >= 0, "environment.initial_resources must be non-negative")
        require(environment.max_resources >= 0, "environment.max_resources must be non-negative")
        require(
            environment.resource_spawn_per_second >= 0.0,
            "environment.resource_spawn_per_second must be non-negative",
        )
        require(environment.resource_quantity > 0.0, "environment.resource_quantity must be positive")

        require(0.0 <= evolution.mutation_rate <= 1.0, "evolution.mutation_rate must lie in [0, 1]")
        require(evolution.mutation_magnitude >= 0.0, "evolution.mutation_magnitude must be non-negative")
        require(
            evolution.crossover_mode in CROSSOVER_MODES,
            f"evolution.crossover_mode must be one of {CROSSOVER_MODES}",
        )
        require(
            evolution.mate_selection in MATE_SELECTION_MODES,
            f"evolution.mate_selection must be one of {MATE_SELECTION_MODES}",
        )
        require(evolution.sexes >= 1, "evolution.sexes must be at least 1")

        if problems:
            raise ConfigError("; ".join(problems))
        return self


SECTIONS = ("species", "brain", "environment", "evolution")


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping, got {type(value).__name__}")
    return value


def load_config(raw: dict) -> SimulationConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"configuration root must be a mapping, got {type(raw).__name__}")
    try:
        species = SpeciesConfig(**_section(raw, "species"))
        brain_raw = dict(_section(raw, "brain"))
        if "hidden_layers" in brain_raw:
            brain_raw["hidden_layers"] = tuple(int(size) for size in brain_raw["hidden_layers"])
        brain = BrainConfig(**brain_raw)
        environment = EnvironmentConfig(**_section(raw, "environment"))
        evolution = EvolutionConfig(**_section(raw, "evolution"))
        sim_values = {k: v for k, v in raw.items() if k not in SECTIONS}
        return SimulationConfig(
            species=species, brain=brain, environment=environment, evolution=evolution, **sim_values
        )
    except (TypeError, ValueError) as exc:
        # Unknown keys surface as constructor TypeErrors.
        raise ConfigError(str(exc)) from exc
