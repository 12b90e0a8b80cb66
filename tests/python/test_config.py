from __future__ import annotations

from pathlib import Path

import pytest

from neuroterrarium.sim.core.config import SimulationConfig, load_config
from neuroterrarium.sim.core.errors import ConfigError

DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config" / "default.yaml"


@pytest.mark.config_change
def test_default_yaml_matches_dataclass_defaults():
    assert SimulationConfig.from_yaml(DEFAULT_CONFIG) == SimulationConfig()


def test_defaults_are_valid():
    config = SimulationConfig()

    assert config.validate() is config


def test_yaml_overrides_nested_sections(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text(
        "seed: 99\n"
        "brain:\n"
        "  hidden_layers: [8, 4]\n"
        "evolution:\n"
        "  mutation_rate: 0.25\n"
        "  crossover_mode: blend\n"
        "species:\n"
        "  perception_radius: 60.0\n"
    )

    config = SimulationConfig.from_yaml(path)

    assert config.seed == 99
    assert config.brain.hidden_layers == (8, 4)
    assert config.evolution.mutation_rate == 0.25
    assert config.evolution.crossover_mode == "blend"
    assert config.evolution.mate_selection == "nearby"
    assert config.species.perception_radius == 60.0
    assert config.species.max_energy == 100.0


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert SimulationConfig.from_yaml(path) == SimulationConfig()


@pytest.mark.parametrize(
    "raw",
    [
        {"unknown_option": 1},
        {"species": {"wings": 2}},
        {"evolution": {"mutation_speed": 0.1}},
    ],
)
def test_unknown_keys_are_rejected(raw):
    with pytest.raises(ConfigError):
        load_config(raw)


def test_grid_cell_size_falls_back_to_perception_radius():
    config = SimulationConfig()
    assert config.grid_cell_size == config.species.perception_radius

    config.cell_size = 25.0
    assert config.grid_cell_size == 25.0


def test_validation_reports_every_problem():
    config = SimulationConfig(time_step=0.0, min_population=5, max_population=2, initial_population=1)
    config.evolution.mutation_rate = 1.5
    config.evolution.crossover_mode = "single-point"

    with pytest.raises(ConfigError) as excinfo:
        config.validate()

    message = str(excinfo.value)
    assert "time_step" in message
    assert "min_population exceeds max_population" in message
    assert "mutation_rate" in message
    assert "crossover_mode" in message


def test_config_error_is_a_value_error():
    with pytest.raises(ValueError):
        SimulationConfig(world_width=-1.0).validate()


@pytest.mark.parametrize(
    "raw, field_name",
    [
        ({"time_step": "0.1"}, "time_step"),
        ({"max_population": 10.5}, "max_population"),
        ({"reseed_near_survivors": "yes"}, "reseed_near_survivors"),
        ({"species": {"max_speed": None}}, "species.max_speed"),
        ({"evolution": {"crossover_mode": 3}}, "evolution.crossover_mode"),
        ({"cell_size": "wide"}, "cell_size"),
    ],
)
def test_wrongly_typed_values_are_config_errors(raw, field_name):
    with pytest.raises(ConfigError, match=field_name):
        load_config(raw).validate()


def test_integers_are_accepted_for_float_fields():
    config = load_config({"time_step": 1, "species": {"max_speed": 50}})

    assert config.validate() is config


@pytest.mark.parametrize("raw", [["time_step", 0.1], "time_step", 3])
def test_non_mapping_root_is_rejected(raw):
    with pytest.raises(ConfigError, match="mapping"):
        load_config(raw)


def test_non_mapping_section_is_rejected():
    with pytest.raises(ConfigError, match="species must be a mapping"):
        load_config({"species": [1, 2]})


def test_empty_section_gives_section_defaults(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text("species:\nseed: 5\n")

    config = SimulationConfig.from_yaml(path)

    assert config.species == SimulationConfig().species
    assert config.seed == 5


def test_unparseable_yaml_is_a_config_error(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("species: [unclosed\n")

    with pytest.raises(ConfigError, match="cannot parse"):
        SimulationConfig.from_yaml(path)


def test_rest_and_mating_options_are_range_checked():
    config = SimulationConfig(reseed_spread=-1.0)
    config.species.rest_regen_per_second = -0.5
    config.evolution.sexes = 0

    with pytest.raises(ConfigError) as excinfo:
        config.validate()

    message = str(excinfo.value)
    assert "reseed_spread" in message
    assert "rest_regen_per_second" in message
    assert "sexes" in message
