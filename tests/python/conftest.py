import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from neuroterrarium.sim.core.config import (  # noqa: E402
    EnvironmentConfig,
    SimulationConfig,
    SpeciesConfig,
)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-config-tests",
        action="store_true",
        default=False,
        help="run tests that are intended only for configuration changes",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "config_change: marks tests that should only run when configuration files change",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-config-tests"):
        return

    skip_marker = pytest.mark.skip(
        reason="Run only when configuration is modified (use --run-config-tests)",
    )

    for item in items:
        if "config_change" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def barren_config() -> SimulationConfig:
    """One-second ticks, no food, no effort costs: energy falls by exactly 1 per tick."""
    return SimulationConfig(
        seed=11,
        time_step=1.0,
        initial_population=0,
        min_population=0,
        max_population=50,
        species=SpeciesConfig(
            metabolic_cost_per_second=1.0,
            thrust_cost_per_second=0.0,
            turn_cost_per_second=0.0,
            body_radius=0.0,
        ),
        environment=EnvironmentConfig(
            initial_resources=0,
            max_resources=0,
            resource_spawn_per_second=0.0,
        ),
    )
