from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.errors import ConfigError
from ..sim.core.simulation import Simulation
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)

_BASIC_HEADER = [
    "tick",
    "population",
    "births",
    "deaths",
    "avg_energy",
    "avg_age",
    "max_generation",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "population",
    "births",
    "deaths",
    "reseeded",
    "culled",
    "resources",
    "avg_energy",
    "avg_age",
    "max_generation",
    "lineages",
    "neighbor_checks",
    "tick_ms",
    "births_per_agent",
    "deaths_per_agent",
    "neighbor_checks_per_agent",
    "avg_speed",
    "avg_food_eaten",
    "population_density",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.births,
        metrics.deaths,
        f"{metrics.average_energy:.4f}",
        f"{metrics.average_age:.4f}",
        metrics.max_generation,
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(simulation: Simulation, metrics: TickMetrics, tick_ms: float) -> list[object]:
    population = metrics.population
    if population <= 0:
        births_per_agent = 0.0
        deaths_per_agent = 0.0
        neighbor_checks_per_agent = 0.0
        avg_speed = 0.0
        avg_food_eaten = 0.0
    else:
        births_per_agent = metrics.births / population
        deaths_per_agent = metrics.deaths / population
        neighbor_checks_per_agent = metrics.neighbor_checks / population
        agents = simulation.world.agents
        avg_speed = sum(math.hypot(agent.velocity.x, agent.velocity.y) for agent in agents) / population
        avg_food_eaten = sum(agent.food_eaten for agent in agents) / population
    config = simulation.config
    world_area = config.world_width * config.world_height
    population_density = population / world_area if world_area > 0 else 0.0
    return [
        metrics.tick,
        population,
        metrics.births,
        metrics.deaths,
        metrics.reseeded,
        metrics.culled,
        metrics.resources,
        f"{metrics.average_energy:.4f}",
        f"{metrics.average_age:.4f}",
        metrics.max_generation,
        metrics.lineages,
        metrics.neighbor_checks,
        f"{tick_ms:.3f}",
        f"{births_per_agent:.4f}",
        f"{deaths_per_agent:.4f}",
        f"{neighbor_checks_per_agent:.4f}",
        f"{avg_speed:.4f}",
        f"{avg_food_eaten:.4f}",
        f"{population_density:.8f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def load_run_config(config_path: Optional[Path], seed: Optional[int]) -> SimulationConfig:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    return config.validate()


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 500,
    config_path: Optional[Path] = None,
) -> Simulation:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = load_run_config(config_path, seed)
    simulation = Simulation(config)

    tick_ms_series: list[float] = []
    population_series: list[float] = []
    generation_series: list[float] = []
    energy_series: list[float] = []

    csv_file = None
    writer = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    try:
        for _ in range(steps):
            metrics = simulation.step()
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            tick_ms_series.append(tick_ms)
            population_series.append(float(metrics.population))
            generation_series.append(float(metrics.max_generation))
            energy_series.append(metrics.average_energy)
            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(simulation, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    population = simulation.population
    logger.info(
        "ran %d ticks: population=%d max_generation=%d births=%d deaths=%d reseeded=%d culled=%d",
        steps,
        simulation.world.agent_count,
        population.max_generation,
        population.total_births,
        population.total_deaths,
        population.total_reseeded,
        population.total_culled,
    )

    if summary_path:
        window = max(1, int(summary_window))
        tail = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": config.seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "totals": {
                "births": population.total_births,
                "deaths": population.total_deaths,
                "reseeded": population.total_reseeded,
                "culled": population.total_culled,
                "max_generation": population.max_generation,
            },
            "tick_ms": _summary_stats(tick_ms_series),
            "population": _summary_stats(population_series),
            "average_energy": _summary_stats(energy_series),
            "tail_window": {
                "window": window,
                "population": _summary_stats(population_series[tail]),
                "max_generation": _summary_stats(generation_series[tail]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    return simulation


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Headless neuroevolution simulation")
    parser.add_argument("--steps", type=int, default=3000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file overriding the defaults")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument("--summary", type=Path, default=None, help="Optional JSON summary of the run.")
    parser.add_argument("--summary-window", type=int, default=500, help="Tail window size (ticks).")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        run_headless(
            args.steps,
            args.seed,
            args.log,
            deterministic_log=args.deterministic_log,
            log_format=args.log_format,
            summary_path=args.summary,
            summary_window=args.summary_window,
            config_path=args.config,
        )
    except ConfigError as exc:
        logger.error("invalid configuration: %s", exc)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
