import csv
import json

import pytest

from neuroterrarium.app.headless import load_run_config, main, run_headless


def _read_csv(path):
    with path.open(newline="") as handle:
        return list(csv.reader(handle))


def test_headless_basic_log_header(tmp_path):
    log_path = tmp_path / "basic.csv"
    run_headless(steps=2, seed=1, log_path=log_path, deterministic_log=True, log_format="basic")
    rows = _read_csv(log_path)
    assert len(rows) == 3
    assert rows[0] == [
        "tick",
        "population",
        "births",
        "deaths",
        "avg_energy",
        "avg_age",
        "max_generation",
        "tick_ms",
    ]
    assert [row[0] for row in rows[1:]] == ["0", "1"]
    assert all(row[-1] == "0.000" for row in rows[1:])


def test_headless_detailed_log_header_and_ratios(tmp_path):
    log_path = tmp_path / "detailed.csv"
    simulation = run_headless(steps=3, seed=2, log_path=log_path, deterministic_log=True, log_format="detailed")
    rows = _read_csv(log_path)
    assert len(rows) == 4
    header = rows[0]
    assert header == [
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

    last_row = rows[-1]
    idx = {name: i for i, name in enumerate(header)}
    population = int(last_row[idx["population"]])
    births = int(last_row[idx["births"]])
    neighbor_checks = int(last_row[idx["neighbor_checks"]])

    assert population == simulation.world.agent_count
    if population > 0:
        assert float(last_row[idx["births_per_agent"]]) == pytest.approx(births / population, abs=1e-4)
        assert float(last_row[idx["neighbor_checks_per_agent"]]) == pytest.approx(
            neighbor_checks / population, abs=1e-4
        )
    assert float(last_row[idx["population_density"]]) == pytest.approx(population / 1_000_000.0, abs=1e-8)


def test_headless_deterministic_logs_match_for_same_seed(tmp_path):
    first = tmp_path / "first.csv"
    second = tmp_path / "second.csv"

    run_headless(steps=15, seed=5, log_path=first, deterministic_log=True)
    run_headless(steps=15, seed=5, log_path=second, deterministic_log=True)

    assert first.read_text() == second.read_text()


def test_headless_summary(tmp_path):
    summary_path = tmp_path / "summary.json"
    run_headless(
        steps=4,
        seed=3,
        log_path=None,
        deterministic_log=True,
        summary_path=summary_path,
        summary_window=2,
    )
    summary = json.loads(summary_path.read_text())
    assert summary["steps"] == 4
    assert summary["seed"] == 3
    assert summary["deterministic_log"] is True
    assert summary["tail_window"]["window"] == 2
    assert summary["tick_ms"]["max"] == 0.0
    assert set(summary["totals"]) == {"births", "deaths", "reseeded", "culled", "max_generation"}
    assert summary["population"]["min"] <= summary["population"]["p50"] <= summary["population"]["max"]


def test_headless_rejects_unknown_log_format(tmp_path):
    with pytest.raises(ValueError):
        run_headless(steps=1, seed=1, log_path=tmp_path / "x.csv", log_format="verbose")


def test_load_run_config_applies_seed_override(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text("seed: 10\ninitial_population: 5\n")

    config = load_run_config(path, 77)

    assert config.seed == 77
    assert config.initial_population == 5


def test_main_writes_log(tmp_path):
    log_path = tmp_path / "main.csv"

    code = main(["--steps", "2", "--seed", "3", "--log", str(log_path), "--log-format", "basic"])

    assert code == 0
    assert len(_read_csv(log_path)) == 3


def test_main_reports_invalid_config(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("evolution:\n  mutation_rate: 5.0\n")

    assert main(["--steps", "1", "--config", str(path)]) == 2


@pytest.mark.parametrize("content", ["- 1\n- 2\n", "time_step: fast\n", "species: [unclosed\n"])
def test_main_reports_malformed_config(tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content)

    assert main(["--steps", "1", "--config", str(path)]) == 2
