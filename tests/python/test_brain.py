from __future__ import annotations

import math

import numpy as np
import pytest

from neuroterrarium.sim.core.brain import Brain, Topology, evaluate
from neuroterrarium.sim.core.errors import DimensionMismatchError, ShapeMismatchError
from neuroterrarium.sim.core.genome import Genome


def test_topology_counts_weights_and_biases():
    topology = Topology.build(9, (6,), 2)

    assert topology.layer_sizes == (9, 6, 2)
    assert topology.layer_shapes == [(6, 9), (2, 6)]
    assert topology.total_param_count == 74
    assert topology.input_size == 9
    assert topology.output_size == 2


@pytest.mark.parametrize("sizes", [(3,), (3, 0, 2), (-1, 2)])
def test_topology_rejects_degenerate_layers(sizes):
    with pytest.raises(ValueError):
        Topology(sizes)


def test_single_layer_forward_pass_matches_hand_calculation():
    topology = Topology((2, 1))
    genome = Genome([1.0, -2.0, 0.5])

    outputs = evaluate(topology, genome, [0.3, 0.1])

    assert outputs.shape == (1,)
    assert outputs[0] == pytest.approx(math.tanh(0.3 - 0.2 + 0.5))


def test_hidden_layer_is_squashed_before_the_output_layer():
    topology = Topology((1, 1, 1))
    genome = Genome([2.0, 0.0, 1.0, 0.5])

    outputs = evaluate(topology, genome, [0.5])

    assert outputs[0] == pytest.approx(math.tanh(math.tanh(1.0) + 0.5))


def test_zero_genome_outputs_zero():
    topology = Topology((9, 6, 2))

    outputs = Brain(topology, Genome.zeros(topology)).evaluate(np.ones(9))

    assert outputs.tolist() == [0.0, 0.0]


def test_outputs_stay_in_unit_range_for_extreme_weights():
    topology = Topology((9, 6, 2))
    genome = Genome(np.random.default_rng(1).uniform(-50.0, 50.0, topology.total_param_count))
    brain = Brain(topology, genome)
    rng = np.random.default_rng(2)

    for _ in range(50):
        outputs = brain.evaluate(rng.uniform(-1.0, 1.0, 9))
        assert np.all(outputs >= -1.0)
        assert np.all(outputs <= 1.0)


def test_evaluation_is_pure():
    topology = Topology((9, 6, 2))
    brain = Brain(topology, Genome.random(topology, np.random.default_rng(8)))
    sensors = np.linspace(-1.0, 1.0, 9)

    first = brain.evaluate(sensors)
    second = brain.evaluate(sensors)

    assert np.array_equal(first, second)
    assert np.array_equal(first, evaluate(topology, brain.genome, sensors))


def test_wrong_genome_length_is_rejected():
    topology = Topology((9, 6, 2))

    with pytest.raises(ShapeMismatchError):
        Brain(topology, Genome(np.zeros(73)))
    with pytest.raises(ShapeMismatchError):
        evaluate(topology, Genome(np.zeros(75)), np.zeros(9))


def test_wrong_sensor_count_is_rejected():
    topology = Topology((9, 6, 2))
    brain = Brain(topology, Genome.zeros(topology))

    with pytest.raises(DimensionMismatchError):
        brain.evaluate(np.zeros(8))
    with pytest.raises(DimensionMismatchError):
        brain.evaluate(np.zeros((9, 1)))
