from __future__ import annotations

import random
from dataclasses import dataclass

import pytest
from pygame.math import Vector2

from neuroterrarium.sim.core.spatial_grid import SpatialGrid, wrapped_delta


@dataclass
class Point:
    id: int
    position: Vector2


def _brute_force(points, center, radius, width, height, exclude_id=None):
    found = []
    for point in points:
        if point.id == exclude_id:
            continue
        dx = wrapped_delta(point.position.x - center.x, width)
        dy = wrapped_delta(point.position.y - center.y, height)
        if dx * dx + dy * dy <= radius * radius:
            found.append(point.id)
    return found


def test_wrapped_delta_takes_the_short_way_round():
    assert wrapped_delta(3.0, 10.0) == pytest.approx(3.0)
    assert wrapped_delta(8.0, 10.0) == pytest.approx(-2.0)
    assert wrapped_delta(-8.0, 10.0) == pytest.approx(2.0)
    assert wrapped_delta(23.0, 10.0) == pytest.approx(3.0)


def test_neighbor_query_matches_bruteforce():
    width, height = 100.0, 80.0
    rng = random.Random(3)
    points = [
        Point(idx, Vector2(rng.uniform(0.0, width), rng.uniform(0.0, height)))
        for idx in range(200)
    ]
    grid: SpatialGrid[Point] = SpatialGrid(7.0, width, height)
    grid.rebuild(points)
    assert len(grid) == 200

    for _ in range(25):
        center = Vector2(rng.uniform(0.0, width), rng.uniform(0.0, height))
        radius = rng.uniform(1.0, 30.0)
        neighbors = grid.get_neighbors(center, radius)
        assert [entry.id for entry in neighbors] == _brute_force(points, center, radius, width, height)


def test_collect_neighbors_returns_offsets_across_the_seam():
    grid: SpatialGrid[Point] = SpatialGrid(10.0, 100.0, 100.0)
    points = [
        Point(0, Vector2(1.0, 50.0)),
        Point(1, Vector2(99.0, 50.0)),
        Point(2, Vector2(50.0, 99.5)),
        Point(3, Vector2(50.0, 50.0)),
    ]
    grid.rebuild(points)

    out_entries: list[Point] = []
    out_offsets: list[Vector2] = []
    out_dist_sq: list[float] = []
    grid.collect_neighbors(Vector2(1.0, 50.0), 3.0, out_entries, out_offsets, 0, out_dist_sq)

    assert [entry.id for entry in out_entries] == [1]
    assert out_offsets[0].x == pytest.approx(-2.0)
    assert out_offsets[0].y == pytest.approx(0.0)
    assert out_dist_sq[0] == pytest.approx(4.0)

    grid.collect_neighbors(Vector2(50.0, 0.5), 2.0, out_entries, out_offsets)
    assert [entry.id for entry in out_entries] == [2]
    assert out_offsets[0].y == pytest.approx(-1.0)


def test_collect_neighbors_clears_buffers():
    grid: SpatialGrid[Point] = SpatialGrid(2.0, 20.0, 20.0)
    grid.insert(Point(0, Vector2(0.0, 0.0)))

    out_entries: list[Point] = []
    out_offsets: list[Vector2] = [Vector2(5, 5)]
    out_dist_sq: list[float] = [42.0]

    grid.collect_neighbors(Vector2(0.5, 0.0), 1.6, out_entries, out_offsets, out_dist_sq=out_dist_sq)

    assert len(out_entries) == 1
    assert len(out_offsets) == 1
    assert out_dist_sq == [out_offsets[0].length_squared()]

    grid.collect_neighbors(Vector2(10.0, 10.0), 1.6, out_entries, out_offsets, out_dist_sq=out_dist_sq)

    assert out_entries == []
    assert out_offsets == []
    assert out_dist_sq == []


def test_radius_wider_than_the_arena_reports_each_entry_once():
    grid: SpatialGrid[Point] = SpatialGrid(2.5, 10.0, 10.0)
    points = [Point(idx, Vector2(idx * 1.3, idx * 0.7)) for idx in range(7)]
    grid.rebuild(points)

    neighbors = grid.get_neighbors(Vector2(5.0, 5.0), 50.0)

    assert [entry.id for entry in neighbors] == list(range(7))


def test_results_are_ordered_by_id():
    grid: SpatialGrid[Point] = SpatialGrid(5.0, 50.0, 50.0)
    for idx in (9, 2, 7, 4):
        grid.insert(Point(idx, Vector2(20.0 + idx, 20.0)))

    neighbors = grid.get_neighbors(Vector2(25.0, 20.0), 10.0)

    assert [entry.id for entry in neighbors] == [2, 4, 7, 9]


def test_rebuild_replaces_previous_entries():
    grid: SpatialGrid[Point] = SpatialGrid(5.0, 50.0, 50.0)
    grid.rebuild([Point(0, Vector2(10.0, 10.0))])
    grid.rebuild([Point(1, Vector2(40.0, 40.0))])

    assert grid.get_neighbors(Vector2(10.0, 10.0), 3.0) == []
    assert [entry.id for entry in grid.get_neighbors(Vector2(40.0, 40.0), 3.0)] == [1]


def test_invalid_cell_size_is_rejected():
    with pytest.raises(ValueError):
        SpatialGrid(0.0, 10.0, 10.0)
