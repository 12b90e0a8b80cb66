from __future__ import annotations

import math
from typing import Dict, Generic, List, Protocol, Tuple, TypeVar

from pygame.math import Vector2


class Positioned(Protocol):
    id: int
    position: Vector2


E = TypeVar("E", bound=Positioned)


def wrapped_delta(delta: float, extent: float) -> float:
    """Shortest signed distance along one axis of a torus of length ``extent``."""
    delta = math.fmod(delta, extent)
    half = extent * 0.5
    if delta > half:
        delta -= extent
    elif delta < -half:
        delta += extent
    return delta


class SpatialGrid(Generic[E]):
    """Uniform bucket grid over a toroidal ``width`` x ``height`` arena."""

    def __init__(self, cell_size: float, width: float, height: float) -> None:
        if cell_size <= 0.0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._width = width
        self._height = height
        self._cols = max(1, int(math.ceil(width / cell_size)))
        self._rows = max(1, int(math.ceil(height / cell_size)))
        # Cells tile the arena exactly, so none is narrower than its neighbours.
        self._cell_w = width / self._cols
        self._cell_h = height / self._rows
        self._cells: Dict[Tuple[int, int], List[E]] = {}
        self._active_keys: List[Tuple[int, int]] = []
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def build_neighbor_cell_offsets(self, radius: float) -> List[Tuple[int, int]]:
        col_range = min(int(math.ceil(radius / self._cell_w)), self._cols // 2)
        row_range = min(int(math.ceil(radius / self._cell_h)), self._rows // 2)
        return [
            (dx, dy)
            for dx in range(-col_range, col_range + 1)
            for dy in range(-row_range, row_range + 1)
        ]

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()
        self._count = 0

    def insert(self, entry: E) -> None:
        key = self._cell_key(entry.position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared at the start of this tick; mark it active again.
            self._active_keys.append(key)
        bucket.append(entry)
        self._count += 1

    def rebuild(self, entries) -> None:
        self.clear()
        for entry in entries:
            self.insert(entry)

    def get_neighbors(self, position: Vector2, radius: float, exclude_id: int | None = None) -> List[E]:
        out_entries: List[E] = []
        self.collect_neighbors(position, radius, out_entries, [], exclude_id=exclude_id)
        return out_entries

    def collect_neighbors(
        self,
        position: Vector2,
        radius: float,
        out_entries: List[E],
        out_offsets: List[Vector2],
        exclude_id: int | None = None,
        out_dist_sq: List[float] | None = None,
    ) -> None:
        """
        Fill the buffers with entries within ``radius`` of ``position``, their
        minimum-image offsets from ``position`` and squared distances.

        Results are ordered by entry id so callers iterate deterministically.
        """

        out_entries.clear()
        out_offsets.clear()
        if out_dist_sq is not None:
            out_dist_sq.clear()
        base_col, base_row = self._cell_key(position)
        radius_sq = radius * radius
        pos_x = position.x
        pos_y = position.y
        width = self._width
        height = self._height
        found: List[Tuple[int, E, float, float, float]] = []
        visited = set()

        for dx, dy in self.build_neighbor_cell_offsets(radius):
            key = ((base_col + dx) % self._cols, (base_row + dy) % self._rows)
            if key in visited:
                continue
            visited.add(key)
            bucket = self._cells.get(key)
            if not bucket:
                continue
            for entry in bucket:
                if exclude_id is not None and entry.id == exclude_id:
                    continue
                pos = entry.position
                offset_x = wrapped_delta(pos.x - pos_x, width)
                offset_y = wrapped_delta(pos.y - pos_y, height)
                dist_sq = offset_x * offset_x + offset_y * offset_y
                if dist_sq <= radius_sq:
                    found.append((entry.id, entry, offset_x, offset_y, dist_sq))

        found.sort(key=lambda item: item[0])
        for _, entry, offset_x, offset_y, dist_sq in found:
            out_entries.append(entry)
            out_offsets.append(Vector2(offset_x, offset_y))
            if out_dist_sq is not None:
                out_dist_sq.append(dist_sq)

    def _cell_key(self, position: Vector2) -> Tuple[int, int]:
        col = int(position.x // self._cell_w) % self._cols
        row = int(position.y // self._cell_h) % self._rows
        return (col, row)
