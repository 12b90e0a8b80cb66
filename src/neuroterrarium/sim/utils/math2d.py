from __future__ import annotations

import math

from pygame.math import Vector2


def _clamp_length_xy_f(x: float, y: float, max_length: float) -> tuple[float, float]:
    if max_length <= 0.0:
        return 0.0, 0.0
    magnitude_sq = x * x + y * y
    max_sq = max_length * max_length
    if magnitude_sq <= max_sq:
        return x, y
    if magnitude_sq <= 1e-18:
        return 0.0, 0.0
    inv = max_length / math.sqrt(magnitude_sq)
    return x * inv, y * inv


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def _wrap_angle(angle: float) -> float:
    """Map an angle to [-pi, pi)."""
    return (angle + math.pi) % (2.0 * math.pi) - math.pi


def _wrap_coordinate(value: float, extent: float) -> float:
    wrapped = value % extent
    # Float modulo can return ``extent`` itself for tiny negative inputs.
    if wrapped >= extent:
        wrapped = 0.0
    return wrapped


def _bearing(offset: Vector2, heading: float) -> float:
    """Angle of ``offset`` relative to ``heading``, in [-pi, pi)."""
    if offset.x == 0.0 and offset.y == 0.0:
        return 0.0
    return _wrap_angle(math.atan2(offset.y, offset.x) - heading)
