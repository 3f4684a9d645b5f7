from __future__ import annotations

import math

from pygame.math import Vector2


def _safe_normalize_xy_f(x: float, y: float) -> tuple[float, float]:
    magnitude_sq = x * x + y * y
    if magnitude_sq < 1e-18:
        return 0.0, 0.0
    inv = 1.0 / math.sqrt(magnitude_sq)
    return x * inv, y * inv


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


def _distance(a: Vector2, b: Vector2) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def _dot_xy(ax: float, ay: float, bx: float, by: float) -> float:
    return ax * bx + ay * by


def _exact_equals(a: Vector2, b: Vector2) -> bool:
    # Vector2.__eq__ compares within Vector2.epsilon; goal grouping needs bit equality.
    return a.x == b.x and a.y == b.y


def _is_finite(vector: Vector2) -> bool:
    return math.isfinite(vector.x) and math.isfinite(vector.y)
