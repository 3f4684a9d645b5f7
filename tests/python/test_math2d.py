from __future__ import annotations

import math

from pygame.math import Vector2
from pytest import approx

from crowdsim.sim.utils.math2d import (
    _clamp_length_xy_f,
    _distance,
    _exact_equals,
    _is_finite,
    _safe_normalize_xy_f,
)


def test_safe_normalize_zero_vector_is_zero_not_nan():
    assert _safe_normalize_xy_f(0.0, 0.0) == (0.0, 0.0)
    assert _safe_normalize_xy_f(1e-12, -1e-12) == (0.0, 0.0)


def test_safe_normalize_unit_length():
    x, y = _safe_normalize_xy_f(3.0, -4.0)
    assert (x, y) == (approx(0.6), approx(-0.8))
    assert math.hypot(x, y) == approx(1.0)


def test_clamp_length_preserves_direction():
    x, y = _clamp_length_xy_f(3.0, 4.0, 1.0)
    assert (x, y) == (approx(0.6), approx(0.8))
    assert _clamp_length_xy_f(0.3, 0.4, 1.0) == (0.3, 0.4)
    assert _clamp_length_xy_f(3.0, 4.0, 0.0) == (0.0, 0.0)
    assert _clamp_length_xy_f(0.0, -10.0, 2.0) == (0.0, approx(-2.0))


def test_distance_and_finiteness():
    assert _distance(Vector2(1.0, 1.0), Vector2(4.0, 5.0)) == approx(5.0)
    assert _is_finite(Vector2(1.0, -2.0))
    assert not _is_finite(Vector2(float("nan"), 0.0))
    assert not _is_finite(Vector2(0.0, float("inf")))


def test_exact_equals_ignores_vector2_epsilon():
    a = Vector2(0.0, 1.0)
    b = Vector2(0.0, 1.0 + 1e-9)
    assert _exact_equals(a, Vector2(0.0, 1.0))
    assert not _exact_equals(a, b)
