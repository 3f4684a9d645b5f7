from __future__ import annotations

import math
from typing import TYPE_CHECKING, Optional, Sequence

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.constants import SolverConstants
from ..utils.math2d import _dot_xy, _safe_normalize_xy_f

if TYPE_CHECKING:
    from ...config import SimParams


def contact_time(
    x: Vector2,
    v: Vector2,
    radius_sq: float,
    eps: float = 0.0001,
    horizon: float = 20.0,
) -> Optional[float]:
    """
    Earliest time at which two discs with relative displacement ``x`` and relative
    velocity ``v`` come within ``sqrt(radius_sq)`` of each other.

    Solves ``a t^2 + 2 b t + c = 0`` with ``a = v.v``, ``b = -x.v``, ``c = x.x - r^2``.
    Returns None when there is no real root, the motion is (nearly) parallel, the
    contact lies outside ``[eps, horizon]``, or the inputs are not finite.
    """
    a = _dot_xy(v.x, v.y, v.x, v.y)
    b = -_dot_xy(x.x, x.y, v.x, v.y)
    c = _dot_xy(x.x, x.y, x.x, x.y) - radius_sq
    discriminant = b * b - a * c
    if discriminant < 0.0 or abs(a) < eps:
        return None
    t = (b - math.sqrt(discriminant)) / a
    # Also rejects NaN.
    if not eps <= t <= horizon:
        return None
    return t


def resolve_long_range(
    index: int,
    agents: Sequence[Agent],
    params: SimParams,
    constants: SolverConstants,
    iteration: int,
) -> Agent:
    """
    Predictive avoidance for agent ``index``.

    For every neighbour within ``far_radius`` the time of first contact along the
    implied step velocities is snapped to the step grid; if the agents still overlap
    when projected to that step with their actual velocities, the predicted position
    is pushed along the separating normal. The push decays with the time to contact
    and its stiffness grows with ``iteration``.
    """
    agent = agents[index]
    dt = params.delta_t
    inv_dt = 1.0 / dt
    pos_x = agent.position.x
    pos_y = agent.position.y
    vel_x = agent.velocity.x
    vel_y = agent.velocity.y
    implied_x = agent.predicted_position.x - pos_x
    implied_y = agent.predicted_position.y - pos_y
    far_radius = constants.far_radius
    radius = constants.contact_distance
    eps = constants.eps
    horizon = constants.horizon
    requires_contact = params.long_range_requires_contact
    total_x = 0.0
    total_y = 0.0
    count = 0

    for j, other in enumerate(agents):
        if j == index:
            continue
        other_pos = other.position
        rel_x = pos_x - other_pos.x
        rel_y = pos_y - other_pos.y
        dist = math.hypot(rel_x, rel_y)
        if dist > far_radius:
            continue
        if requires_contact and dist >= radius:
            continue

        radius_sq = radius * radius
        if dist < radius:
            radius_sq = (radius - dist) * (radius - dist)

        rel_vel = Vector2(
            (implied_x - (other.predicted_position.x - other_pos.x)) * inv_dt,
            (implied_y - (other.predicted_position.y - other_pos.y)) * inv_dt,
        )
        t = contact_time(Vector2(rel_x, rel_y), rel_vel, radius_sq, eps, horizon)
        if t is None:
            continue

        t_nocollision = dt * math.floor(t / dt)
        t_collision = dt + t_nocollision

        n_x = (pos_x + vel_x * t_collision) - (other_pos.x + other.velocity.x * t_collision)
        n_y = (pos_y + vel_y * t_collision) - (other_pos.y + other.velocity.y * t_collision)
        overlap = math.hypot(n_x, n_y) - radius
        if overlap < 0.0:
            normal_x, normal_y = _safe_normalize_xy_f(n_x, n_y)
            k = constants.k_longrange * math.exp(-t_nocollision * t_nocollision / horizon)
            k_adjusted = 1.0 - math.pow(1.0 - k, 1.0 / (iteration + 1))
            magnitude = -0.5 * overlap * k_adjusted
            total_x += normal_x * magnitude
            total_y += normal_y * magnitude
            count += 1

    predicted = Vector2(agent.predicted_position)
    if count > 0:
        scale = constants.avg_coeff / count
        predicted.update(predicted.x + total_x * scale, predicted.y + total_y * scale)

    return Agent(
        position=Vector2(agent.position),
        velocity=Vector2(agent.velocity),
        predicted_position=predicted,
        goal=Vector2(agent.goal),
    )
