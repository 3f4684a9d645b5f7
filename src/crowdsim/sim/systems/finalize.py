from __future__ import annotations

import math
from typing import TYPE_CHECKING, Sequence

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.constants import SolverConstants
from ..utils.math2d import _clamp_length_xy_f, _distance, _exact_equals

if TYPE_CHECKING:
    from ...config import SimParams


def poly6_kernel(r: float, support: float, eps: float) -> float:
    if r < eps or r > support:
        return 0.0
    h_sq_minus_r_sq = support * support - r * r
    return 315.0 / (64.0 * math.pi * support**9) * h_sq_minus_r_sq * h_sq_minus_r_sq * h_sq_minus_r_sq


def finalize_agent(
    index: int,
    agents: Sequence[Agent],
    params: SimParams,
    constants: SolverConstants,
) -> Agent:
    """
    Rebuild the velocity from the solved predicted position, blend it with agents
    heading to the same goal (XSPH viscosity), clamp the speed and integrate.
    """
    agent = agents[index]
    dt = params.delta_t
    pred = agent.predicted_position
    goal = agent.goal
    vel_x = (pred.x - agent.position.x) / dt
    vel_y = (pred.y - agent.position.y) / dt

    cohesion_radius = constants.cohesion_radius
    support = constants.xsph_support
    eps = constants.eps
    accum_x = 0.0
    accum_y = 0.0
    for j, other in enumerate(agents):
        if j == index:
            continue
        if not _exact_equals(other.goal, goal):
            continue
        dist = _distance(pred, other.predicted_position)
        if dist > cohesion_radius:
            continue
        weight = poly6_kernel(dist * dist, support, eps)
        accum_x += (vel_x - other.velocity.x) * weight
        accum_y += (vel_y - other.velocity.y) * weight

    vel_x += accum_x * constants.xsph_h
    vel_y += accum_y * constants.xsph_h
    vel_x, vel_y = _clamp_length_xy_f(vel_x, vel_y, constants.max_speed)

    return Agent(
        position=Vector2(agent.position.x + vel_x * dt, agent.position.y + vel_y * dt),
        velocity=Vector2(vel_x, vel_y),
        predicted_position=Vector2(pred),
        goal=Vector2(goal),
    )
