from __future__ import annotations

from typing import TYPE_CHECKING

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.constants import SolverConstants
from ..utils.math2d import _safe_normalize_xy_f

if TYPE_CHECKING:
    from ...config import SimParams


def blend_velocity(agent: Agent, params: SimParams, constants: SolverConstants) -> Agent:
    """Steer the velocity a little toward the goal heading and predict the end-of-step position."""
    position = agent.position
    dir_x, dir_y = _safe_normalize_xy_f(agent.goal.x - position.x, agent.goal.y - position.y)
    blend = constants.blend_factor
    speed = constants.agent_speed
    vel_x = blend * dir_x * speed + (1.0 - blend) * agent.velocity.x
    vel_y = blend * dir_y * speed + (1.0 - blend) * agent.velocity.y
    dt = params.delta_t
    return Agent(
        position=Vector2(position),
        velocity=Vector2(vel_x, vel_y),
        predicted_position=Vector2(position.x + vel_x * dt, position.y + vel_y * dt),
        goal=Vector2(agent.goal),
    )
