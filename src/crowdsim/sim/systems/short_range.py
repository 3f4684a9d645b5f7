from __future__ import annotations

import math
from typing import Sequence

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.constants import SolverConstants
from ..utils.math2d import _safe_normalize_xy_f


def resolve_short_range(index: int, agents: Sequence[Agent], constants: SolverConstants) -> Agent:
    """
    Push agent ``index`` out of every neighbour it overlaps at the predicted positions.

    Corrections from all contacts are summed and averaged (scaled by ``avg_coeff``),
    then applied to both the position and the predicted position.
    """
    agent = agents[index]
    pred_x = agent.predicted_position.x
    pred_y = agent.predicted_position.y
    near_radius = constants.near_radius
    contact = constants.contact_distance
    push = -0.5 * constants.k_shortrange
    total_x = 0.0
    total_y = 0.0
    count = 0

    for j, other in enumerate(agents):
        if j == index:
            continue
        offset_x = pred_x - other.predicted_position.x
        offset_y = pred_y - other.predicted_position.y
        dist = math.hypot(offset_x, offset_y)
        if dist > near_radius:
            continue
        penetration = dist - contact
        if penetration < 0.0:
            normal_x, normal_y = _safe_normalize_xy_f(offset_x, offset_y)
            magnitude = push * penetration
            total_x += normal_x * magnitude
            total_y += normal_y * magnitude
            count += 1

    if count == 0:
        return agent.copy()

    scale = constants.avg_coeff / count
    dx = total_x * scale
    dy = total_y * scale
    return Agent(
        position=Vector2(agent.position.x + dx, agent.position.y + dy),
        velocity=Vector2(agent.velocity),
        predicted_position=Vector2(pred_x + dx, pred_y + dy),
        goal=Vector2(agent.goal),
    )
