from __future__ import annotations

import math
from typing import Sequence

from ...spatial_grid import SpatialGrid
from ..core.agent import Agent
from ..core.constants import SolverConstants
from ..types.metrics import TickMetrics

_MIN_PROBE_RADIUS = 1e-3


def create_metrics(
    tick: int,
    agents: Sequence[Agent],
    constants: SolverConstants,
    duration_ms: float,
) -> TickMetrics:
    """
    Summarise a committed agent set.

    ``min_separation`` only looks at pairs within ``near_radius`` and is ``inf``
    when no such pair exists.
    """
    count = len(agents)
    if count == 0:
        return TickMetrics(
            tick=tick,
            agents=0,
            mean_speed=0.0,
            max_speed=0.0,
            min_separation=math.inf,
            overlapping_pairs=0,
            mean_goal_distance=0.0,
            tick_duration_ms=duration_ms,
        )

    speed_sum = 0.0
    max_speed = 0.0
    goal_sum = 0.0
    probe_radius = max(constants.near_radius, _MIN_PROBE_RADIUS)
    grid = SpatialGrid(probe_radius)
    for agent in agents:
        speed = agent.velocity.length()
        speed_sum += speed
        if speed > max_speed:
            max_speed = speed
        goal_sum += agent.position.distance_to(agent.goal)
        grid.insert(agent.position)

    contact = constants.contact_distance
    min_separation = math.inf
    overlapping = 0
    for _, _, dist in grid.iter_pairs(probe_radius):
        if dist < min_separation:
            min_separation = dist
        if dist < contact:
            overlapping += 1

    return TickMetrics(
        tick=tick,
        agents=count,
        mean_speed=speed_sum / count,
        max_speed=max_speed,
        min_separation=min_separation,
        overlapping_pairs=overlapping,
        mean_goal_distance=goal_sum / count,
        tick_duration_ms=duration_ms,
    )
