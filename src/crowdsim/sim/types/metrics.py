from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    agents: int
    mean_speed: float
    max_speed: float
    min_separation: float
    overlapping_pairs: int
    mean_goal_distance: float
    tick_duration_ms: float = 0.0
