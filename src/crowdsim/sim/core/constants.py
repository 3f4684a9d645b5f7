from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SolverConstants:
    """Physical constants of the solver; every length and speed is a multiple of ``agent_scale``."""

    agent_scale: float
    agent_speed: float
    near_radius: float
    far_radius: float
    cohesion_radius: float
    agent_radius: float
    max_speed: float
    blend_factor: float = 0.0385
    k_shortrange: float = 1.0
    k_longrange: float = 0.15
    avg_coeff: float = 1.2
    eps: float = 0.0001
    horizon: float = 20.0
    xsph_support: float = 217.0
    xsph_h: float = 7.0

    @classmethod
    def from_scale(cls, agent_scale: float) -> "SolverConstants":
        agent_speed = 0.1 * agent_scale
        return cls(
            agent_scale=agent_scale,
            agent_speed=agent_speed,
            near_radius=0.2 * agent_scale,
            far_radius=0.5 * agent_scale,
            cohesion_radius=1.0 * agent_scale,
            agent_radius=0.03 * agent_scale,
            max_speed=1.2 * agent_speed,
        )

    @property
    def contact_distance(self) -> float:
        return 2.0 * self.agent_radius
