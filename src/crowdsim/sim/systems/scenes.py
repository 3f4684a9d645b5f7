from __future__ import annotations

import logging
import math
from enum import Enum
from typing import List

from pygame.math import Vector2

from ...rng import DeterministicRng
from ..core.agent import Agent

logger = logging.getLogger(__name__)

RANDOM_GOALS = (Vector2(1.0, 1.0), Vector2(-1.0, -1.0))
STRIP_MARGIN = 0.2
CIRCLE_RADIUS = 0.8


class SceneKind(str, Enum):
    RANDOM = "RANDOM"
    SQUARE = "SQUARE"
    CIRCLE = "CIRCLE"

    @classmethod
    def parse(cls, value: "SceneKind | str") -> "SceneKind":
        if isinstance(value, SceneKind):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(f"Unknown scene kind: {value}") from None


def grid_counts(num_agents: int) -> tuple[int, int]:
    """Columns and rows of the per-cohort grid used by the SQUARE scene."""
    if num_agents < 2:
        return 1, 1
    power = math.log2(num_agents / 2)
    x_count = max(1, int(2 ** math.ceil(power / 2)))
    y_count = max(1, int(2 ** math.floor(power / 2)))
    return x_count, y_count


def generate_scene(
    kind: SceneKind | str,
    num_agents: int,
    agent_scale: float,
    rng: DeterministicRng,
) -> List[Agent]:
    kind = SceneKind.parse(kind)
    if num_agents <= 0:
        return []
    if kind is SceneKind.RANDOM:
        return [_random_agent(i, rng) for i in range(num_agents)]
    if kind is SceneKind.SQUARE:
        return _square_scene(num_agents, agent_scale, rng)
    return _circle_scene(num_agents, agent_scale, rng)


def _random_agent(index: int, rng: DeterministicRng) -> Agent:
    position = Vector2(rng.next_signed(), rng.next_signed())
    velocity = Vector2(rng.next_signed() * 0.1, rng.next_signed() * 0.1)
    return Agent(
        position=position,
        velocity=velocity,
        predicted_position=Vector2(position),
        goal=Vector2(RANDOM_GOALS[index % 2]),
    )


def _square_scene(num_agents: int, agent_scale: float, rng: DeterministicRng) -> List[Agent]:
    x_count, y_count = grid_counts(num_agents)
    cohort_size = (num_agents + 1) // 2
    if num_agents % 2 or x_count * y_count < cohort_size:
        logger.warning(
            "SQUARE scene with %d agents does not fill a %dx%d grid per cohort; layout will overflow",
            num_agents,
            x_count,
            y_count,
        )

    # [x_min, y_min], [x_max, y_max]
    top = ((STRIP_MARGIN - 1.0, STRIP_MARGIN), (1.0 - STRIP_MARGIN, 1.0 - STRIP_MARGIN))
    bottom = ((STRIP_MARGIN - 1.0, STRIP_MARGIN - 1.0), (1.0 - STRIP_MARGIN, -STRIP_MARGIN))

    agents: List[Agent] = []
    for i in range(num_agents):
        upper = i % 2 == 0
        (x_min, y_min), (x_max, y_max) = top if upper else bottom
        heading = -0.1 if upper else 0.1
        cohort_index = i // 2
        x_offset = (x_max - x_min) / x_count
        y_offset = (y_max - y_min) / y_count
        x_idx = cohort_index % x_count
        y_idx = cohort_index // x_count
        jitter = rng.next_signed()
        position = Vector2(
            x_min + x_idx * x_offset + x_offset * jitter / 5.0,
            y_min + y_idx * y_offset + y_offset * jitter / 5.0,
        )
        agents.append(
            Agent(
                position=position,
                velocity=Vector2(0.0, heading * agent_scale),
                predicted_position=Vector2(position),
                goal=Vector2(0.0, -1.0 if upper else 1.0),
            )
        )
    return agents


def _circle_scene(num_agents: int, agent_scale: float, rng: DeterministicRng) -> List[Agent]:
    agents: List[Agent] = []
    spacing = 2.0 * math.pi / num_agents
    speed = 0.1 * agent_scale
    for i in range(num_agents):
        angle = i * spacing + rng.next_signed() * spacing * 0.05
        position = Vector2(CIRCLE_RADIUS * math.cos(angle), CIRCLE_RADIUS * math.sin(angle))
        goal = Vector2(-position.x, -position.y)
        heading = Vector2(-math.cos(angle), -math.sin(angle))
        agents.append(
            Agent(
                position=position,
                velocity=heading * speed,
                predicted_position=Vector2(position),
                goal=goal,
            )
        )
    return agents
