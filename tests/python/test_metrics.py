from __future__ import annotations

import math

import pytest
from pygame.math import Vector2

from crowdsim.sim.core.agent import Agent
from crowdsim.sim.core.constants import SolverConstants
from crowdsim.sim.systems.metrics import create_metrics

CONSTANTS = SolverConstants.from_scale(1.0)


def _agent(x, y, vx=0.0, vy=0.0, goal=(0.0, 0.0)) -> Agent:
    return Agent(position=Vector2(x, y), velocity=Vector2(vx, vy), goal=Vector2(goal))


def test_metrics_summarise_speed_separation_and_goal_distance():
    agents = [
        _agent(0.0, 0.0, vx=0.1, goal=(1.0, 0.0)),
        _agent(0.05, 0.0, vy=0.05, goal=(0.05, 1.0)),
        _agent(0.15, 0.0, goal=(0.15, 0.0)),
        _agent(0.9, 0.9),
    ]
    metrics = create_metrics(7, agents, CONSTANTS, 1.5)
    assert metrics.tick == 7
    assert metrics.agents == 4
    assert metrics.mean_speed == pytest.approx(0.15 / 4)
    assert metrics.max_speed == pytest.approx(0.1)
    assert metrics.min_separation == pytest.approx(0.05)
    assert metrics.overlapping_pairs == 1
    assert metrics.mean_goal_distance == pytest.approx((1.0 + 1.0 + 0.0 + math.hypot(0.9, 0.9)) / 4)
    assert metrics.tick_duration_ms == 1.5


def test_metrics_without_close_pairs_report_infinite_separation():
    metrics = create_metrics(0, [_agent(-0.5, 0.0), _agent(0.5, 0.0)], CONSTANTS, 0.0)
    assert math.isinf(metrics.min_separation)
    assert metrics.overlapping_pairs == 0


def test_metrics_for_empty_population():
    metrics = create_metrics(3, [], CONSTANTS, 0.25)
    assert metrics.agents == 0
    assert metrics.mean_speed == 0.0
    assert math.isinf(metrics.min_separation)
    assert metrics.tick_duration_ms == 0.25
