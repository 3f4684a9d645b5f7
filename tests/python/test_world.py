from __future__ import annotations

import math
import threading
from dataclasses import replace

import pytest
from pygame.math import Vector2

from crowdsim.config import ConfigError, SceneConfig, SimParams, SimulationConfig
from crowdsim.sim.core.agent import Agent, unpack_records
from crowdsim.sim.core.executor import SerialExecutor
from crowdsim.sim.core.world import NumericalInstabilityError, StepCancelled, World


def _config(kind="RANDOM", num_agents=48, seed=5, workers=1, **params) -> SimulationConfig:
    return SimulationConfig(
        params=SimParams(**params),
        scene=SceneConfig(kind=kind, num_agents=num_agents, seed=seed),
        workers=workers,
    )


def _records(world: World) -> list[tuple[float, ...]]:
    return [agent.to_record() for agent in world.agents]


def _head_on_pair() -> list[Agent]:
    return [
        Agent(
            position=Vector2(-0.02, 0.0),
            velocity=Vector2(0.1, 0.0),
            predicted_position=Vector2(-0.02, 0.0),
            goal=Vector2(1.0, 0.0),
        ),
        Agent(
            position=Vector2(0.02, 0.0),
            velocity=Vector2(-0.1, 0.0),
            predicted_position=Vector2(0.02, 0.0),
            goal=Vector2(-1.0, 0.0),
        ),
    ]


def test_world_bootstraps_scene_and_scale():
    with World(_config(kind="SQUARE", num_agents=16)) as world:
        assert world.num_agents == 16
        assert len(world.agents) == 16
        assert world.params.agent_scale == 1.0
        assert world.constants.contact_distance == pytest.approx(0.06)
        assert world.metrics is None


def test_head_on_pair_separates_and_stays_apart():
    with World(_config(num_agents=2, agent_scale=1.0)) as world:
        world.load_agents(_head_on_pair())
        contact = world.constants.contact_distance
        for tick in range(100):
            metrics = world.step(tick)
            left, right = world.agents
            assert right.position.x - left.position.x >= contact - 1e-9
            assert left.position.y == 0.0 and right.position.y == 0.0
            assert left.velocity.length() <= world.constants.max_speed + 1e-12
            assert metrics.min_separation >= contact - 1e-9
        assert metrics.tick == 99


def test_same_seed_is_deterministic():
    results = []
    for _ in range(2):
        with World(_config(seed=17)) as world:
            for tick in range(10):
                world.step(tick)
            results.append(world.records_bytes())
    assert results[0] == results[1]


def test_threaded_passes_match_serial_bit_for_bit():
    with World(_config(kind="SQUARE", num_agents=64)) as serial, World(
        _config(kind="SQUARE", num_agents=64, workers=4)
    ) as threaded:
        assert threaded._executor.workers == 4
        for tick in range(8):
            serial.step(tick)
            threaded.step(tick)
        assert _records(serial) == _records(threaded)


def test_agents_property_returns_copies():
    with World(_config(num_agents=4)) as world:
        agents = world.agents
        agents[0].position.x = 99.0
        assert world.agents[0].position.x != 99.0


def test_snapshot_layout_and_metadata():
    with World(_config(kind="SQUARE", num_agents=8, seed=3)) as world:
        metrics = world.step(0)
        snapshot = world.snapshot(0)

        assert snapshot.tick == 0
        assert snapshot.metrics is metrics
        assert snapshot.num_agents == 8
        assert len(snapshot.records) == 8 * 8
        assert snapshot.to_bytes() == world.records_bytes()
        assert len(snapshot.to_bytes()) == 8 * 32

        meta = snapshot.metadata
        assert meta.num_agents == 8
        assert meta.sim_dt == 0.02
        assert meta.tick_rate == pytest.approx(50.0)
        assert meta.agent_scale == 1.0
        assert meta.scene == "SQUARE"
        assert meta.seed == 3
        assert meta.config_version == "v1"

        payload = snapshot.agents_payload()
        first = world.agents[0]
        assert payload[0]["id"] == 0
        assert payload[0]["x"] == first.position.x
        assert payload[0]["gy"] == first.goal.y
        decoded = unpack_records(snapshot.to_bytes())
        assert decoded[7].goal.y == pytest.approx(first.goal.y * -1.0)


def test_cancel_before_step_keeps_state():
    with World(_config()) as world:
        before = world.records_bytes()
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(StepCancelled):
            world.step(0, cancel=cancel)
        assert world.records_bytes() == before
        assert world.metrics is None

        cancel.clear()
        world.step(0, cancel=cancel)
        assert world.records_bytes() != before


class _CancellingExecutor(SerialExecutor):
    def __init__(self, cancel: threading.Event, after: int) -> None:
        self.cancel = cancel
        self.after = after
        self.calls = 0

    def map(self, fn, count):
        result = super().map(fn, count)
        self.calls += 1
        if self.calls == self.after:
            self.cancel.set()
        return result


def test_cancel_mid_step_discards_partial_passes():
    cancel = threading.Event()
    executor = _CancellingExecutor(cancel, after=2)
    world = World(_config(kind="SQUARE", num_agents=16), executor=executor)
    before = world.records_bytes()
    with pytest.raises(StepCancelled):
        world.step(0, cancel=cancel)
    assert executor.calls == 2
    assert world.records_bytes() == before

    cancel.clear()
    executor.after = -1
    world.step(0, cancel=cancel)
    assert world.records_bytes() != before


def test_reset_rederives_scale_for_new_population():
    with World(_config(kind="SQUARE", num_agents=16)) as world:
        world.reset(num_agents=2048)
        assert world.num_agents == 2048
        assert len(world.agents) == 2048
        assert world.params.agent_scale == 0.5
        assert world.constants.agent_radius == pytest.approx(0.015)

        world.reset(num_agents=16, scene="random", seed=8)
        assert world.params.agent_scale == 1.0
        assert world.snapshot(0).metadata.scene == "RANDOM"
        assert world.snapshot(0).metadata.seed == 8


def test_reset_keeps_explicit_scale_and_replays_seed():
    with World(_config(num_agents=16, agent_scale=1.0)) as world:
        initial = world.records_bytes()
        world.step(0)
        world.reset()
        assert world.records_bytes() == initial
        world.reset(num_agents=2048)
        assert world.params.agent_scale == 1.0


def test_reset_to_empty_population():
    with World(_config(num_agents=4)) as world:
        world.reset(num_agents=0)
        metrics = world.step(0)
        assert world.agents == ()
        assert metrics.agents == 0
        assert math.isinf(metrics.min_separation)
        assert world.records_bytes() == b""


def test_params_setter_validates_and_rebuilds_constants():
    with World(_config(num_agents=4)) as world:
        world.params = replace(world.params, agent_scale=0.25, constraint_iterations=2)
        assert world.params.constraint_iterations == 2
        assert world.constants.agent_speed == pytest.approx(0.025)

        with pytest.raises(ConfigError):
            world.params = replace(world.params, delta_t=0.0)
        with pytest.raises(ConfigError):
            world.params = replace(world.params, stability_iterations=1.5)
        assert world.params.delta_t == 0.02

        copy = world.params
        copy.delta_t = 1.0
        assert world.params.delta_t == 0.02


def test_disabling_avoidance_skips_long_range_pass():
    without_avoidance = _config(kind="SQUARE", num_agents=32, avoidance_enabled=False)
    zero_iterations = _config(kind="SQUARE", num_agents=32, constraint_iterations=0)
    with World(without_avoidance) as first, World(zero_iterations) as second:
        for tick in range(5):
            first.step(tick)
            second.step(tick)
        assert _records(first) == _records(second)


def test_non_finite_state_raises_and_keeps_committed_agents():
    with World(_config(num_agents=2, agent_scale=1.0)) as world:
        agents = _head_on_pair()
        agents.append(
            Agent(
                position=Vector2(float("nan"), 0.5),
                predicted_position=Vector2(float("nan"), 0.5),
                goal=Vector2(1.0, 1.0),
            )
        )
        world.load_agents(agents)
        with pytest.raises(NumericalInstabilityError):
            world.step(0)
        committed = world.agents
        assert len(committed) == 3
        assert committed[0].to_record() == agents[0].to_record()
        assert math.isnan(committed[2].position.x)
        assert not world._buffer.in_step


@pytest.mark.slow
def test_full_square_crowd_keeps_overlaps_low():
    with World(_config(kind="SQUARE", num_agents=1024, workers=0)) as world:
        for tick in range(50):
            metrics = world.step(tick)
        assert metrics.agents == 1024
        assert metrics.max_speed <= world.constants.max_speed + 1e-12
