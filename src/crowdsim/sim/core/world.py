from __future__ import annotations

import logging
import threading
from dataclasses import replace
from functools import partial
from time import perf_counter
from typing import Callable, Optional, Sequence

from ...config import SimParams, SimulationConfig, agent_scale_for
from ...rng import DeterministicRng
from ..systems import metrics as metrics_system
from ..systems.blend import blend_velocity
from ..systems.finalize import finalize_agent
from ..systems.long_range import resolve_long_range
from ..systems.scenes import SceneKind, generate_scene
from ..systems.short_range import resolve_short_range
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata
from ..utils.math2d import _is_finite
from .agent import Agent, flatten_records, pack_records
from .buffer import AgentBuffer
from .constants import SolverConstants
from .executor import StageExecutor, make_executor

logger = logging.getLogger(__name__)


class SolverError(RuntimeError):
    pass


class StepCancelled(SolverError):
    pass


class NumericalInstabilityError(SolverError):
    pass


class World:
    def __init__(self, config: SimulationConfig, executor: Optional[StageExecutor] = None):
        config.validate()
        self._config = config
        self._scene_kind = SceneKind.parse(config.scene.kind)
        self._num_agents = max(0, config.scene.num_agents)
        self._rng = DeterministicRng(config.scene.seed)
        self._requested_params = config.params
        self._params = self._resolve_params(config.params)
        self._constants = SolverConstants.from_scale(self._params.agent_scale)
        self._executor = executor if executor is not None else make_executor(config.workers)
        self._owns_executor = executor is None
        self._metrics: TickMetrics | None = None
        self._buffer = AgentBuffer(self._bootstrap_population())
        logger.info(
            "World created: %d agents, scene=%s, agent_scale=%.4f, workers=%d",
            self._num_agents,
            self._scene_kind.value,
            self._params.agent_scale,
            self._executor.workers,
        )

    @property
    def agents(self) -> tuple[Agent, ...]:
        return tuple(agent.copy() for agent in self._buffer.committed)

    @property
    def num_agents(self) -> int:
        return self._num_agents

    @property
    def params(self) -> SimParams:
        return replace(self._params)

    @params.setter
    def params(self, params: SimParams) -> None:
        resolved = self._resolve_params(params)
        self._requested_params = params
        self._params = resolved
        self._constants = SolverConstants.from_scale(resolved.agent_scale)

    @property
    def constants(self) -> SolverConstants:
        return self._constants

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def close(self) -> None:
        if self._owns_executor:
            self._executor.close()

    def __enter__(self) -> "World":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def reset(
        self,
        num_agents: Optional[int] = None,
        scene: SceneKind | str | None = None,
        seed: Optional[int] = None,
    ) -> None:
        """Reseed the population, optionally with a new agent count, scene or seed."""
        if num_agents is not None:
            self._num_agents = max(0, num_agents)
        if scene is not None:
            self._scene_kind = SceneKind.parse(scene)
        self._rng.reset(seed)
        # A derived scale follows the new population; an explicit one is kept.
        self.params = self._requested_params
        self._buffer.reset(self._bootstrap_population())
        self._metrics = None
        logger.info(
            "World reset: %d agents, scene=%s, agent_scale=%.4f",
            self._num_agents,
            self._scene_kind.value,
            self._params.agent_scale,
        )

    def step(self, tick: int, cancel: Optional[threading.Event] = None) -> TickMetrics:
        start = perf_counter()
        params = self._params
        constants = self._constants
        buffer = self._buffer

        buffer.begin_step()
        try:
            self._run_pass(lambda agents, i: blend_velocity(agents[i], params, constants), cancel)
            for _ in range(params.stability_iterations):
                self._run_pass(partial(_short_range_pass, constants=constants), cancel)
            if params.avoidance_enabled:
                for itr in range(params.constraint_iterations):
                    self._run_pass(
                        partial(_long_range_pass, params=params, constants=constants, iteration=itr),
                        cancel,
                    )
            self._run_pass(partial(_finalize_pass, params=params, constants=constants), cancel)
            if self._config.check_finite:
                self._ensure_finite(tick, buffer.read)
        except BaseException:
            buffer.discard()
            raise
        committed = buffer.commit()

        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(tick, committed, constants, elapsed_ms)
        self._metrics = metrics
        logger.debug("tick %d solved in %.3f ms", tick, elapsed_ms)
        return metrics

    def snapshot(self, tick: int) -> Snapshot:
        committed = self._buffer.committed
        metrics = self._metrics
        if metrics is None:
            metrics = metrics_system.create_metrics(tick, committed, self._constants, 0.0)
        dt = self._params.delta_t
        metadata = SnapshotMetadata(
            num_agents=len(committed),
            sim_dt=dt,
            tick_rate=0.0 if dt <= 0 else 1.0 / dt,
            agent_scale=self._params.agent_scale,
            scene=self._scene_kind.value,
            seed=self._rng.seed,
            config_version=self._config.config_version,
        )
        return Snapshot(tick=tick, metrics=metrics, records=flatten_records(committed), metadata=metadata)

    def records_bytes(self) -> bytes:
        return pack_records(self._buffer.committed)

    def load_agents(self, agents: Sequence[Agent]) -> None:
        """Replace the committed population, e.g. with a hand-built scenario."""
        self._num_agents = len(agents)
        self.params = self._requested_params
        self._buffer.reset(agents)
        self._metrics = None

    def _resolve_params(self, params: SimParams) -> SimParams:
        params.validate()
        if params.agent_scale is None:
            return replace(params, agent_scale=agent_scale_for(self._num_agents))
        return replace(params)

    def _bootstrap_population(self) -> list[Agent]:
        return generate_scene(self._scene_kind, self._num_agents, self._params.agent_scale, self._rng)

    def _run_pass(
        self,
        reducer: Callable[[Sequence[Agent], int], Agent],
        cancel: Optional[threading.Event],
    ) -> None:
        if cancel is not None and cancel.is_set():
            raise StepCancelled("step cancelled before commit")
        snapshot = self._buffer.read
        results = self._executor.map(partial(reducer, snapshot), len(snapshot))
        self._buffer.publish(results)

    @staticmethod
    def _ensure_finite(tick: int, agents: Sequence[Agent]) -> None:
        for index, agent in enumerate(agents):
            vectors = (agent.position, agent.velocity, agent.predicted_position, agent.goal)
            if not all(_is_finite(vector) for vector in vectors):
                logger.error("tick %d: agent %d has non-finite state %s", tick, index, agent.to_record())
                raise NumericalInstabilityError(f"agent {index} produced a non-finite state at tick {tick}")


def _short_range_pass(agents: Sequence[Agent], index: int, constants: SolverConstants) -> Agent:
    return resolve_short_range(index, agents, constants)


def _long_range_pass(
    agents: Sequence[Agent],
    index: int,
    params: SimParams,
    constants: SolverConstants,
    iteration: int,
) -> Agent:
    return resolve_long_range(index, agents, params, constants, iteration)


def _finalize_pass(agents: Sequence[Agent], index: int, params: SimParams, constants: SolverConstants) -> Agent:
    return finalize_agent(index, agents, params, constants)
