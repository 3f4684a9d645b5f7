from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

SCENE_KINDS = ("RANDOM", "SQUARE", "CIRCLE")
AGENT_SCALE_BASELINE = 512


class ConfigError(ValueError):
    pass


def _require_int(name: str, value: object) -> None:
    # bool is an int subclass.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _require_number(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name} must be a number, got {value!r}")


@dataclass
class SimParams:
    delta_t: float = 0.02
    stability_iterations: int = 1
    constraint_iterations: int = 6
    # None derives the scale from the scene population (see agent_scale_for).
    agent_scale: Optional[float] = None
    avoidance_enabled: bool = True
    # Only solve long-range contacts for pairs that already touch.
    long_range_requires_contact: bool = False

    def validate(self) -> None:
        _require_int("stability_iterations", self.stability_iterations)
        _require_int("constraint_iterations", self.constraint_iterations)
        _require_number("delta_t", self.delta_t)
        if self.agent_scale is not None:
            _require_number("agent_scale", self.agent_scale)
        if not math.isfinite(self.delta_t) or self.delta_t <= 0.0:
            raise ConfigError(f"delta_t must be > 0, got {self.delta_t}")
        if self.stability_iterations < 0:
            raise ConfigError(f"stability_iterations must be >= 0, got {self.stability_iterations}")
        if self.constraint_iterations < 0:
            raise ConfigError(f"constraint_iterations must be >= 0, got {self.constraint_iterations}")
        if self.agent_scale is not None and (not math.isfinite(self.agent_scale) or self.agent_scale < 0.0):
            raise ConfigError(f"agent_scale must be >= 0, got {self.agent_scale}")


@dataclass
class SceneConfig:
    kind: str = "SQUARE"
    num_agents: int = 1024
    seed: int = 42

    def validate(self) -> None:
        _require_int("num_agents", self.num_agents)
        _require_int("seed", self.seed)
        if not isinstance(self.kind, str) or self.kind.upper() not in SCENE_KINDS:
            raise ConfigError(f"Unknown scene kind: {self.kind}")


@dataclass
class SimulationConfig:
    params: SimParams = field(default_factory=SimParams)
    scene: SceneConfig = field(default_factory=SceneConfig)
    workers: int = 1
    check_finite: bool = True
    config_version: str = "v1"

    def validate(self) -> None:
        self.params.validate()
        self.scene.validate()
        _require_int("workers", self.workers)
        if self.workers < 0:
            raise ConfigError(f"workers must be >= 0, got {self.workers}")

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text())
        return load_config(data or {})


def agent_scale_for(num_agents: int, baseline: int = AGENT_SCALE_BASELINE) -> float:
    """Agent size/speed scale: halves for every 4x growth of the crowd past ``baseline``."""
    if num_agents <= 0:
        return 1.0
    exponent = max(0, math.floor(math.log(num_agents / baseline) / math.log(4)))
    return 0.5 ** exponent


def load_config(raw: dict) -> SimulationConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"config must be a mapping, got {type(raw).__name__}")
    try:
        params = SimParams(**(raw.get("params") or {}))
        scene = SceneConfig(**(raw.get("scene") or {}))
        sim_values = {k: v for k, v in raw.items() if k not in {"params", "scene"}}
        config = SimulationConfig(params=params, scene=scene, **sim_values)
    except TypeError as exc:
        raise ConfigError(f"invalid config: {exc}") from exc
    config.validate()
    return config
