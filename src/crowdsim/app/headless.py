from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from dataclasses import replace
from pathlib import Path
from typing import Optional

from ..config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)

_BASIC_HEADER = [
    "tick",
    "agents",
    "mean_speed",
    "min_separation",
    "overlapping_pairs",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "agents",
    "mean_speed",
    "max_speed",
    "min_separation",
    "overlapping_pairs",
    "mean_goal_distance",
    "tick_ms",
    "tick_ms_per_agent",
    "speed_cap_ratio",
    "overlap_ratio",
    "contact_margin",
]


def _format_separation(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.6f}"


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.agents,
        f"{metrics.mean_speed:.6f}",
        _format_separation(metrics.min_separation),
        metrics.overlapping_pairs,
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: TickMetrics, tick_ms: float) -> list[object]:
    constants = world.constants
    agents = metrics.agents
    if agents <= 0:
        tick_ms_per_agent = 0.0
        overlap_ratio = 0.0
    else:
        tick_ms_per_agent = tick_ms / agents
        overlap_ratio = metrics.overlapping_pairs / agents
    speed_cap_ratio = 0.0 if constants.max_speed <= 0.0 else metrics.max_speed / constants.max_speed
    if math.isinf(metrics.min_separation):
        contact_margin = "inf"
    else:
        contact_margin = f"{metrics.min_separation - constants.contact_distance:.6f}"
    return [
        metrics.tick,
        agents,
        f"{metrics.mean_speed:.6f}",
        f"{metrics.max_speed:.6f}",
        _format_separation(metrics.min_separation),
        metrics.overlapping_pairs,
        f"{metrics.mean_goal_distance:.6f}",
        f"{tick_ms:.3f}",
        f"{tick_ms_per_agent:.4f}",
        f"{speed_cap_ratio:.4f}",
        f"{overlap_ratio:.4f}",
        contact_margin,
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    total = sum(values)
    count = len(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(total / count),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p95": _percentile(sorted_values, 0.95),
        "p99": _percentile(sorted_values, 0.99),
    }


def build_config(
    config_path: Optional[Path] = None,
    seed: Optional[int] = None,
    scene: Optional[str] = None,
    num_agents: Optional[int] = None,
    workers: Optional[int] = None,
) -> SimulationConfig:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    scene_config = config.scene
    if seed is not None:
        scene_config = replace(scene_config, seed=seed)
    if scene is not None:
        scene_config = replace(scene_config, kind=scene.upper())
    if num_agents is not None:
        scene_config = replace(scene_config, num_agents=num_agents)
    config = replace(config, scene=scene_config)
    if workers is not None:
        config = replace(config, workers=workers)
    config.validate()
    return config


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 5000,
    scene: Optional[str] = None,
    num_agents: Optional[int] = None,
    config_path: Optional[Path] = None,
    workers: Optional[int] = None,
) -> None:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = build_config(config_path, seed=seed, scene=scene, num_agents=num_agents, workers=workers)

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    mean_speed_series: list[float] = []
    overlap_series: list[float] = []
    separation_series: list[float] = []
    max_tick_ms = (-1.0, -1)
    max_overlaps = (-1, -1)
    min_separation = (math.inf, -1)

    with World(config) as world:
        try:
            for tick in range(steps):
                metrics = world.step(tick)
                tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

                if summary_path:
                    tick_ms_series.append(tick_ms)
                    mean_speed_series.append(metrics.mean_speed)
                    overlap_series.append(float(metrics.overlapping_pairs))
                    if not math.isinf(metrics.min_separation):
                        separation_series.append(metrics.min_separation)
                    if tick_ms > max_tick_ms[0]:
                        max_tick_ms = (tick_ms, tick)
                    if metrics.overlapping_pairs > max_overlaps[0]:
                        max_overlaps = (metrics.overlapping_pairs, tick)
                    if metrics.min_separation < min_separation[0]:
                        min_separation = (metrics.min_separation, tick)

                if writer:
                    if log_mode == "detailed":
                        writer.writerow(_format_detailed_row(world, metrics, tick_ms))
                    else:
                        writer.writerow(_format_basic_row(metrics, tick_ms))
            final_scale = world.params.agent_scale
        finally:
            if csv_file:
                csv_file.close()

    logger.info("headless run finished: %d steps, %d agents", steps, config.scene.num_agents)

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": config.scene.seed,
            "scene": config.scene.kind,
            "agents": config.scene.num_agents,
            "agent_scale": final_scale,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "tick_ms": _summary_stats(tick_ms_series),
            "mean_speed": _summary_stats(mean_speed_series),
            "overlapping_pairs": _summary_stats(overlap_series),
            "min_separation": _summary_stats(separation_series),
            "peaks": {
                "tick_ms": {"value": float(max_tick_ms[0]), "tick": max_tick_ms[1]},
                "overlapping_pairs": {"value": max_overlaps[0], "tick": max_overlaps[1]},
                "min_separation": {
                    "value": None if math.isinf(min_separation[0]) else min_separation[0],
                    "tick": min_separation[1],
                },
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "mean_speed": _summary_stats(mean_speed_series[tail_slice]),
                "overlapping_pairs": _summary_stats(overlap_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless crowd simulation")
    parser.add_argument("--steps", type=int, default=600)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--scene", choices=["random", "square", "circle"], default=None)
    parser.add_argument("--agents", type=int, default=None, help="Number of agents (overrides the config).")
    parser.add_argument("--config", type=Path, default=None, help="YAML simulation config.")
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads per solver pass (1 = serial, 0 = one per CPU).",
    )
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=5000,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level.")
    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        scene=args.scene,
        num_agents=args.agents,
        config_path=args.config,
        workers=args.workers,
    )


if __name__ == "__main__":
    main()
