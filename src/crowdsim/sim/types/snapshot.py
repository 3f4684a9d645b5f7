from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from ..core.agent import RECORD_STRIDE, pack_flat_records
from .metrics import TickMetrics


@dataclass(frozen=True, slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    records: tuple[float, ...]
    metadata: "SnapshotMetadata"

    @property
    def num_agents(self) -> int:
        return len(self.records) // RECORD_STRIDE

    def to_bytes(self) -> bytes:
        return pack_flat_records(self.records)

    def agents_payload(self) -> List[Dict[str, Any]]:
        payload = []
        for slot in range(self.num_agents):
            base = slot * RECORD_STRIDE
            px, py, vx, vy, ppx, ppy, gx, gy = self.records[base : base + RECORD_STRIDE]
            payload.append(
                {
                    "id": slot,
                    "x": px,
                    "y": py,
                    "vx": vx,
                    "vy": vy,
                    "px": ppx,
                    "py": ppy,
                    "gx": gx,
                    "gy": gy,
                }
            )
        return payload


@dataclass(frozen=True, slots=True)
class SnapshotMetadata:
    num_agents: int
    sim_dt: float
    tick_rate: float
    agent_scale: float
    scene: str
    seed: int
    config_version: str
