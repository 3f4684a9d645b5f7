from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from pygame.math import Vector2

# posX, posY, velX, velY, predX, predY, goalX, goalY
RECORD_STRIDE = 8
RECORD_BYTES = RECORD_STRIDE * 4
_RECORD_STRUCT = struct.Struct("<8f")


@dataclass(slots=True)
class Agent:
    position: Vector2 = field(default_factory=Vector2)
    velocity: Vector2 = field(default_factory=Vector2)
    predicted_position: Vector2 = field(default_factory=Vector2)
    goal: Vector2 = field(default_factory=Vector2)

    def copy(self) -> "Agent":
        return Agent(
            position=Vector2(self.position),
            velocity=Vector2(self.velocity),
            predicted_position=Vector2(self.predicted_position),
            goal=Vector2(self.goal),
        )

    def to_record(self) -> tuple[float, ...]:
        return (
            self.position.x,
            self.position.y,
            self.velocity.x,
            self.velocity.y,
            self.predicted_position.x,
            self.predicted_position.y,
            self.goal.x,
            self.goal.y,
        )

    @classmethod
    def from_record(cls, record: Sequence[float]) -> "Agent":
        if len(record) != RECORD_STRIDE:
            raise ValueError(f"Agent record needs {RECORD_STRIDE} values, got {len(record)}")
        return cls(
            position=Vector2(record[0], record[1]),
            velocity=Vector2(record[2], record[3]),
            predicted_position=Vector2(record[4], record[5]),
            goal=Vector2(record[6], record[7]),
        )


def flatten_records(agents: Iterable[Agent]) -> tuple[float, ...]:
    values: List[float] = []
    for agent in agents:
        values.extend(agent.to_record())
    return tuple(values)


def pack_records(agents: Iterable[Agent]) -> bytes:
    return pack_flat_records(flatten_records(agents))


def pack_flat_records(values: Sequence[float]) -> bytes:
    """Little-endian float32 buffer, ``RECORD_BYTES`` per agent, in slot order."""
    if len(values) % RECORD_STRIDE:
        raise ValueError(f"Record values length {len(values)} is not a multiple of {RECORD_STRIDE}")
    return b"".join(
        _RECORD_STRUCT.pack(*values[base : base + RECORD_STRIDE]) for base in range(0, len(values), RECORD_STRIDE)
    )


def unpack_records(data: bytes) -> List[Agent]:
    if len(data) % RECORD_BYTES:
        raise ValueError(f"Agent buffer length {len(data)} is not a multiple of {RECORD_BYTES}")
    return [Agent.from_record(values) for values in _RECORD_STRUCT.iter_unpack(data)]
