from __future__ import annotations

from typing import List, Optional, Sequence

from .agent import Agent


class AgentBuffer:
    """
    Ping-pong pair of agent arrays.

    Every pass reads ``read`` and hands its results to ``publish``, which fills the
    other array and flips the read index. Both arrays are allocated once and only
    slice-assigned afterwards. ``begin_step``/``commit``/``discard`` bracket a whole
    simulation step so an aborted step never replaces the committed state.
    """

    def __init__(self, agents: Sequence[Agent]) -> None:
        self._slots: List[List[Optional[Agent]]] = [[], []]
        self._front: tuple[Agent, ...] = ()
        self._read_index = 0
        self._in_step = False
        self.reset(agents)

    def __len__(self) -> int:
        return len(self._front)

    @property
    def read_index(self) -> int:
        return self._read_index

    @property
    def read(self) -> Sequence[Agent]:
        return self._slots[self._read_index]  # type: ignore[return-value]

    @property
    def committed(self) -> tuple[Agent, ...]:
        return self._front

    @property
    def in_step(self) -> bool:
        return self._in_step

    def reset(self, agents: Sequence[Agent]) -> None:
        if self._in_step:
            raise RuntimeError("cannot reset the agent buffer while a step is in flight")
        agents = [agent.copy() for agent in agents]
        self._slots = [list(agents), [None] * len(agents)]
        self._front = tuple(agents)
        self._read_index = 0

    def begin_step(self) -> None:
        if self._in_step:
            raise RuntimeError("step already in flight")
        self._slots[self._read_index][:] = self._front
        self._in_step = True

    def publish(self, results: Sequence[Agent]) -> None:
        if not self._in_step:
            raise RuntimeError("publish called outside of a step")
        if len(results) != len(self._front):
            raise ValueError(f"pass produced {len(results)} agents, expected {len(self._front)}")
        write_index = 1 - self._read_index
        self._slots[write_index][:] = results
        self._read_index = write_index

    def commit(self) -> tuple[Agent, ...]:
        if not self._in_step:
            raise RuntimeError("commit called outside of a step")
        self._front = tuple(self._slots[self._read_index])  # type: ignore[arg-type]
        self._in_step = False
        return self._front

    def discard(self) -> None:
        self._slots[self._read_index][:] = self._front
        self._in_step = False
