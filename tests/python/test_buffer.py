from __future__ import annotations

import pytest
from pygame.math import Vector2

from crowdsim.sim.core.agent import Agent
from crowdsim.sim.core.buffer import AgentBuffer


def _agents(count: int) -> list[Agent]:
    return [Agent(position=Vector2(float(i), 0.0)) for i in range(count)]


def _shifted(agents, dx: float) -> list[Agent]:
    out = []
    for agent in agents:
        moved = agent.copy()
        moved.position.x += dx
        out.append(moved)
    return out


def test_publish_flips_read_index_and_commit_exposes_result():
    buffer = AgentBuffer(_agents(3))
    assert buffer.read_index == 0
    buffer.begin_step()
    buffer.publish(_shifted(buffer.read, 1.0))
    assert buffer.read_index == 1
    buffer.publish(_shifted(buffer.read, 1.0))
    assert buffer.read_index == 0
    assert [a.position.x for a in buffer.read] == [2.0, 3.0, 4.0]
    # Readers still see the last committed state mid-step.
    assert [a.position.x for a in buffer.committed] == [0.0, 1.0, 2.0]

    committed = buffer.commit()
    assert [a.position.x for a in committed] == [2.0, 3.0, 4.0]
    assert not buffer.in_step


def test_discard_keeps_committed_state():
    buffer = AgentBuffer(_agents(2))
    buffer.begin_step()
    buffer.publish(_shifted(buffer.read, 5.0))
    buffer.discard()
    assert [a.position.x for a in buffer.committed] == [0.0, 1.0]
    assert [a.position.x for a in buffer.read] == [0.0, 1.0]
    assert not buffer.in_step

    buffer.begin_step()
    buffer.publish(_shifted(buffer.read, 1.0))
    assert [a.position.x for a in buffer.commit()] == [1.0, 2.0]


def test_step_bracketing_errors():
    buffer = AgentBuffer(_agents(2))
    with pytest.raises(RuntimeError):
        buffer.publish(_agents(2))
    with pytest.raises(RuntimeError):
        buffer.commit()
    buffer.begin_step()
    with pytest.raises(RuntimeError):
        buffer.begin_step()
    with pytest.raises(RuntimeError):
        buffer.reset(_agents(4))
    with pytest.raises(ValueError):
        buffer.publish(_agents(3))


def test_reset_resizes_and_copies():
    source = _agents(2)
    buffer = AgentBuffer(source)
    source[0].position.x = 42.0
    assert buffer.committed[0].position.x == 0.0
    buffer.reset(_agents(5))
    assert len(buffer) == 5
    assert buffer.read_index == 0
