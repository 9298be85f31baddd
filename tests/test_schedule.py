import math

import pytest

from pong_dqn.agents.schedule import epsilon_by_step


def test_starts_at_epsilon_start():
    assert epsilon_by_step(0, 1.0, 0.01, 30000) == pytest.approx(1.0)


def test_one_time_constant():
    expected = 0.01 + 0.99 * math.exp(-1)
    assert epsilon_by_step(30000, 1.0, 0.01, 30000) == pytest.approx(expected)


def test_monotonically_decreasing_towards_end():
    values = [epsilon_by_step(step, 1.0, 0.05, 1000) for step in range(0, 20000, 500)]
    assert all(a > b for a, b in zip(values, values[1:]))
    assert values[-1] == pytest.approx(0.05, abs=1e-6)
    assert min(values) >= 0.05


def test_constant_when_start_equals_end():
    assert {epsilon_by_step(step, 0.02, 0.02, 100) for step in (0, 10, 10_000)} == {0.02}


def test_rejects_negative_step():
    with pytest.raises(ValueError):
        epsilon_by_step(-1)


def test_rejects_non_positive_decay():
    with pytest.raises(ValueError):
        epsilon_by_step(10, epsilon_decay=0)
