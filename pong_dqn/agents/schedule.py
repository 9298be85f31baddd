"""Exploration schedules."""

import math


def epsilon_by_step(
    step: int,
    epsilon_start: float = 1.0,
    epsilon_end: float = 0.01,
    epsilon_decay: float = 30000.0
) -> float:
    """
    Exponentially decayed exploration rate for a given environment step.

        epsilon(t) = end + (start - end) * exp(-t / decay)

    With epsilon_start == epsilon_end the rate is constant.

    Args:
        step: Environment step index (>= 0)
        epsilon_start: Rate at step 0
        epsilon_end: Asymptotic rate
        epsilon_decay: Decay time constant in steps

    Returns:
        Exploration rate in [epsilon_end, epsilon_start]
    """
    if step < 0:
        raise ValueError(f"step must be >= 0, got {step}")
    if epsilon_decay <= 0:
        raise ValueError(f"epsilon_decay must be > 0, got {epsilon_decay}")

    return epsilon_end + (epsilon_start - epsilon_end) * math.exp(-step / epsilon_decay)
