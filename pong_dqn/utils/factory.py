"""
Factory functions for building agents and buffers from configuration.

This module provides:
- build_agent: Create a DQN agent from Hydra config
- build_buffer: Create a replay buffer from Hydra config

These factories enable the config-driven pipeline where experiments
are defined entirely through YAML configuration files.
"""

from typing import Tuple
from omegaconf import DictConfig

from ..agents.dqn import DQNAgent
from .replay_buffer import ReplayBuffer


def build_agent(
    config: DictConfig,
    state_shape: Tuple[int, ...],
    num_actions: int
) -> DQNAgent:
    """
    Build a DQN agent from Hydra configuration.

    Args:
        config: Hydra DictConfig with agent settings
        state_shape: Environment observation shape (C, H, W)
        num_actions: Number of discrete actions

    Returns:
        Initialized agent instance

    Raises:
        ValueError: If state_shape disagrees with the configured
            frame stack or image size

    Example:
        >>> from omegaconf import OmegaConf
        >>> config = OmegaConf.load("configs/default.yaml")
        >>> agent = build_agent(config, (4, 84, 84), 6)
    """
    expected = (config.env.frame_stack, config.env.image_size, config.env.image_size)
    if tuple(state_shape) != expected:
        raise ValueError(
            f"Observation shape {tuple(state_shape)} does not match "
            f"configured network input {expected}"
        )

    return DQNAgent(
        state_shape=state_shape,
        num_actions=num_actions,
        learning_rate=config.agent.learning_rate,
        gamma=config.agent.gamma,
        target_update_freq=config.agent.get('target_update_freq', 0),
        grad_clip=config.agent.get('grad_clip', 10.0),
        loss_clip=config.agent.get('loss_clip', 1.0),
        device=config.device,
    )


def build_buffer(
    config: DictConfig,
    state_shape: Tuple[int, ...]
) -> ReplayBuffer:
    """
    Build a replay buffer from Hydra configuration.

    Args:
        config: Hydra DictConfig with buffer settings
        state_shape: State observation shape for pre-allocation

    Returns:
        Initialized replay buffer instance
    """
    return ReplayBuffer(
        capacity=config.buffer.capacity,
        state_shape=state_shape,
    )
