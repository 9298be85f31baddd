"""
Agent implementations for deep reinforcement learning.

Available agents:
- DQNAgent: Deep Q-Network with optional target network
"""

from .base import BaseAgent, QNetwork
from .dqn import DQNAgent
from .schedule import epsilon_by_step

__all__ = [
    "BaseAgent",
    "QNetwork",
    "DQNAgent",
    "epsilon_by_step",
]
