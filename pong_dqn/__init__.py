"""
Pong DQN

Deep Q-Learning from pixels for Atari Pong: replay buffer, convolutional
Q-network, one-step TD updates and a step-driven training loop.
"""

__version__ = "1.0.0"
