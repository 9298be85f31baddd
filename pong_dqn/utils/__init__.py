"""
Utility modules for training and evaluation.

Includes:
- Replay buffer (uniform ring buffer)
- Checkpoint and history persistence
- Logging (console/file, CSV)
- Plotting (learning curves, metrics)

Agent/buffer builders live in pong_dqn.utils.factory.
"""

from .replay_buffer import ReplayBuffer, Transition, InsufficientDataError
from .checkpoint import (
    CheckpointLoadError,
    save_checkpoint,
    load_checkpoint,
    save_training_history,
    load_training_history,
)
from .logging import SafeCSVLogger, setup_logger
from .plotting import plot_learning_curve, plot_training_metrics

__all__ = [
    # Replay buffer
    "ReplayBuffer",
    "Transition",
    "InsufficientDataError",
    # Checkpoints
    "CheckpointLoadError",
    "save_checkpoint",
    "load_checkpoint",
    "save_training_history",
    "load_training_history",
    # Logging
    "SafeCSVLogger",
    "setup_logger",
    # Plotting
    "plot_learning_curve",
    "plot_training_metrics",
]
