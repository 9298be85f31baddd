"""
Plotting utilities for training runs.

This module provides:
- plot_learning_curve: Episode rewards with moving average
- plot_training_metrics: Several metric series in stacked subplots
"""

from typing import List, Dict, Optional
from pathlib import Path
import logging

import numpy as np
import matplotlib

# Use non-interactive backend for headless environments
matplotlib.use('Agg')

import matplotlib.pyplot as plt  # noqa: E402

logger = logging.getLogger("pong_dqn.plotting")


def plot_learning_curve(
    rewards: List[float],
    window: int = 10,
    title: str = "Learning Curve",
    xlabel: str = "Episode",
    ylabel: str = "Reward",
    save_path: Optional[str] = None,
    show: bool = False
) -> None:
    """
    Plot learning curve with moving average.

    Args:
        rewards: List of episode rewards
        window: Moving average window size
        title: Plot title
        xlabel: X-axis label
        ylabel: Y-axis label
        save_path: If provided, save figure to this path
        show: Whether to display the plot

    Example:
        >>> plot_learning_curve(history['episode_rewards'], save_path="curve.png")
    """
    fig, ax = plt.subplots(figsize=(10, 6))

    episodes = np.arange(len(rewards))

    ax.plot(episodes, rewards, alpha=0.3, color='blue', label='Raw')

    if len(rewards) >= window:
        moving_avg = np.convolve(rewards, np.ones(window) / window, mode='valid')
        ax.plot(
            episodes[window - 1:],
            moving_avg,
            color='blue',
            linewidth=2,
            label=f'{window}-episode average'
        )

    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Learning curve saved to: {save_path}")

    if show:
        plt.show()
    else:
        plt.close(fig)


def plot_training_metrics(
    metrics: Dict[str, List[float]],
    title: str = "Training Metrics",
    xlabel: str = "Update",
    save_path: Optional[str] = None,
    show: bool = False
) -> None:
    """
    Plot multiple training metrics in subplots.

    Series of different lengths are each drawn against their own index.

    Args:
        metrics: Dict of {metric_name: values_list}
        title: Overall figure title
        xlabel: Label of the shared x-axis
        save_path: Optional save path
        show: Whether to display the plot
    """
    n_metrics = len(metrics)
    if n_metrics == 0:
        return

    fig, axes = plt.subplots(n_metrics, 1, figsize=(12, 3 * n_metrics))

    if n_metrics == 1:
        axes = [axes]

    for ax, (name, values) in zip(axes, metrics.items()):
        ax.plot(np.arange(len(values)), values, linewidth=1)
        ax.set_ylabel(name)
        ax.grid(True, alpha=0.3)

    axes[-1].set_xlabel(xlabel)
    fig.suptitle(title, fontsize=14)

    plt.tight_layout()

    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Metrics plot saved to: {save_path}")

    if show:
        plt.show()
    else:
        plt.close(fig)
