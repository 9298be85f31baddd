"""
Deep Q-Network (DQN) agent implementation.

Implements one-step Q-learning with a CNN function approximator
(Mnih et al. 2015, "Human-level control through deep reinforcement
learning"):
- CNN-based Q-network for visual input
- Optional frozen target network
- Experience replay (handled externally)
- Epsilon-greedy exploration
"""

import torch
import torch.nn.functional as F
import numpy as np
from typing import Dict, Tuple, Optional, Any

from .base import BaseAgent, QNetwork
from ..utils.checkpoint import (
    CheckpointLoadError,
    load_checkpoint,
    save_checkpoint,
)


class DQNAgent(BaseAgent):
    """
    Deep Q-Network agent.

    The TD target is always computed without gradient. With
    target_update_freq == 0 it bootstraps from the online network itself;
    with target_update_freq > 0 a frozen copy is kept and re-synced every
    target_update_freq updates.

    The loss reported in the update metrics is clamped to
    [-loss_clip, loss_clip]. The gradient step always uses the unclamped
    loss.

    Args:
        state_shape: Shape of observations (C, H, W)
        num_actions: Number of discrete actions
        learning_rate: Adam optimizer learning rate
        gamma: Discount factor
        target_update_freq: Updates between target syncs (0 = no target network)
        grad_clip: Max global gradient norm (0 disables clipping)
        loss_clip: Bound on the reported loss (0 disables clamping)
        device: 'cuda', 'cpu', or 'auto'

    Example:
        >>> agent = DQNAgent(state_shape=(4, 84, 84), num_actions=6)
        >>> action = agent.select_action(state, exploration_rate=0.05)
        >>> metrics = agent.update(batch)
    """

    def __init__(
        self,
        state_shape: Tuple[int, ...],
        num_actions: int,
        learning_rate: float = 0.0001,
        gamma: float = 0.99,
        target_update_freq: int = 0,
        grad_clip: float = 10.0,
        loss_clip: float = 1.0,
        device: str = "auto"
    ) -> None:
        super().__init__(
            state_shape=state_shape,
            num_actions=num_actions,
            learning_rate=learning_rate,
            gamma=gamma,
            device=device
        )

        if len(self.state_shape) != 3 or self.state_shape[1] != self.state_shape[2]:
            raise ValueError(
                f"state_shape must be (C, N, N) square frames, got {self.state_shape}"
            )

        self.target_update_freq = int(target_update_freq)
        self.grad_clip = float(grad_clip)
        self.loss_clip = float(loss_clip)

        input_channels, image_size = self.state_shape[0], self.state_shape[1]
        self.online_network = QNetwork(
            input_channels, self.num_actions, image_size=image_size
        ).to(self.device)

        if self.target_update_freq > 0:
            self.target_network = QNetwork(
                input_channels, self.num_actions, image_size=image_size
            ).to(self.device)
            self.sync_target_network()

            # Freeze target network (no gradients)
            for param in self.target_network.parameters():
                param.requires_grad = False

        self.optimizer = torch.optim.Adam(
            self.online_network.parameters(),
            lr=learning_rate
        )

    def select_action(self, state: np.ndarray, exploration_rate: float = 0.0) -> int:
        """
        Select action using epsilon-greedy policy.

        Args:
            state: Current state observation (C, H, W)
            exploration_rate: Probability of a uniformly random action

        Returns:
            Selected action index
        """
        return self.online_network.select_action(state, exploration_rate)

    def compute_td_target(
        self,
        rewards: torch.Tensor,
        next_states: torch.Tensor,
        dones: torch.Tensor
    ) -> torch.Tensor:
        """
        Compute TD target values.

            y = r + gamma * max_a Q(s', a) * (1 - done)

        Terminal transitions receive no bootstrapped continuation value.

        Args:
            rewards: Batch of rewards
            next_states: Batch of next states
            dones: Batch of done flags

        Returns:
            Target Q-values (detached)
        """
        if self.target_network is not None:
            bootstrap_network = self.target_network
        else:
            bootstrap_network = self.online_network

        with torch.no_grad():
            next_q_values = bootstrap_network(next_states)
            max_next_q = next_q_values.max(dim=1)[0]
            targets = rewards + self.gamma * max_next_q * (1 - dones.float())

        return targets

    def update(self, batch: Dict[str, torch.Tensor]) -> Dict[str, float]:
        """
        Perform one DQN gradient update step.

        Args:
            batch: Dictionary containing:
                - 'states': (batch, C, H, W)
                - 'actions': (batch,)
                - 'rewards': (batch,)
                - 'next_states': (batch, C, H, W)
                - 'dones': (batch,)

        Returns:
            Dictionary with metrics:
                - 'loss': MSE loss, clamped for reporting
                - 'raw_loss': MSE loss before clamping
                - 'mean_q': Mean Q-value
                - 'max_q': Max Q-value
                - 'grad_norm': Gradient norm before clipping
                - 'td_error_mean': Mean absolute TD error
        """
        states = batch['states'].to(self.device)
        actions = batch['actions'].to(self.device).long()
        rewards = batch['rewards'].to(self.device).float()
        next_states = batch['next_states'].to(self.device)
        dones = batch['dones'].to(self.device)

        # Current Q-values for taken actions
        q_values = self.online_network(states)
        current_q = q_values.gather(1, actions.unsqueeze(1)).squeeze(1)

        targets = self.compute_td_target(rewards, next_states, dones)

        loss = F.mse_loss(current_q, targets)

        self.optimizer.zero_grad()
        loss.backward()

        if self.grad_clip > 0:
            grad_norm = torch.nn.utils.clip_grad_norm_(
                self.online_network.parameters(),
                self.grad_clip
            ).item()
        else:
            grad_norm = _total_grad_norm(self.online_network)

        self.optimizer.step()

        self.update_count += 1
        if self.target_network is not None and self.update_count % self.target_update_freq == 0:
            self.sync_target_network()

        raw_loss = loss.item()
        reported_loss = raw_loss
        if self.loss_clip > 0:
            reported_loss = float(np.clip(raw_loss, -self.loss_clip, self.loss_clip))

        return {
            'loss': reported_loss,
            'raw_loss': raw_loss,
            'mean_q': q_values.mean().item(),
            'max_q': q_values.max().item(),
            'grad_norm': grad_norm,
            'td_error_mean': (current_q - targets).detach().abs().mean().item(),
        }

    def save(self, path: str, loss: Optional[float] = None) -> None:
        """
        Save model checkpoint, overwriting any existing file.

        Saves:
        - Online network weights
        - Target network weights (if any)
        - Optimizer state
        - Last reported loss
        - Update count and agent config

        Args:
            path: File path for checkpoint
            loss: Latest loss value to store alongside the weights
        """
        checkpoint = {
            'online_network': self.online_network.state_dict(),
            'optimizer': self.optimizer.state_dict(),
            'loss': None if loss is None else float(loss),
            'update_count': self.update_count,
            'config': self.get_config(),
        }
        if self.target_network is not None:
            checkpoint['target_network'] = self.target_network.state_dict()

        save_checkpoint(path, checkpoint)

    def load(self, path: str) -> Optional[float]:
        """
        Load model checkpoint.

        Args:
            path: File path to checkpoint

        Returns:
            The last loss stored with the checkpoint (None if absent)

        Raises:
            CheckpointLoadError: If the checkpoint does not match this
                agent's architecture or is unreadable
        """
        checkpoint = load_checkpoint(
            path,
            map_location=self.device,
            required_keys=('online_network', 'optimizer')
        )

        try:
            self.online_network.load_state_dict(checkpoint['online_network'])
            self.optimizer.load_state_dict(checkpoint['optimizer'])
            if self.target_network is not None:
                if 'target_network' in checkpoint:
                    self.target_network.load_state_dict(checkpoint['target_network'])
                else:
                    self.sync_target_network()
        except (RuntimeError, ValueError, KeyError) as e:
            raise CheckpointLoadError(
                f"Checkpoint {path} does not match agent {self!r}: {e}"
            ) from e

        self.update_count = checkpoint.get('update_count', 0)
        return checkpoint.get('loss')

    def set_training_mode(self, training: bool = True) -> None:
        """Switch networks between train and eval mode."""
        self.online_network.train(training)
        if self.target_network is not None:
            self.target_network.train(training)

    def get_config(self) -> Dict[str, Any]:
        """Return agent configuration."""
        config = super().get_config()
        config.update({
            'target_update_freq': self.target_update_freq,
            'grad_clip': self.grad_clip,
            'loss_clip': self.loss_clip,
            'agent_type': 'dqn'
        })
        return config


def _total_grad_norm(module: torch.nn.Module) -> float:
    norms = [p.grad.detach().norm(2) for p in module.parameters() if p.grad is not None]
    if not norms:
        return 0.0
    return torch.norm(torch.stack(norms), 2).item()
