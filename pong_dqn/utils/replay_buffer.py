"""
Experience replay buffer.

This module provides:
- Transition: Named view of a single stored (s, a, r, s', done) tuple
- ReplayBuffer: Fixed-capacity ring buffer with uniform sampling
- InsufficientDataError: Raised when sampling more than is stored
"""

import numpy as np
from typing import Dict, List, NamedTuple, Tuple


class InsufficientDataError(Exception):
    """Raised when a batch larger than the buffer contents is requested."""
    pass


class Transition(NamedTuple):
    """A single stored transition."""
    state: np.ndarray
    action: int
    reward: float
    next_state: np.ndarray
    done: bool


class ReplayBuffer:
    """
    Experience replay buffer with uniform sampling.

    Stores transitions (s, a, r, s', done) in pre-allocated NumPy arrays.
    Once capacity is reached, each push overwrites the oldest transition.

    Observations are kept as uint8 by default: a 100k buffer of stacked
    84x84 frames would otherwise not fit in memory.

    Args:
        capacity: Maximum number of transitions to store
        state_shape: Shape of state observations (C, H, W)
        obs_dtype: Storage dtype for states and next states

    Example:
        >>> buffer = ReplayBuffer(100000, (4, 84, 84))
        >>> buffer.push(state, action, reward, next_state, done)
        >>> batch = buffer.sample(32)
    """

    def __init__(
        self,
        capacity: int,
        state_shape: Tuple[int, ...],
        obs_dtype: type = np.uint8
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")

        self.capacity = capacity
        self.state_shape = tuple(state_shape)
        self.obs_dtype = obs_dtype

        self.states = np.zeros((capacity, *self.state_shape), dtype=obs_dtype)
        self.actions = np.zeros(capacity, dtype=np.int64)
        self.rewards = np.zeros(capacity, dtype=np.float32)
        self.next_states = np.zeros((capacity, *self.state_shape), dtype=obs_dtype)
        self.dones = np.zeros(capacity, dtype=np.bool_)

        # Next write slot and number of valid entries
        self.position = 0
        self.size = 0

    def push(
        self,
        state: np.ndarray,
        action: int,
        reward: float,
        next_state: np.ndarray,
        done: bool
    ) -> None:
        """
        Add a transition, overwriting the oldest one when full.

        Args:
            state: Current state observation
            action: Action taken
            reward: Reward received
            next_state: Next state observation
            done: Whether episode terminated
        """
        idx = self.position
        self.states[idx] = state
        self.actions[idx] = action
        self.rewards[idx] = reward
        self.next_states[idx] = next_state
        self.dones[idx] = done

        # Update position (circular buffer)
        self.position = (self.position + 1) % self.capacity
        self.size = min(self.size + 1, self.capacity)

    def sample(self, batch_size: int) -> Dict[str, np.ndarray]:
        """
        Sample a random batch of distinct transitions.

        Args:
            batch_size: Number of transitions to sample

        Returns:
            Dictionary containing:
                - 'states': (batch, C, H, W)
                - 'actions': (batch,)
                - 'rewards': (batch,)
                - 'next_states': (batch, C, H, W)
                - 'dones': (batch,)

        Raises:
            InsufficientDataError: If fewer than batch_size transitions are stored
        """
        if batch_size > self.size:
            raise InsufficientDataError(
                f"Cannot sample {batch_size} transitions, "
                f"buffer holds {self.size}"
            )

        indices = np.random.choice(self.size, batch_size, replace=False)

        return {
            'states': self.states[indices],
            'actions': self.actions[indices],
            'rewards': self.rewards[indices],
            'next_states': self.next_states[indices],
            'dones': self.dones[indices],
        }

    def transitions(self) -> List[Transition]:
        """Return stored transitions, oldest first."""
        start = self.position if self.size == self.capacity else 0
        order = [(start + i) % self.capacity for i in range(self.size)]
        return [
            Transition(
                state=self.states[i],
                action=int(self.actions[i]),
                reward=float(self.rewards[i]),
                next_state=self.next_states[i],
                done=bool(self.dones[i]),
            )
            for i in order
        ]

    def reset(self) -> None:
        """Clear the buffer."""
        self.position = 0
        self.size = 0

    def __len__(self) -> int:
        """Return current buffer size."""
        return self.size
