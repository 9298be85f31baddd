"""
Base classes for deep reinforcement learning agents.

This module provides:
- QNetwork: CNN-based Q-value network (Mnih et al. 2015 architecture)
- BaseAgent: Abstract base class defining the agent interface
"""

from abc import ABC, abstractmethod
from typing import Tuple, Dict, Any, Optional
import torch
import torch.nn as nn
import torch.nn.functional as F
import numpy as np


class QNetwork(nn.Module):
    """
    CNN-based Q-Network for visual reinforcement learning.

    Architecture follows Mnih et al. (2015) "Human-level control through
    deep reinforcement learning":
    - Conv1: 32 filters, 8x8 kernel, stride 4
    - Conv2: 64 filters, 4x4 kernel, stride 2
    - Conv3: 64 filters, 3x3 kernel, stride 1
    - FC: 512 hidden units
    - Output: num_actions Q-values

    Integer pixel input (uint8 frames straight from the replay buffer) is
    scaled to [0, 1] inside forward(); float input is used as-is.

    Args:
        input_channels: Number of input channels (4 for frame stacking)
        num_actions: Number of discrete actions
        image_size: Side length of the square input frames

    Example:
        >>> net = QNetwork(input_channels=4, num_actions=6)
        >>> state = torch.randn(1, 4, 84, 84)
        >>> q_values = net(state)  # Shape: (1, 6)
    """

    def __init__(
        self,
        input_channels: int,
        num_actions: int,
        image_size: int = 84
    ) -> None:
        super().__init__()

        self.input_channels = input_channels
        self.num_actions = num_actions
        self.image_size = image_size

        # Convolutional layers
        self.conv1 = nn.Conv2d(input_channels, 32, kernel_size=8, stride=4)
        self.conv2 = nn.Conv2d(32, 64, kernel_size=4, stride=2)
        self.conv3 = nn.Conv2d(64, 64, kernel_size=3, stride=1)

        conv_out_size = self._compute_conv_output_size()

        # Fully connected layers
        self.fc1 = nn.Linear(conv_out_size, 512)
        self.fc2 = nn.Linear(512, num_actions)

        self._initialize_weights()

    def _compute_conv_output_size(self) -> int:
        """Calculate the flattened size after convolutional layers."""
        with torch.no_grad():
            dummy_input = torch.zeros(1, self.input_channels, self.image_size, self.image_size)
            x = F.relu(self.conv1(dummy_input))
            x = F.relu(self.conv2(x))
            x = F.relu(self.conv3(x))
            return x.view(1, -1).size(1)

    def _initialize_weights(self) -> None:
        """Initialize network weights using orthogonal initialization."""
        for module in self.modules():
            if isinstance(module, (nn.Conv2d, nn.Linear)):
                nn.init.orthogonal_(module.weight, gain=np.sqrt(2))
                if module.bias is not None:
                    nn.init.zeros_(module.bias)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Forward pass through the network.

        Args:
            x: Input tensor of shape (batch, channels, H, W), either uint8
               pixels in [0, 255] or floats already in [0, 1]

        Returns:
            Q-values tensor of shape (batch, num_actions)
        """
        if not torch.is_floating_point(x):
            x = x.float() / 255.0

        x = F.relu(self.conv1(x))
        x = F.relu(self.conv2(x))
        x = F.relu(self.conv3(x))

        x = x.view(x.size(0), -1)

        x = F.relu(self.fc1(x))
        q_values = self.fc2(x)

        return q_values

    def select_action(self, observation: np.ndarray, exploration_rate: float) -> int:
        """
        Epsilon-greedy action for a single observation.

        With probability exploration_rate a uniformly random action is
        returned; otherwise the action with the highest Q-value.

        Args:
            observation: Observation of shape (channels, H, W)
            exploration_rate: Probability of acting randomly, in [0, 1]

        Returns:
            Action index
        """
        if np.random.random() < exploration_rate:
            return int(np.random.randint(self.num_actions))

        device = next(self.parameters()).device
        with torch.no_grad():
            state = torch.as_tensor(np.asarray(observation), device=device).unsqueeze(0)
            q_values = self.forward(state)
            return int(q_values.argmax(dim=1).item())


class BaseAgent(ABC):
    """
    Abstract base class for deep RL agents.

    Defines the interface that all agents must implement:
    - select_action: Choose action given state
    - update: Perform gradient update from batch
    - save/load: Model persistence

    Also provides common functionality:
    - Target network synchronization
    - Device management

    Args:
        state_shape: Shape of observations (C, H, W)
        num_actions: Number of discrete actions
        learning_rate: Optimizer learning rate
        gamma: Discount factor
        device: 'cuda', 'cpu', or 'auto'
    """

    def __init__(
        self,
        state_shape: Tuple[int, ...],
        num_actions: int,
        learning_rate: float = 0.0001,
        gamma: float = 0.99,
        device: str = "auto"
    ) -> None:
        # Builtin types only: the checkpoint config must survive torch.load(weights_only=True)
        self.state_shape = tuple(int(d) for d in state_shape)
        self.num_actions = int(num_actions)
        self.learning_rate = float(learning_rate)
        self.gamma = float(gamma)

        if device == "auto":
            self.device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
        else:
            self.device = torch.device(device)

        # Networks will be initialized by subclasses
        self.online_network: Optional[nn.Module] = None
        self.target_network: Optional[nn.Module] = None
        self.optimizer: Optional[torch.optim.Optimizer] = None

        self.update_count = 0

    @abstractmethod
    def select_action(self, state: np.ndarray, exploration_rate: float = 0.0) -> int:
        """
        Select action using epsilon-greedy policy.

        Args:
            state: Current state observation
            exploration_rate: Probability of a random action

        Returns:
            Selected action index
        """
        pass

    @abstractmethod
    def update(self, batch: Dict[str, torch.Tensor]) -> Dict[str, float]:
        """
        Perform one gradient update step.

        Args:
            batch: Dictionary containing:
                - 'states': (batch, C, H, W)
                - 'actions': (batch,)
                - 'rewards': (batch,)
                - 'next_states': (batch, C, H, W)
                - 'dones': (batch,)

        Returns:
            Dictionary of metrics (loss, mean_q, etc.)
        """
        pass

    @abstractmethod
    def save(self, path: str, loss: Optional[float] = None) -> None:
        """Save model checkpoint to path."""
        pass

    @abstractmethod
    def load(self, path: str) -> Optional[float]:
        """Load model checkpoint from path, returning the stored loss."""
        pass

    def sync_target_network(self) -> None:
        """
        Hard update: Copy online network weights to target network.

        This is called periodically during training to update
        the target network used for computing TD targets.
        """
        if self.target_network is not None and self.online_network is not None:
            self.target_network.load_state_dict(
                self.online_network.state_dict()
            )

    def get_config(self) -> Dict[str, Any]:
        """Return agent configuration as dictionary."""
        return {
            "state_shape": list(self.state_shape),
            "num_actions": self.num_actions,
            "learning_rate": self.learning_rate,
            "gamma": self.gamma,
            "device": str(self.device),
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"num_actions={self.num_actions}, "
            f"lr={self.learning_rate}, "
            f"gamma={self.gamma})"
        )
