"""
Configuration schema and validation for Pong DQN experiments.

This module provides:
- Dataclass schemas for all config sections
- Validation logic to catch invalid hyperparameters early
- validate_config() function to check entire config

Usage:
    from pong_dqn.utils.config_schema import validate_config
    validate_config(config)  # Raises ConfigValidationError if invalid
"""

import logging
from dataclasses import dataclass
from typing import Optional
from omegaconf import DictConfig

from ..envs.atari_wrapper import ATARI_GAMES


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


# =============================================================================
# Config Dataclasses with Validation
# =============================================================================

@dataclass
class EnvConfig:
    """Environment configuration schema."""
    env_id: str
    frame_skip: int
    frame_stack: int
    image_size: int
    clip_rewards: bool
    noop_max: int = 30

    def __post_init__(self):
        # Allow other ALE games but warn
        if self.env_id not in ATARI_GAMES:
            logging.getLogger("pong_dqn").warning(
                f"Environment '{self.env_id}' not in known list. "
                f"Known environments: {list(ATARI_GAMES)}"
            )

        if not 1 <= self.frame_skip <= 10:
            raise ConfigValidationError(
                f"frame_skip must be in [1, 10], got {self.frame_skip}"
            )

        if not 1 <= self.frame_stack <= 8:
            raise ConfigValidationError(
                f"frame_stack must be in [1, 8], got {self.frame_stack}"
            )

        # Smallest size the three conv stages accept
        if not 36 <= self.image_size <= 256:
            raise ConfigValidationError(
                f"image_size must be in [36, 256], got {self.image_size}"
            )

        if not 0 <= self.noop_max <= 100:
            raise ConfigValidationError(
                f"noop_max must be in [0, 100], got {self.noop_max}"
            )


@dataclass
class AgentConfig:
    """Agent configuration schema."""
    learning_rate: float
    gamma: float
    epsilon_start: float
    epsilon_end: float
    epsilon_decay: float
    target_update_freq: int = 0
    grad_clip: float = 10.0
    loss_clip: float = 1.0

    def __post_init__(self):
        if not 0 < self.learning_rate <= 1:
            raise ConfigValidationError(
                f"learning_rate must be in (0, 1], got {self.learning_rate}"
            )

        # gamma = 0 is allowed: pure one-step reward regression
        if not 0 <= self.gamma <= 1:
            raise ConfigValidationError(
                f"gamma must be in [0, 1], got {self.gamma}"
            )

        if not 0 <= self.epsilon_start <= 1:
            raise ConfigValidationError(
                f"epsilon_start must be in [0, 1], got {self.epsilon_start}"
            )
        if not 0 <= self.epsilon_end <= 1:
            raise ConfigValidationError(
                f"epsilon_end must be in [0, 1], got {self.epsilon_end}"
            )
        if self.epsilon_end > self.epsilon_start:
            raise ConfigValidationError(
                f"epsilon_end ({self.epsilon_end}) must be <= epsilon_start ({self.epsilon_start})"
            )
        if not self.epsilon_decay > 0:
            raise ConfigValidationError(
                f"epsilon_decay must be > 0 steps, got {self.epsilon_decay}"
            )

        if not self.target_update_freq >= 0:
            raise ConfigValidationError(
                f"target_update_freq must be >= 0, got {self.target_update_freq}"
            )

        if not self.grad_clip >= 0:
            raise ConfigValidationError(
                f"grad_clip must be >= 0, got {self.grad_clip}"
            )

        if not self.loss_clip >= 0:
            raise ConfigValidationError(
                f"loss_clip must be >= 0, got {self.loss_clip}"
            )


@dataclass
class BufferConfig:
    """Replay buffer configuration schema."""
    capacity: int

    def __post_init__(self):
        if not 1 <= self.capacity <= 10_000_000:
            raise ConfigValidationError(
                f"buffer.capacity must be in [1, 10000000], got {self.capacity}"
            )


@dataclass
class TrainingConfig:
    """Training configuration schema."""
    total_steps: int
    batch_size: int
    warmup_steps: int
    update_freq: int
    checkpoint_freq: int
    eval_episodes: int = 0
    resume_from: Optional[str] = None

    def __post_init__(self):
        if not self.total_steps >= 1:
            raise ConfigValidationError(
                f"total_steps must be >= 1, got {self.total_steps}"
            )

        if not 1 <= self.batch_size <= 1024:
            raise ConfigValidationError(
                f"batch_size must be in [1, 1024], got {self.batch_size}"
            )

        # Sampling requires at least batch_size stored transitions
        if self.warmup_steps < self.batch_size:
            raise ConfigValidationError(
                f"warmup_steps ({self.warmup_steps}) must be >= batch_size ({self.batch_size})"
            )

        if not 1 <= self.update_freq <= 100:
            raise ConfigValidationError(
                f"update_freq must be in [1, 100], got {self.update_freq}"
            )

        if not self.checkpoint_freq >= 1:
            raise ConfigValidationError(
                f"checkpoint_freq must be >= 1, got {self.checkpoint_freq}"
            )

        if not 0 <= self.eval_episodes <= 100:
            raise ConfigValidationError(
                f"eval_episodes must be in [0, 100], got {self.eval_episodes}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration schema."""
    csv_log: bool
    level: str = "INFO"
    flush_every: int = 10

    def __post_init__(self):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if self.level.upper() not in valid_levels:
            raise ConfigValidationError(
                f"logging.level must be one of {valid_levels}, got '{self.level}'"
            )

        if not 1 <= self.flush_every <= 100:
            raise ConfigValidationError(
                f"flush_every must be in [1, 100], got {self.flush_every}"
            )


# =============================================================================
# Main Validation Function
# =============================================================================

def validate_config(config: DictConfig) -> None:
    """
    Validate entire configuration.

    Checks all sections for valid values and raises ConfigValidationError
    with a descriptive message if any validation fails.

    Args:
        config: Hydra DictConfig to validate

    Raises:
        ConfigValidationError: If any config value is invalid

    Example:
        >>> from omegaconf import OmegaConf
        >>> config = OmegaConf.load("configs/default.yaml")
        >>> validate_config(config)  # Raises if invalid
    """
    errors = []

    try:
        EnvConfig(
            env_id=config.env.env_id,
            frame_skip=config.env.frame_skip,
            frame_stack=config.env.frame_stack,
            image_size=config.env.image_size,
            clip_rewards=config.env.clip_rewards,
            noop_max=config.env.get('noop_max', 30),
        )
    except ConfigValidationError as e:
        errors.append(f"[env] {e}")
    except Exception as e:
        errors.append(f"[env] Unexpected error: {e}")

    try:
        AgentConfig(
            learning_rate=config.agent.learning_rate,
            gamma=config.agent.gamma,
            epsilon_start=config.agent.epsilon_start,
            epsilon_end=config.agent.epsilon_end,
            epsilon_decay=config.agent.epsilon_decay,
            target_update_freq=config.agent.get('target_update_freq', 0),
            grad_clip=config.agent.get('grad_clip', 10.0),
            loss_clip=config.agent.get('loss_clip', 1.0),
        )
    except ConfigValidationError as e:
        errors.append(f"[agent] {e}")
    except Exception as e:
        errors.append(f"[agent] Unexpected error: {e}")

    try:
        BufferConfig(capacity=config.buffer.capacity)
    except ConfigValidationError as e:
        errors.append(f"[buffer] {e}")
    except Exception as e:
        errors.append(f"[buffer] Unexpected error: {e}")

    try:
        TrainingConfig(
            total_steps=config.training.total_steps,
            batch_size=config.training.batch_size,
            warmup_steps=config.training.warmup_steps,
            update_freq=config.training.update_freq,
            checkpoint_freq=config.training.checkpoint_freq,
            eval_episodes=config.training.get('eval_episodes', 0),
            resume_from=config.training.get('resume_from', None),
        )
    except ConfigValidationError as e:
        errors.append(f"[training] {e}")
    except Exception as e:
        errors.append(f"[training] Unexpected error: {e}")

    try:
        LoggingConfig(
            csv_log=config.logging.csv_log,
            level=config.logging.get('level', 'INFO'),
            flush_every=config.logging.get('flush_every', 10),
        )
    except ConfigValidationError as e:
        errors.append(f"[logging] {e}")
    except Exception as e:
        errors.append(f"[logging] Unexpected error: {e}")

    if not isinstance(config.seed, int) or config.seed < 0:
        errors.append(f"[seed] seed must be a non-negative integer, got {config.seed}")

    valid_devices = ['auto', 'cuda', 'cpu']
    if config.device not in valid_devices:
        errors.append(f"[device] device must be one of {valid_devices}, got '{config.device}'")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigValidationError(error_msg)


def print_config_summary(config: DictConfig) -> None:
    """
    Print a formatted summary of the configuration.

    Args:
        config: Hydra DictConfig to summarize
    """
    target = config.agent.get('target_update_freq', 0)
    print("=" * 60)
    print("CONFIGURATION SUMMARY")
    print("=" * 60)
    print(f"Environment: {config.env.env_id}")
    print(f"Agent:       dqn (lr={config.agent.learning_rate}, gamma={config.agent.gamma})")
    print(f"Target net:  {'every ' + str(target) + ' updates' if target else 'none (online bootstrap)'}")
    print(f"Steps:       {config.training.total_steps} (warm-up {config.training.warmup_steps})")
    print(f"Batch Size:  {config.training.batch_size}")
    print(f"Buffer:      {config.buffer.capacity}")
    print(f"Seed:        {config.seed}")
    print(f"Device:      {config.device}")
    print("=" * 60)
