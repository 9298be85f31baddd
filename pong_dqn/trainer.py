"""
Step-driven DQN training loop.

The Trainer owns the environment, agent and replay buffer for a run
and advances them together one environment step at a time:

    reset -> act -> step -> buffer -> (update) -> (checkpoint) -> ...

Updates start once the buffer holds warmup_steps transitions. After
every checkpoint_freq completed steps (steps checkpoint_freq,
2 * checkpoint_freq, ...) the agent is checkpointed and a progress line
reporting the completed step count is logged. The loop stops after
total_steps environment steps, even in the middle of an episode.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import gymnasium as gym
import numpy as np
import torch
from omegaconf import DictConfig

from .agents.base import BaseAgent
from .agents.schedule import epsilon_by_step
from .envs.atari_wrapper import EnvironmentStepError
from .utils.checkpoint import save_training_history
from .utils.logging import SafeCSVLogger
from .utils.replay_buffer import InsufficientDataError, ReplayBuffer

CSV_FIELDS = [
    'episode', 'step', 'reward', 'length', 'loss', 'epsilon', 'buffer_size'
]


@dataclass
class TrainingHistory:
    """Loss and episode-reward histories collected during a run."""
    losses: List[float] = field(default_factory=list)
    episode_rewards: List[float] = field(default_factory=list)
    episode_lengths: List[int] = field(default_factory=list)
    steps: int = 0


class Trainer:
    """
    Training session for a single agent/environment pair.

    Args:
        env: Gymnasium environment yielding (C, H, W) observations
        agent: Agent with select_action/update/save/load
        buffer: Replay buffer sized for the environment observations
        config: Hydra config with `agent` and `training` sections
        run_dir: Directory for checkpoints and history
        logger: Logger for progress lines (defaults to "pong_dqn.train")
        csv_logger: Optional per-episode CSV sink

    Checkpoints are written after steps checkpoint_freq, 2 * checkpoint_freq,
    ... counted from 1, so a run of total_steps == checkpoint_freq ends with
    exactly one checkpoint.

    Example:
        >>> trainer = Trainer(env, agent, buffer, config, run_dir="results/run")
        >>> history = trainer.run()
    """

    def __init__(
        self,
        env: gym.Env,
        agent: BaseAgent,
        buffer: ReplayBuffer,
        config: DictConfig,
        run_dir: Union[str, Path],
        logger: Optional[logging.Logger] = None,
        csv_logger: Optional[SafeCSVLogger] = None
    ) -> None:
        self.env = env
        self.agent = agent
        self.buffer = buffer
        self.config = config
        self.run_dir = Path(run_dir)
        self.logger = logger or logging.getLogger("pong_dqn.train")
        self.csv_logger = csv_logger

        training = config.training
        self.total_steps = training.total_steps
        self.batch_size = training.batch_size
        self.warmup_steps = training.warmup_steps
        self.update_freq = training.get('update_freq', 1)
        self.checkpoint_freq = training.checkpoint_freq

        self.checkpoint_path = self.run_dir / "checkpoints" / "checkpoint.pt"
        self.history_path = self.run_dir / "history.pt"

        self.history = TrainingHistory()
        self.last_loss: Optional[float] = None
        self.step = 0

        obs_shape = tuple(env.observation_space.shape)
        if obs_shape != tuple(buffer.state_shape):
            raise ValueError(
                f"Environment observation shape {obs_shape} does not match "
                f"buffer state shape {tuple(buffer.state_shape)}"
            )
        if obs_shape != tuple(agent.state_shape):
            raise ValueError(
                f"Environment observation shape {obs_shape} does not match "
                f"network input shape {tuple(agent.state_shape)}"
            )

    # ------------------------------------------------------------------
    # Exploration
    # ------------------------------------------------------------------

    def epsilon(self, step: int) -> float:
        """Exploration rate at a given environment step."""
        return epsilon_by_step(
            step,
            epsilon_start=self.config.agent.epsilon_start,
            epsilon_end=self.config.agent.epsilon_end,
            epsilon_decay=self.config.agent.epsilon_decay,
        )

    # ------------------------------------------------------------------
    # Environment access
    # ------------------------------------------------------------------

    def _reset_env(self) -> np.ndarray:
        try:
            state, _ = self.env.reset()
        except Exception as e:
            raise EnvironmentStepError(f"Environment reset failed: {e}") from e
        return state

    def _step_env(self, action: int) -> Tuple[np.ndarray, float, bool, Dict[str, Any]]:
        try:
            next_state, reward, terminated, truncated, info = self.env.step(action)
        except Exception as e:
            raise EnvironmentStepError(
                f"Environment step failed at step {self.step} (action={action}): {e}"
            ) from e
        return next_state, float(reward), bool(terminated or truncated), info

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def train_step(self) -> Optional[Dict[str, float]]:
        """
        Sample one batch and apply one gradient update.

        Returns:
            Update metrics, or None when the buffer is still warming up
        """
        if len(self.buffer) < self.warmup_steps:
            return None

        try:
            batch = self.buffer.sample(self.batch_size)
        except InsufficientDataError as e:
            self.logger.debug(f"Skipping update: {e}")
            return None

        batch_tensors = {k: torch.from_numpy(v) for k, v in batch.items()}
        metrics = self.agent.update(batch_tensors)

        self.last_loss = metrics['loss']
        self.history.losses.append(metrics['loss'])
        return metrics

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def resume(self, path: Union[str, Path]) -> None:
        """
        Restore agent weights, optimizer state and last loss.

        Raises:
            CheckpointLoadError: If the checkpoint does not fit the agent
        """
        self.last_loss = self.agent.load(str(path))
        self.logger.info(f"Resumed from checkpoint: {path} (last loss: {self._fmt(self.last_loss)})")

    def save_checkpoint(self) -> Path:
        """Overwrite the run checkpoint with the current training state."""
        self.agent.save(str(self.checkpoint_path), loss=self.last_loss)
        if self.csv_logger:
            self.csv_logger.flush()
        return self.checkpoint_path

    def save_history(self) -> Path:
        """Write loss and reward histories for offline analysis."""
        return save_training_history(
            self.history_path,
            losses=self.history.losses,
            episode_rewards=self.history.episode_rewards,
        )

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self) -> TrainingHistory:
        """
        Run the training loop for total_steps environment steps.

        Returns:
            The collected training history (also written to history.pt)
        """
        resume_from = self.config.training.get('resume_from', None)
        if resume_from:
            self.resume(resume_from)

        state = self._reset_env()
        episode_reward = 0.0
        episode_length = 0

        self.logger.info(
            f"Training for {self.total_steps} steps "
            f"(warm-up {self.warmup_steps}, checkpoint every {self.checkpoint_freq})"
        )

        for step in range(self.total_steps):
            self.step = step
            epsilon = self.epsilon(step)

            action = self.agent.select_action(state, exploration_rate=epsilon)
            next_state, reward, done, _ = self._step_env(action)

            self.buffer.push(state, action, reward, next_state, done)

            state = next_state
            episode_reward += reward
            episode_length += 1

            if done:
                self._end_episode(episode_reward, episode_length, epsilon)
                state = self._reset_env()
                episode_reward = 0.0
                episode_length = 0

            if step % self.update_freq == 0:
                self.train_step()

            if (step + 1) % self.checkpoint_freq == 0:
                self.save_checkpoint()
                self._log_progress(step + 1, epsilon)

        self.history.steps = self.total_steps
        self.save_history()

        self.logger.info(
            f"Training finished after {self.total_steps} steps, "
            f"{len(self.history.episode_rewards)} episodes"
        )
        return self.history

    def evaluate(
        self,
        num_episodes: int,
        max_steps_per_episode: Optional[int] = None
    ) -> Dict[str, float]:
        """
        Play greedy episodes without storing transitions or updating.

        Args:
            num_episodes: Number of evaluation episodes
            max_steps_per_episode: Optional cap on episode length

        Returns:
            Dictionary of evaluation metrics
        """
        rewards = []
        lengths = []

        self.agent.set_training_mode(False)
        try:
            for _ in range(num_episodes):
                state = self._reset_env()
                episode_reward = 0.0
                episode_length = 0

                done = False
                while not done:
                    action = self.agent.select_action(state, exploration_rate=0.0)
                    state, reward, done, _ = self._step_env(action)
                    episode_reward += reward
                    episode_length += 1
                    if max_steps_per_episode and episode_length >= max_steps_per_episode:
                        break

                rewards.append(episode_reward)
                lengths.append(episode_length)
        finally:
            self.agent.set_training_mode(True)

        return {
            'eval/reward_mean': float(np.mean(rewards)),
            'eval/reward_std': float(np.std(rewards)),
            'eval/reward_min': float(np.min(rewards)),
            'eval/reward_max': float(np.max(rewards)),
            'eval/length_mean': float(np.mean(lengths)),
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _end_episode(self, episode_reward: float, episode_length: int, epsilon: float) -> None:
        self.history.episode_rewards.append(episode_reward)
        self.history.episode_lengths.append(episode_length)
        episode = len(self.history.episode_rewards)

        self.logger.debug(
            f"Episode {episode:5d} | Reward: {episode_reward:7.2f} | "
            f"Length: {episode_length:5d} | Eps: {epsilon:.3f}"
        )

        if self.csv_logger:
            self.csv_logger.log({
                'episode': episode,
                'step': self.step,
                'reward': episode_reward,
                'length': episode_length,
                'loss': self.last_loss,
                'epsilon': epsilon,
                'buffer_size': len(self.buffer),
            })

    def _log_progress(self, step: int, epsilon: float) -> None:
        last_reward = self.history.episode_rewards[-1] if self.history.episode_rewards else None
        self.logger.info(
            f"Step {step:8d}/{self.total_steps} | "
            f"Reward: {self._fmt(last_reward, '7.2f')} | "
            f"Loss: {self._fmt(self.last_loss, '.4f')} | "
            f"Eps: {epsilon:.3f} | "
            f"Buffer: {len(self.buffer):6d}"
        )

    @staticmethod
    def _fmt(value: Optional[float], spec: str = '.4f') -> str:
        return "n/a" if value is None else format(value, spec)
