"""
Atari environment wrappers for visual reinforcement learning.

This module provides Gymnasium wrappers for preprocessing:
- NoopResetWrapper: Random number of no-ops after reset
- SkipFrameWrapper: Action repeat with reward accumulation
- PreprocessWrapper: Grayscale conversion and resizing
- FrameStackWrapper: Stack consecutive frames for temporal info
- ClipRewardWrapper: Clip rewards to [-1, 1]
- EpisodeInfoWrapper: Episode return/length in info

Factory functions:
- wrap_atari: Apply the preprocessing stack to any image environment
- make_atari_env: Create a fully preprocessed ALE environment
"""

import logging
from collections import deque
from typing import Tuple, Optional, Dict, Any

import cv2
import gymnasium as gym
import numpy as np

logger = logging.getLogger("pong_dqn.envs")

# Register ALE environments with gymnasium
try:
    import ale_py

    gym.register_envs(ale_py)
except ImportError:
    logger.warning(
        "Could not import ale_py. Atari environments will not be registered."
    )


class EnvironmentStepError(Exception):
    """Raised when the environment fails to reset or step."""
    pass


# Atari games with their characteristics
ATARI_GAMES = {
    'PongNoFrameskip-v4': {
        'description': 'Pong, first to 21 points; reward +1/-1 per point',
        'actions': 6,
        'reward_range': (-21, 21),
    },
    'ALE/Pong-v5': {
        'description': 'Pong (v5 defaults: sticky actions)',
        'actions': 6,
        'reward_range': (-21, 21),
    },
    'BreakoutNoFrameskip-v4': {
        'description': 'Breakout, break bricks with the ball',
        'actions': 4,
        'reward_range': (0, 864),
    },
}


class NoopResetWrapper(gym.Wrapper):
    """
    Execute a random number of no-op actions after reset.

    Varies the initial state so the agent does not memorise a single
    opening sequence.

    Args:
        env: Gymnasium environment to wrap
        noop_max: Maximum number of no-ops (action 0)
    """

    def __init__(self, env: gym.Env, noop_max: int = 30) -> None:
        super().__init__(env)
        self.noop_max = noop_max

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        obs, info = self.env.reset(seed=seed, options=options)

        noops = int(self.np_random.integers(1, self.noop_max + 1))
        for _ in range(noops):
            obs, _, terminated, truncated, info = self.env.step(0)
            if terminated or truncated:
                obs, info = self.env.reset()

        return obs, info


class SkipFrameWrapper(gym.Wrapper):
    """
    Skip frames (action repeat) with reward accumulation.

    The returned frame is the pixel-wise max over the last two raw frames,
    which removes the flicker of sprites drawn on alternate frames.

    Args:
        env: Gymnasium environment to wrap
        skip: Number of frames to repeat the action for
    """

    def __init__(self, env: gym.Env, skip: int = 4) -> None:
        super().__init__(env)
        self.skip = skip

    def step(
        self,
        action: int
    ) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        """Execute action for skip frames, accumulating reward."""
        total_reward = 0.0
        terminated = False
        truncated = False
        last_frames: deque = deque(maxlen=2)

        for _ in range(self.skip):
            obs, reward, terminated, truncated, info = self.env.step(action)
            last_frames.append(obs)
            total_reward += reward

            if terminated or truncated:
                break

        obs = np.max(np.stack(last_frames), axis=0)
        return obs, total_reward, terminated, truncated, info


class PreprocessWrapper(gym.ObservationWrapper):
    """
    Preprocess Atari frames for neural network input.

    Processing steps:
    1. Convert to grayscale (if RGB)
    2. Resize to target dimensions (default 84x84)

    Output stays uint8 in [0, 255]; QNetwork scales it to [0, 1].

    Args:
        env: Gymnasium environment to wrap
        width: Target image width
        height: Target image height

    Note:
        Output observation is a 2D array (H, W), not 3D.
        Use with FrameStackWrapper to add channel dimension.
    """

    def __init__(
        self,
        env: gym.Env,
        width: int = 84,
        height: int = 84
    ) -> None:
        super().__init__(env)

        self.width = width
        self.height = height

        self.observation_space = gym.spaces.Box(
            low=0,
            high=255,
            shape=(height, width),
            dtype=np.uint8
        )

    def observation(self, obs) -> np.ndarray:
        """
        Process a single observation frame.

        Args:
            obs: Raw frame, (H, W, 3) RGB, (H, W, 1) or (H, W)

        Returns:
            Preprocessed frame (height, width) as uint8
        """
        obs = np.asarray(obs, dtype=np.uint8)

        if obs.ndim == 3:
            if obs.shape[2] == 3:
                obs = cv2.cvtColor(obs, cv2.COLOR_RGB2GRAY)
            elif obs.shape[2] == 1:
                obs = obs.squeeze(-1)

        obs = cv2.resize(
            obs,
            (self.width, self.height),
            interpolation=cv2.INTER_AREA
        )

        return obs.astype(np.uint8)


class FrameStackWrapper(gym.Wrapper):
    """
    Stack consecutive frames for temporal information.

    Maintains a deque of recent frames and returns them stacked
    as a single observation. This lets the agent perceive the
    ball's direction and speed.

    Args:
        env: Gymnasium environment to wrap
        n_frames: Number of frames to stack (default 4)

    Output shape: (n_frames, H, W)
    """

    def __init__(self, env: gym.Env, n_frames: int = 4) -> None:
        super().__init__(env)

        self.n_frames = n_frames
        self.frames: deque = deque(maxlen=n_frames)

        old_space = env.observation_space
        low = np.repeat(old_space.low[np.newaxis, ...], n_frames, axis=0)
        high = np.repeat(old_space.high[np.newaxis, ...], n_frames, axis=0)

        self.observation_space = gym.spaces.Box(
            low=low,
            high=high,
            dtype=old_space.dtype
        )

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        """Reset environment and fill the frame stack with the first frame."""
        obs, info = self.env.reset(seed=seed, options=options)

        for _ in range(self.n_frames):
            self.frames.append(obs)

        return self._get_observation(), info

    def step(
        self,
        action: int
    ) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        obs, reward, terminated, truncated, info = self.env.step(action)
        self.frames.append(obs)
        return self._get_observation(), reward, terminated, truncated, info

    def _get_observation(self) -> np.ndarray:
        return np.array(self.frames, dtype=self.observation_space.dtype)


class ClipRewardWrapper(gym.RewardWrapper):
    """Clip rewards to [-1, 1] range."""

    def reward(self, reward: float) -> float:
        return float(np.clip(reward, -1.0, 1.0))


class EpisodeInfoWrapper(gym.Wrapper):
    """
    Track episode statistics (length, return).

    Adds 'episode' key to info dict at episode end with:
    - 'r': Total episode return
    - 'l': Episode length

    Args:
        env: Gymnasium environment to wrap
    """

    def __init__(self, env: gym.Env) -> None:
        super().__init__(env)
        self.episode_return = 0.0
        self.episode_length = 0

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        self.episode_return = 0.0
        self.episode_length = 0
        return self.env.reset(seed=seed, options=options)

    def step(
        self,
        action: int
    ) -> Tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        obs, reward, terminated, truncated, info = self.env.step(action)

        self.episode_return += reward
        self.episode_length += 1

        if terminated or truncated:
            info['episode'] = {
                'r': self.episode_return,
                'l': self.episode_length
            }

        return obs, reward, terminated, truncated, info


def wrap_atari(
    env: gym.Env,
    frame_skip: int = 4,
    frame_stack: int = 4,
    image_size: int = 84,
    clip_rewards: bool = False,
    noop_max: int = 30,
    episode_info: bool = True
) -> gym.Env:
    """
    Apply the standard Atari preprocessing stack to an image environment.

    Wrappers (in order):
    1. NoopResetWrapper (if noop_max > 0)
    2. SkipFrameWrapper (if frame_skip > 1)
    3. PreprocessWrapper
    4. FrameStackWrapper
    5. ClipRewardWrapper (optional)
    6. EpisodeInfoWrapper (optional)

    Returns:
        Wrapped environment with observations of shape
        (frame_stack, image_size, image_size), dtype uint8
    """
    if noop_max > 0:
        env = NoopResetWrapper(env, noop_max=noop_max)

    if frame_skip > 1:
        env = SkipFrameWrapper(env, skip=frame_skip)

    env = PreprocessWrapper(env, width=image_size, height=image_size)
    env = FrameStackWrapper(env, n_frames=frame_stack)

    if clip_rewards:
        env = ClipRewardWrapper(env)

    if episode_info:
        env = EpisodeInfoWrapper(env)

    return env


def make_atari_env(
    env_id: str = "PongNoFrameskip-v4",
    frame_skip: int = 4,
    frame_stack: int = 4,
    image_size: int = 84,
    clip_rewards: bool = False,
    noop_max: int = 30,
    episode_info: bool = True,
    render_mode: Optional[str] = None
) -> gym.Env:
    """
    Create a fully preprocessed Atari Gymnasium environment.

    Args:
        env_id: ALE environment ID (e.g., 'PongNoFrameskip-v4')
        frame_skip: Number of frames to repeat each action
        frame_stack: Number of frames to stack
        image_size: Size of square observation image
        clip_rewards: Whether to clip rewards to [-1, 1]
        noop_max: Max random no-ops after reset (0 disables)
        episode_info: Whether to track episode statistics
        render_mode: 'human' for visualization, None for headless

    Returns:
        Preprocessed Gymnasium environment

    Example:
        >>> env = make_atari_env('PongNoFrameskip-v4')
        >>> obs, info = env.reset()
        >>> print(obs.shape)  # (4, 84, 84)

    Raises:
        EnvironmentStepError: If the environment cannot be created
    """
    if env_id not in ATARI_GAMES:
        logger.warning(f"Environment '{env_id}' not in known list: {list(ATARI_GAMES)}")

    # Frame skipping is done by SkipFrameWrapper; v5 ids skip by default
    make_kwargs: Dict[str, Any] = {}
    if env_id.startswith("ALE/"):
        make_kwargs['frameskip'] = 1

    try:
        env = gym.make(env_id, render_mode=render_mode, **make_kwargs)
    except gym.error.Error as e:
        raise EnvironmentStepError(f"Could not create environment '{env_id}': {e}") from e

    return wrap_atari(
        env,
        frame_skip=frame_skip,
        frame_stack=frame_stack,
        image_size=image_size,
        clip_rewards=clip_rewards,
        noop_max=noop_max,
        episode_info=episode_info,
    )
