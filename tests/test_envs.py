import numpy as np

from pong_dqn.envs import (
    ClipRewardWrapper,
    EpisodeInfoWrapper,
    FrameStackWrapper,
    PreprocessWrapper,
    SkipFrameWrapper,
    wrap_atari,
)
from tests.fakes import FakePongEnv


class TestPreprocessing:

    def test_full_stack_produces_stacked_84x84_uint8(self):
        env = wrap_atari(FakePongEnv(), frame_skip=4, frame_stack=4, noop_max=0)

        obs, _ = env.reset(seed=0)
        assert env.observation_space.shape == (4, 84, 84)
        assert obs.shape == (4, 84, 84)
        assert obs.dtype == np.uint8

        obs, reward, terminated, truncated, _ = env.step(0)
        assert obs.shape == (4, 84, 84)

    def test_grayscale_resize_keeps_intensity(self):
        env = PreprocessWrapper(FakePongEnv(), width=84, height=84)
        env.reset(seed=0)
        obs, *_ = env.step(0)

        assert obs.shape == (84, 84)
        # Uniform grey frame at step 1 has brightness 10
        assert np.all(obs == 10)

    def test_frame_stack_fills_with_first_frame_on_reset(self):
        env = FrameStackWrapper(PreprocessWrapper(FakePongEnv()), n_frames=3)
        obs, _ = env.reset(seed=0)
        assert np.all(obs == 0)

        obs, *_ = env.step(0)
        assert obs[:2].max() == 0
        assert np.all(obs[2] == 10)


class TestStepWrappers:

    def test_skip_frame_accumulates_reward(self):
        env = SkipFrameWrapper(FakePongEnv(reward_every=2), skip=4)
        env.reset(seed=0)
        _, reward, terminated, _, _ = env.step(0)

        assert reward == 2.0
        assert not terminated
        assert env.unwrapped.total_steps == 4

    def test_skip_frame_stops_at_episode_end(self):
        env = SkipFrameWrapper(FakePongEnv(episode_length=3), skip=4)
        env.reset(seed=0)
        _, _, terminated, _, _ = env.step(0)

        assert terminated
        assert env.unwrapped.total_steps == 3

    def test_clip_reward(self):
        env = ClipRewardWrapper(SkipFrameWrapper(FakePongEnv(reward_every=1), skip=4))
        env.reset(seed=0)
        _, reward, *_ = env.step(0)
        assert reward == 1.0

    def test_episode_info_on_termination(self):
        env = EpisodeInfoWrapper(FakePongEnv(episode_length=10, reward_every=5))
        env.reset(seed=0)

        info = {}
        terminated = False
        while not terminated:
            _, _, terminated, _, info = env.step(1)

        assert info['episode'] == {'r': 2.0, 'l': 10}

    def test_noop_reset_advances_emulator(self):
        env = wrap_atari(FakePongEnv(), frame_skip=1, frame_stack=2, noop_max=5)
        env.reset(seed=123)
        assert 1 <= env.unwrapped.total_steps <= 5
