import logging
import re

import pytest
import numpy as np
import torch

from pong_dqn.envs import EnvironmentStepError
from pong_dqn.trainer import CSV_FIELDS, Trainer
from pong_dqn.utils.checkpoint import CheckpointLoadError, load_training_history
from pong_dqn.utils.factory import build_agent, build_buffer
from pong_dqn.utils.logging import SafeCSVLogger
from pong_dqn.utils.replay_buffer import ReplayBuffer
from tests.fakes import make_small_env


def make_trainer(config, run_dir, env=None, **kwargs):
    env = env or make_small_env()
    shape = env.observation_space.shape
    agent = build_agent(config, shape, env.action_space.n)
    buffer = build_buffer(config, shape)
    return Trainer(env, agent, buffer, config, run_dir=run_dir, **kwargs)


@pytest.fixture(autouse=True)
def seeded():
    np.random.seed(0)
    torch.manual_seed(0)


class TestTrainingLoop:

    def test_updates_start_after_warmup(self, small_config, tmp_path):
        trainer = make_trainer(small_config, tmp_path)
        history = trainer.run()

        # buffer reaches 8 transitions at step 7, then one update per step
        assert len(history.losses) == 40 - 7
        assert trainer.agent.update_count == 33
        assert all(0.0 <= loss <= 1.0 for loss in history.losses)
        assert history.steps == 40

    def test_episode_rewards_recorded_and_last_episode_truncated(self, small_config, tmp_path):
        small_config.training.total_steps = 50
        trainer = make_trainer(small_config, tmp_path)
        history = trainer.run()

        # 20-step episodes paying +1 every 5 steps; step 40-49 is cut off
        assert history.episode_rewards == [4.0, 4.0]
        assert history.episode_lengths == [20, 20]

    def test_buffer_never_exceeds_capacity(self, small_config, tmp_path):
        small_config.buffer.capacity = 16
        trainer = make_trainer(small_config, tmp_path)
        trainer.run()
        assert len(trainer.buffer) == 16

    def test_warmup_longer_than_run_never_updates(self, small_config, tmp_path):
        small_config.training.total_steps = 5000
        small_config.training.warmup_steps = 10000
        small_config.training.checkpoint_freq = 10000
        small_config.buffer.capacity = 10000
        small_config.agent.epsilon_start = 1.0
        small_config.agent.epsilon_end = 1.0

        trainer = make_trainer(small_config, tmp_path)
        history = trainer.run()

        assert history.losses == []
        assert trainer.agent.update_count == 0
        assert trainer.last_loss is None
        assert not trainer.checkpoint_path.exists()

    def test_train_step_skipped_while_warming_up(self, small_config, tmp_path):
        trainer = make_trainer(small_config, tmp_path)
        assert trainer.train_step() is None

    def test_train_step_skipped_when_batch_exceeds_buffer(self, small_config, tmp_path):
        # warm-up shorter than a batch is rejected by validate_config, not by Trainer
        small_config.training.warmup_steps = 2
        small_config.training.batch_size = 4
        trainer = make_trainer(small_config, tmp_path)

        state = trainer._reset_env()
        for _ in range(2):
            next_state, reward, done, _ = trainer._step_env(0)
            trainer.buffer.push(state, 0, reward, next_state, done)
            state = next_state

        assert trainer.train_step() is None
        assert trainer.agent.update_count == 0
        assert trainer.last_loss is None
        assert trainer.history.losses == []

    def test_update_freq_thins_updates(self, small_config, tmp_path):
        small_config.training.update_freq = 4
        trainer = make_trainer(small_config, tmp_path)
        history = trainer.run()

        expected = len([s for s in range(40) if s >= 7 and s % 4 == 0])
        assert len(history.losses) == expected


class TestPersistence:

    def test_checkpoint_and_history_written(self, small_config, tmp_path):
        trainer = make_trainer(small_config, tmp_path)
        history = trainer.run()

        assert trainer.checkpoint_path == tmp_path / "checkpoints" / "checkpoint.pt"
        assert trainer.checkpoint_path.exists()

        saved = load_training_history(tmp_path / "history.pt")
        assert saved['losses'] == pytest.approx(history.losses)
        assert saved['episode_rewards'] == history.episode_rewards

    def test_checkpoint_stores_last_loss(self, small_config, tmp_path):
        trainer = make_trainer(small_config, tmp_path)
        trainer.run()
        trainer.save_checkpoint()

        fresh = make_trainer(small_config, tmp_path / "other")
        fresh.resume(trainer.checkpoint_path)
        assert fresh.last_loss == pytest.approx(trainer.last_loss)

    def test_run_resumes_from_configured_checkpoint(self, small_config, tmp_path):
        first = make_trainer(small_config, tmp_path)
        first.run()
        saved_weights = {
            name: tensor.clone() for name, tensor in first.agent.online_network.state_dict().items()
        }

        # shorter than warm-up so the restored weights are not updated again
        small_config.training.resume_from = str(first.checkpoint_path)
        small_config.training.total_steps = 5
        second = make_trainer(small_config, tmp_path / "other")
        history = second.run()

        assert history.steps == 5
        assert second.last_loss == pytest.approx(first.last_loss)
        assert second.agent.update_count == first.agent.update_count
        for name, tensor in second.agent.online_network.state_dict().items():
            assert torch.equal(tensor, saved_weights[name])

    def test_resume_from_incompatible_checkpoint_is_fatal(self, small_config, tmp_path):
        trainer = make_trainer(small_config, tmp_path)
        trainer.save_checkpoint()

        small_config.training.resume_from = str(trainer.checkpoint_path)
        other = make_trainer(small_config, tmp_path / "other", env=make_small_env(num_actions=3))
        with pytest.raises(CheckpointLoadError, match="does not match"):
            other.run()
        assert other.env.unwrapped.total_steps == 0

    @pytest.mark.parametrize("checkpoint_freq,written", [(40, True), (41, False)])
    def test_checkpoint_after_completed_steps(self, small_config, tmp_path, checkpoint_freq, written):
        small_config.training.checkpoint_freq = checkpoint_freq
        trainer = make_trainer(small_config, tmp_path)
        trainer.run()
        assert trainer.checkpoint_path.exists() == written

    def test_progress_line_reports_step_reward_and_loss(self, small_config, tmp_path, caplog):
        logger = logging.getLogger("pong_dqn.tests.progress")
        caplog.set_level(logging.INFO, logger=logger.name)
        trainer = make_trainer(small_config, tmp_path, logger=logger)
        trainer.run()

        progress = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Step")]
        assert len(progress) == 4
        assert re.match(r"Step\s+10/40 \| Reward:\s+n/a \|", progress[0])

        last = progress[-1]
        assert re.match(r"Step\s+40/40 \| Reward:\s+4\.00 \|", last)
        assert f"Loss: {trainer.last_loss:.4f}" in last

    def test_csv_rows_per_episode(self, small_config, tmp_path):
        csv_path = tmp_path / "training_log.csv"
        with SafeCSVLogger(csv_path, CSV_FIELDS) as csv_logger:
            trainer = make_trainer(small_config, tmp_path, csv_logger=csv_logger)
            trainer.run()

        lines = csv_path.read_text().strip().splitlines()
        assert lines[0] == ",".join(CSV_FIELDS)
        assert len(lines) == 1 + 2


class TestFailures:

    def test_environment_failure_propagates(self, small_config, tmp_path):
        trainer = make_trainer(small_config, tmp_path, env=make_small_env(fail_at_step=5))
        with pytest.raises(EnvironmentStepError):
            trainer.run()
        assert not (tmp_path / "history.pt").exists()

    def test_shape_mismatch_rejected(self, small_config, tmp_path):
        env = make_small_env()
        agent = build_agent(small_config, env.observation_space.shape, env.action_space.n)
        buffer = ReplayBuffer(10, (4, 36, 36))
        with pytest.raises(ValueError):
            Trainer(env, agent, buffer, small_config, run_dir=tmp_path)


class TestEvaluate:

    def test_greedy_evaluation(self, small_config, tmp_path):
        trainer = make_trainer(small_config, tmp_path)
        metrics = trainer.evaluate(num_episodes=2)

        assert metrics['eval/reward_mean'] == 4.0
        assert metrics['eval/length_mean'] == 20.0
        assert len(trainer.buffer) == 0
        assert trainer.agent.online_network.training

    def test_epsilon_follows_schedule(self, small_config, tmp_path):
        trainer = make_trainer(small_config, tmp_path)
        assert trainer.epsilon(0) == pytest.approx(1.0)
        assert trainer.epsilon(10_000) == pytest.approx(0.1)
