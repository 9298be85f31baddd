"""Shared test fixtures."""

import pytest
from omegaconf import OmegaConf

from tests.fakes import make_small_env


@pytest.fixture
def small_env():
    return make_small_env()


@pytest.fixture
def small_config():
    return OmegaConf.create({
        'seed': 0,
        'device': 'cpu',
        'env': {
            'env_id': 'PongNoFrameskip-v4',
            'frame_skip': 1,
            'frame_stack': 2,
            'image_size': 36,
            'clip_rewards': False,
            'noop_max': 0,
        },
        'agent': {
            'learning_rate': 0.001,
            'gamma': 0.99,
            'epsilon_start': 1.0,
            'epsilon_end': 0.1,
            'epsilon_decay': 100,
            'target_update_freq': 0,
            'grad_clip': 10.0,
            'loss_clip': 1.0,
        },
        'buffer': {'capacity': 100},
        'training': {
            'total_steps': 40,
            'batch_size': 4,
            'warmup_steps': 8,
            'update_freq': 1,
            'checkpoint_freq': 10,
            'eval_episodes': 0,
            'resume_from': None,
        },
        'logging': {'level': 'INFO', 'csv_log': False, 'flush_every': 10},
    })
