from pathlib import Path

import pytest
from omegaconf import OmegaConf

from pong_dqn.agents import DQNAgent
from pong_dqn.utils.config_schema import ConfigValidationError, validate_config
from pong_dqn.utils.factory import build_agent, build_buffer

DEFAULT_CONFIG = Path(__file__).parent.parent / "configs" / "default.yaml"


@pytest.fixture
def default_config():
    return OmegaConf.load(DEFAULT_CONFIG)


def test_default_config_is_valid(default_config):
    validate_config(default_config)


def test_small_config_is_valid(small_config):
    validate_config(small_config)


@pytest.mark.parametrize("key,value", [
    ("agent.learning_rate", 0.0),
    ("agent.gamma", 1.5),
    ("agent.epsilon_end", 1.1),
    ("agent.epsilon_decay", 0),
    ("agent.target_update_freq", -1),
    ("buffer.capacity", 0),
    ("training.total_steps", 0),
    ("training.warmup_steps", 16),
    ("env.frame_stack", 9),
    ("env.image_size", 32),
    ("logging.level", "LOUD"),
    ("device", "tpu"),
])
def test_invalid_values_rejected(default_config, key, value):
    OmegaConf.update(default_config, key, value)
    with pytest.raises(ConfigValidationError):
        validate_config(default_config)


def test_all_errors_reported_together(default_config):
    default_config.agent.gamma = 2.0
    default_config.buffer.capacity = 0
    with pytest.raises(ConfigValidationError) as excinfo:
        validate_config(default_config)

    message = str(excinfo.value)
    assert "[agent]" in message
    assert "[buffer]" in message


def test_epsilon_end_above_start_rejected(default_config):
    default_config.agent.epsilon_start = 0.1
    default_config.agent.epsilon_end = 0.5
    with pytest.raises(ConfigValidationError):
        validate_config(default_config)


def test_build_from_config(small_config):
    agent = build_agent(small_config, (2, 36, 36), 6)
    buffer = build_buffer(small_config, (2, 36, 36))

    assert isinstance(agent, DQNAgent)
    assert agent.learning_rate == small_config.agent.learning_rate
    assert buffer.capacity == small_config.buffer.capacity


def test_build_agent_rejects_mismatched_observation(small_config):
    with pytest.raises(ValueError):
        build_agent(small_config, (4, 84, 84), 6)
