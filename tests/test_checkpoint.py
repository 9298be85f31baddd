import pytest
import torch

from pong_dqn.utils.checkpoint import (
    CheckpointLoadError,
    load_checkpoint,
    load_training_history,
    save_checkpoint,
    save_training_history,
)


def test_history_round_trip(tmp_path):
    path = save_training_history(tmp_path / "history.pt", [0.5, 0.25], [-21.0, -19.0, -20.0])

    history = load_training_history(path)
    assert history == {'losses': [0.5, 0.25], 'episode_rewards': [-21.0, -19.0, -20.0]}


def test_save_creates_parent_directories(tmp_path):
    path = save_checkpoint(tmp_path / "a" / "b" / "ckpt.pt", {'weights': torch.ones(3)})
    assert path.exists()
    assert torch.equal(load_checkpoint(path)['weights'], torch.ones(3))


def test_missing_required_keys(tmp_path):
    path = save_checkpoint(tmp_path / "ckpt.pt", {'online_network': {}})
    with pytest.raises(CheckpointLoadError, match="optimizer"):
        load_checkpoint(path, required_keys=('online_network', 'optimizer'))


def test_non_dict_payload_rejected(tmp_path):
    path = tmp_path / "tensor.pt"
    torch.save(torch.zeros(2), path)
    with pytest.raises(CheckpointLoadError):
        load_checkpoint(path)
