"""
Checkpoint persistence.

This module provides:
- save_checkpoint / load_checkpoint: Training-state bundles (torch.save)
- save_training_history / load_training_history: Loss and reward histories
- CheckpointLoadError: Raised when a checkpoint cannot be restored
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import torch


class CheckpointLoadError(Exception):
    """Raised when a checkpoint is missing, unreadable or incompatible."""
    pass


def save_checkpoint(path: Union[str, Path], payload: Dict[str, Any]) -> Path:
    """
    Write a checkpoint bundle, overwriting any previous file at path.

    Args:
        path: Destination file
        payload: Picklable dict (state dicts, scalars, config)

    Returns:
        Path the checkpoint was written to
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    torch.save(payload, path)
    return path


def load_checkpoint(
    path: Union[str, Path],
    map_location: Optional[Union[str, torch.device]] = None,
    required_keys: Iterable[str] = ()
) -> Dict[str, Any]:
    """
    Read a checkpoint bundle.

    Args:
        path: Checkpoint file
        map_location: Device to map tensors onto
        required_keys: Keys that must be present in the bundle

    Returns:
        The stored dictionary

    Raises:
        CheckpointLoadError: If the file is missing, unreadable, or lacks
            one of required_keys
    """
    path = Path(path)
    if not path.exists():
        raise CheckpointLoadError(f"Checkpoint not found: {path}")

    try:
        checkpoint = torch.load(path, map_location=map_location)
    except Exception as e:
        raise CheckpointLoadError(f"Could not read checkpoint {path}: {e}") from e

    if not isinstance(checkpoint, dict):
        raise CheckpointLoadError(
            f"Checkpoint {path} has unexpected format: {type(checkpoint).__name__}"
        )

    missing = [k for k in required_keys if k not in checkpoint]
    if missing:
        raise CheckpointLoadError(f"Checkpoint {path} is missing keys: {missing}")

    return checkpoint


def save_training_history(
    path: Union[str, Path],
    losses: List[float],
    episode_rewards: List[float]
) -> Path:
    """Write loss and episode-reward histories for offline plotting."""
    return save_checkpoint(path, {
        'losses': [float(x) for x in losses],
        'episode_rewards': [float(x) for x in episode_rewards],
    })


def load_training_history(path: Union[str, Path]) -> Dict[str, List[float]]:
    """Read histories written by save_training_history."""
    history = load_checkpoint(path, required_keys=('losses', 'episode_rewards'))
    return {
        'losses': list(history['losses']),
        'episode_rewards': list(history['episode_rewards']),
    }
