#!/usr/bin/env python3
"""
Main training script for DQN on Atari Pong.

Uses Hydra for configuration management. Run with:
    python experiments/train.py
    python experiments/train.py training.total_steps=2000000 agent.target_update_freq=1000
    python experiments/train.py training.resume_from=results/.../checkpoints/checkpoint.pt
"""

import sys
import time
import json
import random
import hashlib
from datetime import datetime
from pathlib import Path
from typing import Dict, Any

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import hydra
from omegaconf import DictConfig, OmegaConf
import numpy as np
import torch

from pong_dqn.envs import make_atari_env
from pong_dqn.trainer import Trainer, CSV_FIELDS
from pong_dqn.utils.factory import build_agent, build_buffer
from pong_dqn.utils.logging import SafeCSVLogger, setup_logger
from pong_dqn.utils.plotting import plot_learning_curve, plot_training_metrics
from pong_dqn.utils.config_schema import validate_config, ConfigValidationError, print_config_summary


def set_seed(seed: int, env=None) -> Dict[str, Any]:
    """
    Set all random seeds for reproducibility.

    Args:
        seed: Master seed value
        env: Optional gymnasium environment for action space seeding

    Returns:
        Dictionary of all seed values set (for metadata storage)
    """
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)

    cuda_seeded = False
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)
        cuda_seeded = True

    env_seeded = False
    if env is not None:
        env.action_space.seed(seed)
        env.reset(seed=seed)
        env_seeded = True

    return {
        'master_seed': seed,
        'torch_cuda': seed if cuda_seeded else None,
        'env': seed if env_seeded else None,
    }


def create_run_directory(config: DictConfig) -> tuple:
    """
    Create a unique, timestamped run directory.

    Structure: results/YYYY-MM-DD/HH-MM-SS_env_params_seed/

    Returns:
        Tuple of (run_dir, run_name, run_id)
    """
    now = datetime.now()
    date_str = now.strftime("%Y-%m-%d")
    time_str = now.strftime("%H-%M-%S")

    env_short = (
        config.env.env_id.replace("ALE/", "").replace("NoFrameskip", "").split("-")[0]
    )

    params_parts = [f"lr{config.agent.learning_rate}"]
    if config.agent.gamma != 0.99:
        params_parts.append(f"g{config.agent.gamma}")
    if config.agent.get('target_update_freq', 0):
        params_parts.append(f"tgt{config.agent.target_update_freq}")
    params_str = "_".join(params_parts)

    run_name = f"dqn_{env_short}_{params_str}_seed{config.seed}"
    run_id = f"{date_str}_{time_str}_{run_name}"

    config_yaml = OmegaConf.to_yaml(config)
    config_hash = hashlib.md5(config_yaml.encode()).hexdigest()[:8]

    run_dir = Path(config.logging.get('output_dir', 'results')) / date_str / f"{time_str}_{run_name}"
    run_dir.mkdir(parents=True, exist_ok=True)
    (run_dir / "checkpoints").mkdir(exist_ok=True)
    (run_dir / "plots").mkdir(exist_ok=True)

    with open(run_dir / "config.yaml", 'w') as f:
        f.write(config_yaml)

    metadata = {
        'run_id': run_id,
        'run_name': run_name,
        'config_hash': config_hash,
        'start_time': now.isoformat(),
        'env_id': config.env.env_id,
        'frame_skip': config.env.frame_skip,
        'frame_stack': config.env.frame_stack,
        'learning_rate': config.agent.learning_rate,
        'gamma': config.agent.gamma,
        'epsilon_start': config.agent.epsilon_start,
        'epsilon_end': config.agent.epsilon_end,
        'epsilon_decay': config.agent.epsilon_decay,
        'target_update_freq': config.agent.get('target_update_freq', 0),
        'buffer_capacity': config.buffer.capacity,
        'seed': config.seed,
        'total_steps': config.training.total_steps,
        'batch_size': config.training.batch_size,
        'warmup_steps': config.training.warmup_steps,
    }
    with open(run_dir / "metadata.json", 'w') as f:
        json.dump(metadata, f, indent=2)

    return run_dir, run_name, run_id


@hydra.main(version_base=None, config_path="../configs", config_name="default")
def main(config: DictConfig) -> float:
    """
    Main training function.

    Args:
        config: Hydra configuration

    Returns:
        Mean reward of the last 10 episodes
    """
    try:
        validate_config(config)
    except ConfigValidationError as e:
        print(f"ERROR: {e}")
        return float('-inf')

    run_dir, run_name, run_id = create_run_directory(config)

    logger = setup_logger(
        name="pong_dqn.train",
        level=config.logging.get('level', 'INFO'),
        log_file=run_dir / "training.log",
        console=True
    )

    logger.info("=" * 60)
    logger.info(f"Run ID: {run_id}")
    logger.info(f"Run directory: {run_dir}")
    logger.info("=" * 60)

    print_config_summary(config)
    logger.debug("Full configuration:\n" + OmegaConf.to_yaml(config))

    set_seed(config.seed)

    env = make_atari_env(
        env_id=config.env.env_id,
        frame_skip=config.env.frame_skip,
        frame_stack=config.env.frame_stack,
        image_size=config.env.image_size,
        clip_rewards=config.env.clip_rewards,
        noop_max=config.env.get('noop_max', 30),
    )
    seed_info = set_seed(config.seed, env=env)

    state_shape = env.observation_space.shape
    num_actions = env.action_space.n
    logger.info(f"Environment: {config.env.env_id}")
    logger.info(f"State shape: {state_shape}, Actions: {num_actions}")

    agent = build_agent(config, state_shape, num_actions)
    buffer = build_buffer(config, state_shape)
    logger.info(f"Agent: {agent} on {agent.device}")
    logger.info(f"Buffer capacity: {config.buffer.capacity}")

    csv_logger = None
    if config.logging.csv_log:
        csv_logger = SafeCSVLogger(
            filepath=run_dir / "training_log.csv",
            fieldnames=CSV_FIELDS,
            flush_every=config.logging.get('flush_every', 10)
        )

    trainer = Trainer(
        env=env,
        agent=agent,
        buffer=buffer,
        config=config,
        run_dir=run_dir,
        logger=logger,
        csv_logger=csv_logger,
    )

    start_time = time.time()
    try:
        history = trainer.run()
        trainer.save_checkpoint()

        eval_metrics = {}
        eval_episodes = config.training.get('eval_episodes', 0)
        if eval_episodes:
            eval_metrics = trainer.evaluate(eval_episodes)
            logger.info(
                f"[EVAL] Mean: {eval_metrics['eval/reward_mean']:.2f} +/- "
                f"{eval_metrics['eval/reward_std']:.2f}"
            )
    finally:
        if csv_logger:
            csv_logger.close()
        env.close()

    total_time = time.time() - start_time
    final_avg_reward = (
        float(np.mean(history.episode_rewards[-10:])) if history.episode_rewards else float('nan')
    )

    logger.info("-" * 60)
    logger.info("Training complete!")
    logger.info(f"Total time: {total_time / 3600:.2f} hours")
    logger.info(f"Episodes: {len(history.episode_rewards)}")
    logger.info(f"Final avg reward (last 10): {final_avg_reward:.2f}")

    plot_learning_curve(
        history.episode_rewards,
        title=f"DQN on {config.env.env_id}",
        save_path=str(run_dir / "plots" / "learning_curve.png")
    )
    plot_training_metrics(
        {'loss': history.losses},
        title="Training loss",
        save_path=str(run_dir / "plots" / "loss.png")
    )

    summary = {
        'run_name': run_name,
        'run_id': run_id,
        'run_dir': str(run_dir),
        'total_time_hours': total_time / 3600,
        'total_steps': history.steps,
        'episodes': len(history.episode_rewards),
        'final_avg_reward_10': final_avg_reward,
        'last_loss': trainer.last_loss,
        'final_buffer_size': len(buffer),
        'seed_info': seed_info,
        **eval_metrics,
    }
    with open(run_dir / "summary.json", 'w') as f:
        json.dump(summary, f, indent=2)

    logger.info(f"All outputs saved to: {run_dir}")
    return final_avg_reward


if __name__ == "__main__":
    main()
