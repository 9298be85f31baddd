"""
Atari environment wrappers.

Provides preprocessing for visual RL:
- Grayscale conversion
- Image resizing to 84x84
- Frame stacking (4 frames)
- Frame skipping
"""

from .atari_wrapper import (
    make_atari_env,
    wrap_atari,
    EnvironmentStepError,
    NoopResetWrapper,
    PreprocessWrapper,
    FrameStackWrapper,
    SkipFrameWrapper,
    ClipRewardWrapper,
    EpisodeInfoWrapper,
    ATARI_GAMES,
)

__all__ = [
    "make_atari_env",
    "wrap_atari",
    "EnvironmentStepError",
    "NoopResetWrapper",
    "PreprocessWrapper",
    "FrameStackWrapper",
    "SkipFrameWrapper",
    "ClipRewardWrapper",
    "EpisodeInfoWrapper",
    "ATARI_GAMES",
]
