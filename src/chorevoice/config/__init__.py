"""
Config package.

Exposes the environment-driven settings object and the domain constants
(core).
"""

from .config import config, ChoreVoiceConfig
from . import core

__all__ = ["config", "ChoreVoiceConfig", "core"]
