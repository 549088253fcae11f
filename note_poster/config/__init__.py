# note_poster/config/__init__.py
"""Configuration system for note-poster."""

from .loader import get_config_dir, get_config_path, load_config, redacted, save_config
from .schema import PosterConfig

__all__ = [
    "PosterConfig",
    "load_config",
    "save_config",
    "get_config_dir",
    "get_config_path",
    "redacted",
]
