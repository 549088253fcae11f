# note_poster/config/loader.py
"""
Configuration loading and saving with auto-creation of defaults.

Uses platformdirs for cross-platform config directory management.
"""

import logging
from pathlib import Path

import yaml
from platformdirs import user_config_path

from .schema import PosterConfig

logger = logging.getLogger(__name__)

APP_NAME = "note-poster"

_SECRET_SUFFIX = "_api_key"


def get_config_dir() -> Path:
    """Config directory, created on first use."""
    return user_config_path(APP_NAME, ensure_exists=True)


def get_config_path() -> Path:
    """Get path to config file, ensuring config directory exists."""
    return get_config_dir() / "config.yaml"


def save_config(config: PosterConfig, path: Path | None = None) -> Path:
    """Write ``config`` to YAML and return the path written."""
    config_path = path or get_config_path()
    with config_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)
    logger.info(f"Saved config to {config_path}")
    return config_path


def load_config(path: Path | None = None) -> PosterConfig:
    """
    Load configuration from YAML file.

    If the file doesn't exist, creates it with defaults. Stored values are
    merged over the defaults, so keys missing from the file keep their
    default. Returns a validated Pydantic model.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        default_config = PosterConfig()
        save_config(default_config, config_path)
        logger.info(f"Created default config at {config_path}")
        return default_config

    with config_path.open("r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    config = PosterConfig(**config_data)
    logger.info(f"Loaded config from {config_path}")
    return config


def redacted(config: PosterConfig) -> dict:
    """Config as a dict with API keys masked, for display."""
    data = config.model_dump(mode="json")
    for key, value in data.items():
        if key.endswith(_SECRET_SUFFIX) and value:
            data[key] = f"{value[:4]}…{value[-2:]}" if len(value) > 8 else "****"
    return data
