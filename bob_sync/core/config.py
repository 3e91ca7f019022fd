"""
Configuration management for bob-sync.
"""

import os
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError
from .models import SyncConfig
from .paths import PathManager


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return PathManager().config_path


def load_config(config_path: Optional[str] = None) -> SyncConfig:
    """
    Load configuration from file or return defaults.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        SyncConfig object
    """
    if config_path is None:
        config_path = str(get_default_config_path())
    return SyncConfig.load_from_file(config_path)


def save_config(config: SyncConfig, config_path: Optional[str] = None):
    """
    Save configuration to file.

    Args:
        config: SyncConfig object to save
        config_path: Optional path to save to. Uses default if not provided.
    """
    if config_path is None:
        manager = PathManager()
        manager.ensure_directories()
        config_path = str(manager.config_path)

    config_dir = os.path.dirname(os.path.abspath(os.path.expanduser(config_path)))
    os.makedirs(config_dir, exist_ok=True)

    config.save_to_file(config_path)


def require_owner(config: SyncConfig, override: Optional[str] = None) -> str:
    """Return the owner uid to sync for, or raise ConfigurationError."""
    owner_uid = override or config.owner_uid
    if not owner_uid:
        raise ConfigurationError(
            "No owner uid configured. Set \"owner_uid\" in the config file "
            "or pass --owner."
        )
    return owner_uid


def get_log_dir() -> Path:
    """Get the log directory."""
    manager = PathManager()
    manager.ensure_directories()
    return manager.log_dir
