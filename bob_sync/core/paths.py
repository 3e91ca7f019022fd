"""
Path resolution for bob-sync configuration and log files.
"""

import os
import sys
from pathlib import Path
from typing import Optional
import logging


class PathManager:
    """Resolves the bob-sync working directory and the files inside it."""

    APP_DIR_NAME = "bob-sync"
    HOME_ENV_VAR = "BOB_SYNC_HOME"

    CONFIG_FILE = "config.json"
    LOG_FILE = "bob-sync.log"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._working_dir: Optional[Path] = None

    def _default_user_dir(self) -> Path:
        """Platform-appropriate per-user data directory."""
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / self.APP_DIR_NAME
        if sys.platform.startswith("win"):
            appdata = os.environ.get("APPDATA")
            if appdata:
                return Path(appdata) / self.APP_DIR_NAME
            return Path.home() / "AppData" / "Roaming" / self.APP_DIR_NAME
        return Path.home() / ".config" / self.APP_DIR_NAME

    @property
    def working_dir(self) -> Path:
        """
        Get the working directory for bob-sync data.

        Priority order:
        1. BOB_SYNC_HOME environment variable (explicit override)
        2. Platform user data directory
        """
        if self._working_dir is not None:
            return self._working_dir

        env_override = os.environ.get(self.HOME_ENV_VAR)
        if env_override:
            self._working_dir = Path(env_override).expanduser().resolve()
            self.logger.debug(f"Using {self.HOME_ENV_VAR} override: {self._working_dir}")
        else:
            self._working_dir = self._default_user_dir()
        return self._working_dir

    @property
    def log_dir(self) -> Path:
        return self.working_dir / "logs"

    @property
    def config_path(self) -> Path:
        return self.working_dir / self.CONFIG_FILE

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.LOG_FILE

    def ensure_directories(self) -> None:
        """Ensure the working and log directories exist."""
        for directory in (self.working_dir, self.log_dir):
            directory.mkdir(parents=True, exist_ok=True)
