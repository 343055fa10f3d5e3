"""Persistent storage of the CLI config file"""

import json
import logging
import os
import platform
from pathlib import Path
from typing import Optional

import settings
from .models import Config

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the config file cannot be read or written"""


class ConfigStore:
    """Reads and writes the CLI config with owner-only file permissions"""

    def __init__(self, config_file: Optional[str] = None):
        self._config_file = Path(config_file) if config_file else None

    def location(self) -> Path:
        """Get the config file path

        The RHOAS_CONFIG environment variable overrides the default location.
        """
        if self._config_file is not None:
            return self._config_file
        env_path = os.getenv(settings.CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)
        return settings.DEFAULT_CONFIG_DIR / settings.DEFAULT_CONFIG_FILENAME

    def _ensure_secure_directory(self, path: Path):
        """Create parent directory with secure permissions"""
        parent_dir = path.parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)
            if platform.system() != "Windows":
                os.chmod(parent_dir, 0o700)

    def load(self) -> Config:
        """Load the config file

        Returns:
            The stored config, or an empty config if the file does not exist

        Raises:
            ConfigError: If the file exists but cannot be read or parsed
        """
        path = self.location()
        if not path.exists():
            logger.debug(f"Config file {path} does not exist, using empty config")
            return Config()

        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"unable to parse config {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"unable to read config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"unable to parse config {path}: expected a JSON object")

        logger.debug(f"Loaded config from {path}")
        return Config.from_dict(data)

    def save(self, cfg: Config) -> None:
        """Save the config file

        Raises:
            ConfigError: If the file cannot be written
        """
        path = self.location()
        try:
            self._ensure_secure_directory(path)
            path.write_text(json.dumps(cfg.to_dict(), indent=2))
            if platform.system() != "Windows":
                os.chmod(path, 0o600)
        except OSError as e:
            raise ConfigError(f"unable to save config {path}: {e}") from e

        logger.debug(f"Saved config to {path}")

