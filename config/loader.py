"""Settings loader for the rhoas CLI

A setting is looked up in this order:
1. Process environment
2. .env file in the working directory (never overrides the environment)
3. The default passed by the caller, whose type also decides how the raw
   string is coerced
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes", "on")


class ConfigLoader:
    """Resolves RHOAS_* settings"""

    def __init__(self, env_path: Optional[str] = None):
        """
        Args:
            env_path: .env file to load, defaults to '.env' in the current directory
        """
        self.env_path = Path(env_path) if env_path else Path(".env")
        if self.env_path.is_file():
            load_dotenv(dotenv_path=self.env_path, override=False)
            logger.debug(f"Loaded settings from {self.env_path}")

    @staticmethod
    def _coerce(env_var: str, raw: str, default: Any) -> Any:
        # bool is checked first since it is a subclass of int
        if isinstance(default, bool):
            return raw.strip().lower() in TRUE_VALUES
        if isinstance(default, (int, float)):
            try:
                return type(default)(raw)
            except ValueError:
                logger.warning(f"Ignoring {env_var}={raw!r}, expected {type(default).__name__}; using {default}")
                return default
        return raw

    def get(self, env_var: str, default: Any) -> Any:
        """Get a setting

        Args:
            env_var: Environment variable name
            default: Value used when the variable is unset

        Returns:
            The environment value coerced to the type of default, or default
        """
        raw = os.getenv(env_var)
        if raw is None:
            return default
        return self._coerce(env_var, raw, default)

    def get_path(self, env_var: str, default: str) -> Path:
        """Get a filesystem path setting with ~ expanded

        An empty variable counts as unset.
        """
        raw = os.getenv(env_var) or default
        return Path(raw).expanduser()


_config_loader = None


def get_config_loader() -> ConfigLoader:
    """Get or create the global ConfigLoader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader
