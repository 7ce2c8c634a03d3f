"""Configuration manager with hierarchy: .env → defaults.

This module provides a centralized way to access configuration values
that supports:
1. Infrastructure-as-code via environment variables and .env (always wins)
2. Sensible hardcoded defaults (the service works out of the box)

Usage:
    from sitebackup.lib.config_manager import config

    value = config.get("SITE_BACKUP_DATA_ROOT")
    mirrors = config.get_list("SITE_BACKUP_CONFIG_MIRRORS")
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from sitebackup.lib.defaults import DEFAULTS, SENSITIVE_KEYS, get_default

logger = logging.getLogger(__name__)


def _find_git_root(start_path: Optional[Path] = None) -> Path:
    """Walk up directory tree to find .git/ folder."""
    current = start_path or Path.cwd()
    current = current.resolve()

    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent

    raise FileNotFoundError("No .git directory found in any parent directory")


def _coerce_type(value: str, default: Any) -> Any:
    """Coerce string value to match the type of the default.

    Args:
        value: String value from the environment
        default: Default value (determines target type)

    Returns:
        Value coerced to appropriate type
    """
    if default is None:
        return value

    if isinstance(default, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(default, int):
        try:
            return int(value)
        except ValueError:
            return default
    if isinstance(default, float):
        try:
            return float(value)
        except ValueError:
            return default
    return value


class ConfigManager:
    """Manages configuration with .env → defaults hierarchy.

    The manager loads .env on initialization. Environment variables set
    before start-up are never overridden by the file.
    """

    def __init__(self, env_file: Optional[Path] = None):
        """Initialize the config manager and load .env.

        Args:
            env_file: Explicit .env path (defaults to git root, then cwd)
        """
        self._env_loaded = False
        self._env_file = env_file
        self._load_env()

    def _load_env(self) -> None:
        """Load .env file from git root or the working directory."""
        if self._env_loaded:
            return

        env_path = self._env_file
        if env_path is None:
            try:
                env_path = _find_git_root() / ".env"
            except FileNotFoundError:
                env_path = Path.cwd() / ".env"

        if env_path.exists():
            load_dotenv(dotenv_path=env_path, override=False)
            logger.debug(f"Loaded .env from {env_path}")
        else:
            logger.debug(f"No .env file found at {env_path}")

        self._env_loaded = True

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value (.env → defaults).

        Args:
            key: Configuration key
            default: Override default (uses DEFAULTS if not provided)

        Returns:
            Configuration value
        """
        env_value = os.getenv(key)
        if env_value is not None:
            default_val = default if default is not None else get_default(key)
            return _coerce_type(env_value, default_val)

        if default is not None:
            return default
        return get_default(key)

    def get_list(self, key: str) -> list[str]:
        """Get a comma separated config value as a list of stripped items."""
        raw = self.get(key) or ""
        return [item.strip() for item in str(raw).split(",") if item.strip()]

    def get_all_sync(self) -> dict[str, Any]:
        """Get all configuration values.

        Returns:
            Dictionary of all config keys and their resolved values
        """
        return {key: self.get(key) for key in DEFAULTS}

    def is_sensitive(self, key: str) -> bool:
        """Check if a key contains sensitive data."""
        return key in SENSITIVE_KEYS

    def mask_value(self, key: str, value: Any) -> str:
        """Mask sensitive values for display.

        Args:
            key: Configuration key
            value: Value to potentially mask

        Returns:
            Masked or original value as string
        """
        if not self.is_sensitive(key):
            return str(value)

        str_value = str(value)
        if not str_value:
            return ""
        if len(str_value) <= 8:
            return "*" * len(str_value)
        return str_value[:4] + "*" * (len(str_value) - 8) + str_value[-4:]


# Singleton instance
config = ConfigManager()