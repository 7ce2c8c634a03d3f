"""Configuration for the backup service."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sitebackup.lib.config_manager import ConfigManager, config as default_manager

BUNDLED_DEFAULT_CONFIG = Path(__file__).with_name("default_config.yaml")

DEFAULT_STORE_NAME = "_site_backups"
DEFAULT_CONFIG_NAME = "config.yaml"
DEFAULT_RETENTION_DAYS = 30

# Survive a clear-mode restore unless overridden
DEFAULT_PROTECTED_PATHS = (
    ".git",
    "node_modules",
    "package.json",
    "package-lock.json",
    "public",
    "src",
)


@dataclass
class BackupConfig:
    """Configuration for the backup subsystem.

    Attributes:
        data_root: Directory tree holding all persistent application state
        store_name: Name of the Backup Store directory directly under data_root
        config_path: Primary location of the external configuration document
        config_mirrors: Secondary persistence locations of the same document
            (None = <data_root>/<config file name>, [] = no mirrors)
        default_config_path: Bundled fallback document (None = packaged default)
        protected_paths: Names under data_root kept by a clear-mode restore
            (None = built-in whitelist plus mirrors living in data_root)
        compression_level: Deflate level for new archives (0-9)
        retention_days: Default maximum archive age for cleanup
    """

    data_root: Path
    store_name: str = DEFAULT_STORE_NAME
    config_path: Optional[Path] = None
    config_mirrors: Optional[list[Path]] = None
    default_config_path: Optional[Path] = None
    protected_paths: Optional[list[str]] = None
    compression_level: int = 6
    retention_days: int = DEFAULT_RETENTION_DAYS

    def __post_init__(self):
        """Normalize paths and validate configuration."""
        self.data_root = Path(self.data_root).absolute()

        if not self.store_name or "/" in self.store_name or "\\" in self.store_name or self.store_name in (".", ".."):
            raise ValueError(f"Invalid store name: {self.store_name!r}. Must be a single path component")
        if not 0 <= self.compression_level <= 9:
            raise ValueError(f"Invalid compression level: {self.compression_level}. Must be 0-9")
        if self.retention_days < 0:
            raise ValueError(f"Invalid retention: {self.retention_days}. Must be >= 0")

        if self.config_path is None:
            self.config_path = Path.cwd() / DEFAULT_CONFIG_NAME
        self.config_path = Path(self.config_path).absolute()

        if self.config_mirrors is None:
            self.config_mirrors = [self.data_root / self.config_path.name]
        self.config_mirrors = [Path(p).absolute() for p in self.config_mirrors]

        if self.default_config_path is None:
            self.default_config_path = BUNDLED_DEFAULT_CONFIG
        self.default_config_path = Path(self.default_config_path)

    @property
    def store_dir(self) -> Path:
        """Absolute path of the Backup Store."""
        return self.data_root / self.store_name

    @property
    def config_entry_name(self) -> str:
        """Archive entry name for the configuration document."""
        return self.config_path.name

    def mirrors_in_data_root(self) -> list[str]:
        """Data-root relative POSIX paths of config mirrors anywhere under data_root."""
        return [
            m.relative_to(self.data_root).as_posix()
            for m in self.config_mirrors
            if m != self.data_root and m.is_relative_to(self.data_root)
        ]

    @classmethod
    def from_env(cls, manager: Optional[ConfigManager] = None) -> "BackupConfig":
        """Build configuration from environment / .env / defaults.

        Args:
            manager: ConfigManager to read from (defaults to the singleton)

        Returns:
            Resolved BackupConfig
        """
        manager = manager or default_manager

        data_root = Path(manager.get("SITE_BACKUP_DATA_ROOT"))
        mirrors = manager.get_list("SITE_BACKUP_CONFIG_MIRRORS")
        protected = manager.get_list("SITE_BACKUP_PROTECTED_PATHS")
        default_config = manager.get("SITE_BACKUP_DEFAULT_CONFIG")

        return cls(
            data_root=data_root,
            store_name=manager.get("SITE_BACKUP_STORE_NAME"),
            config_path=Path(manager.get("SITE_BACKUP_CONFIG_PATH")),
            config_mirrors=[Path(m) for m in mirrors] or None,
            default_config_path=Path(default_config) if default_config else None,
            protected_paths=protected or None,
            compression_level=manager.get("SITE_BACKUP_COMPRESSION_LEVEL"),
            retention_days=manager.get("SITE_BACKUP_RETENTION_DAYS"),
        )
