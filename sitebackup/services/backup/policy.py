"""Reserved-path policy for the data root.

Decides which names under the data root are backup storage, which survive a
clear-mode restore, and which filenames are unsafe to join onto a directory.
Holds no mutable state and touches no files.
"""

from dataclasses import dataclass
from typing import Iterable

from .config import DEFAULT_PROTECTED_PATHS, BackupConfig

UNSAFE_NAME_TOKENS = ("..", "/", "\\")


def is_traversal_unsafe(filename: str) -> bool:
    """Check whether a filename contains a parent-directory token or separator.

    Args:
        filename: Bare filename supplied by a caller

    Returns:
        True if the name must be rejected
    """
    if not filename:
        return True
    return any(token in filename for token in UNSAFE_NAME_TOKENS)


def _normalize(name: str) -> str:
    return name.replace("\\", "/").strip("/")


@dataclass(frozen=True)
class ReservedPathPolicy:
    """Whitelist of names directly under the data root.

    Attributes:
        store_name: Backup Store directory name
        protected: Names kept by a clear-mode restore (includes store_name)
        config_mirrors: Data-root relative paths of config mirrors
    """

    store_name: str
    protected: frozenset[str]
    config_mirrors: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        store_name: str,
        protected: Iterable[str] = DEFAULT_PROTECTED_PATHS,
        config_mirrors: Iterable[str] = (),
    ) -> "ReservedPathPolicy":
        """Build a policy; the store and top-level config mirrors are always protected."""
        mirrors = frozenset(_normalize(m) for m in config_mirrors)
        top_level = {m for m in mirrors if "/" not in m}
        return cls(
            store_name=store_name,
            protected=frozenset(protected) | {store_name} | top_level,
            config_mirrors=mirrors,
        )

    @classmethod
    def from_config(cls, config: BackupConfig) -> "ReservedPathPolicy":
        """Build the policy from backup configuration."""
        protected = config.protected_paths
        if protected is None:
            protected = DEFAULT_PROTECTED_PATHS
        return cls.build(
            store_name=config.store_name,
            protected=protected,
            config_mirrors=config.mirrors_in_data_root(),
        )

    def is_reserved_storage_path(self, name: str) -> bool:
        """Check if an archive entry or data root child belongs to the Backup Store.

        Args:
            name: Top-level name or slash separated relative path
        """
        head = name.replace("\\", "/").lstrip("/").split("/", 1)[0]
        return head == self.store_name

    def is_protected_during_clear(self, name: str) -> bool:
        """Check if a data root child must survive a clear-mode restore."""
        return name in self.protected

    def is_config_mirror(self, name: str) -> bool:
        """Check if a data-root relative path is a config mirror added from its canonical location."""
        return _normalize(name) in self.config_mirrors
