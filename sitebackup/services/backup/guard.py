"""Configuration integrity guard.

Validates configuration payloads before they overwrite a live location and
guarantees a valid document at the primary location after every restore.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union

import yaml

from .config import BackupConfig
from .errors import ConfigInvalid
from .models import ConfigFallback

logger = logging.getLogger(__name__)

Content = Union[str, bytes]


def parse_config(content: Content) -> dict:
    """Parse a configuration document.

    Args:
        content: Raw document text or bytes

    Returns:
        Parsed key-value mapping

    Raises:
        ConfigInvalid: If the document is empty, unparseable or not a mapping
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConfigInvalid(f"Configuration is not UTF-8 text: {e}")

    if not content.strip():
        raise ConfigInvalid("Configuration is empty")

    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigInvalid(f"Configuration is not valid YAML: {e}")

    if not isinstance(document, dict) or not document:
        raise ConfigInvalid("Configuration is not a key-value document")
    return document


def is_valid(content: Optional[Content]) -> bool:
    """True iff content is non-empty and parses as a key-value document."""
    if content is None:
        return False
    try:
        parse_config(content)
    except ConfigInvalid:
        return False
    return True


def read_if_valid(path: Path) -> Optional[bytes]:
    """Read a configuration file, returning None when missing or invalid."""
    try:
        data = path.read_bytes()
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None
    return data if is_valid(data) else None


def write_atomic(path: Path, data: bytes) -> Path:
    """Replace a file's content in one rename, following a symlinked path.

    Args:
        path: Destination (a symlink is written through to its target)
        data: New content

    Returns:
        The path actually written
    """
    target = path.resolve()
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return target


def ensure_valid(
    primary_path: Path,
    default_path: Path,
    fallbacks: Iterable[Path] = (),
) -> Optional[ConfigFallback]:
    """Guarantee a valid document at primary_path.

    A valid fallback location (last-known-good mirror) is preferred over the
    bundled default.

    Args:
        primary_path: Live configuration location
        default_path: Bundled default document
        fallbacks: Secondary locations tried in order before the default

    Returns:
        None if the primary was already valid, otherwise the substituted source
    """
    if read_if_valid(primary_path) is not None:
        return None

    for candidate in fallbacks:
        if candidate.resolve() == primary_path.resolve():
            continue
        data = read_if_valid(candidate)
        if data is not None:
            write_atomic(primary_path, data)
            logger.warning(f"Primary config {primary_path} invalid, restored last-known-good copy from {candidate}")
            return ConfigFallback.MIRROR

    write_atomic(primary_path, default_path.read_bytes())
    logger.warning(f"Primary config {primary_path} invalid, replaced with bundled default {default_path}")
    return ConfigFallback.DEFAULT


class ConfigGuard:
    """Binds the integrity checks to the configured document locations."""

    def __init__(self, config: BackupConfig):
        self.primary = config.config_path
        self.mirrors = list(config.config_mirrors)
        self.default = config.default_config_path

    def canonical_source(self) -> Optional[Path]:
        """Resolved location to archive: the primary, else the first existing mirror."""
        for candidate in [self.primary, *self.mirrors]:
            resolved = candidate.resolve()
            if resolved.is_file():
                return resolved
        return None

    def install(self, content: bytes) -> bool:
        """Write a validated document to the primary and every mirror.

        Returns:
            False if content was rejected; nothing is written in that case
        """
        try:
            parse_config(content)
        except ConfigInvalid as e:
            logger.warning(f"Rejected configuration payload: {e.message}")
            return False

        write_atomic(self.primary, content)
        for mirror in self.mirrors:
            write_atomic(mirror, content)
            logger.info(f"Config mirrored to {mirror}")
        return True

    def guarantee(self) -> Optional[ConfigFallback]:
        """Ensure a valid primary document, then bring mirrors in line with it."""
        fallback = ensure_valid(self.primary, self.default, self.mirrors)
        self.sync_mirrors()
        return fallback

    def sync_mirrors(self) -> list[Path]:
        """Copy the primary document to mirrors whose content differs.

        Returns:
            Mirrors that were rewritten
        """
        content = self.primary.read_bytes()
        primary_target = self.primary.resolve()
        updated = []
        for mirror in self.mirrors:
            if mirror.resolve() == primary_target:
                continue
            try:
                current = mirror.read_bytes()
            except (FileNotFoundError, IsADirectoryError):
                current = None
            if current != content:
                write_atomic(mirror, content)
                updated.append(mirror)
        if updated:
            logger.info(f"Synchronized {len(updated)} config mirror(s) with {self.primary}")
        return updated
