"""Archive builder: snapshots the data root into one ZIP file in the Backup Store."""

import asyncio
import logging
import os
import warnings
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import BackupConfig
from .errors import IOFailure
from .guard import ConfigGuard
from .models import ARCHIVE_EXTENSION, BACKUP_PREFIX, CreateResult
from .policy import ReservedPathPolicy

logger = logging.getLogger(__name__)


def archive_timestamp(now: Optional[datetime] = None) -> str:
    """Sortable UTC timestamp usable in a filename (ISO-8601 with ':' and '.' replaced)."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


class ArchiveBuilder:
    """Builds compressed snapshots of the data root.

    The Backup Store and config mirrors anywhere inside the data root are
    skipped; the configuration document is added once, from its canonical
    location, as the last top-level entry carrying its name.
    """

    def __init__(self, config: BackupConfig, policy: ReservedPathPolicy, guard: ConfigGuard):
        self.config = config
        self.policy = policy
        self.guard = guard

    async def create(self, prefix: str = BACKUP_PREFIX) -> CreateResult:
        """Produce a new archive and wait until it is fully written.

        Args:
            prefix: Filename prefix distinguishing user backups from snapshots

        Returns:
            Filename and byte size of the finished archive

        Raises:
            IOFailure: If any entry cannot be read or the archive cannot be written
        """
        return await asyncio.to_thread(self._build, prefix)

    def _unique_name(self, prefix: str) -> str:
        stamp = archive_timestamp()
        filename = f"{prefix}{stamp}{ARCHIVE_EXTENSION}"
        counter = 1
        while (self.config.store_dir / filename).exists():
            filename = f"{prefix}{stamp}-{counter}{ARCHIVE_EXTENSION}"
            counter += 1
        return filename

    def _build(self, prefix: str) -> CreateResult:
        store = self.config.store_dir
        try:
            store.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(f"Cannot create backup store {store}: {e}", operation="create") from e

        filename = self._unique_name(prefix)
        final_path = store / filename
        partial_path = store / f".{filename}.partial"
        logger.info(f"Creating site backup: {filename}")

        try:
            with zipfile.ZipFile(
                partial_path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.config.compression_level,
            ) as zf:
                entries = self._add_data_root(zf)
                if self._add_config(zf):
                    entries += 1
            os.replace(partial_path, final_path)
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            partial_path.unlink(missing_ok=True)
            logger.error(f"Backup {filename} failed: {e}")
            raise IOFailure(f"Failed to create backup: {e}", operation="create", target=filename) from e
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise

        size = final_path.stat().st_size
        logger.info(f"Backup complete: {filename} ({size} bytes, {entries} entries)")
        return CreateResult(filename=filename, size=size, message=f"Backup created: {filename}")

    def _add_data_root(self, zf: zipfile.ZipFile) -> int:
        count = 0
        for child in sorted(self.config.data_root.iterdir()):
            name = child.name
            if self.policy.is_reserved_storage_path(name):
                continue
            if self.policy.is_config_mirror(name):
                # Added from the canonical location instead
                logger.debug(f"Skipping config mirror {child}")
                continue
            if name == self.config.config_entry_name:
                logger.warning(
                    f"{child} is not a config mirror but shares the configuration entry name; "
                    "archiving it as data ahead of the configuration entry"
                )
            count += self._add_path(zf, child, name)
        return count

    def _add_path(self, zf: zipfile.ZipFile, path: Path, arcname: str) -> int:
        if path.is_dir():
            return self._add_directory(zf, path, arcname)
        if path.is_file():
            zf.write(path, arcname)
            return 1
        logger.warning(f"Skipping {path}: not a regular file or directory")
        return 0

    def _add_directory(self, zf: zipfile.ZipFile, root: Path, arcname: str) -> int:
        count = 0
        zf.write(root, arcname)
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            rel = current.relative_to(root)
            prefix = arcname if rel == Path(".") else f"{arcname}/{rel.as_posix()}"
            dirnames.sort()
            for dirname in list(dirnames):
                sub = current / dirname
                if sub.is_symlink():
                    logger.warning(f"Skipping symlinked directory {sub}")
                    continue
                zf.write(sub, f"{prefix}/{dirname}")
                count += 1
            for filename in sorted(filenames):
                file_path = current / filename
                if self.policy.is_config_mirror(f"{prefix}/{filename}"):
                    logger.debug(f"Skipping config mirror {file_path}")
                    continue
                if not file_path.is_file():
                    logger.warning(f"Skipping {file_path}: not a regular file")
                    continue
                zf.write(file_path, f"{prefix}/{filename}")
                count += 1
        return count + 1

    def _add_config(self, zf: zipfile.ZipFile) -> bool:
        source = self.guard.canonical_source()
        if source is None:
            logger.info("No configuration document found, archive will not include it")
            return False

        data = source.read_bytes()
        if not data.strip():
            logger.warning(f"Configuration {source} is empty, archive will not include it")
            return False

        with warnings.catch_warnings():
            # A data-root file of the same name may precede this entry
            warnings.simplefilter("ignore", UserWarning)
            zf.writestr(self.config.config_entry_name, data)
        logger.debug(f"Added configuration from {source}")
        return True
