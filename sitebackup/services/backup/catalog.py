"""Backup catalog: list, fetch, delete and expire archives in the Backup Store."""

from __future__ import annotations

import asyncio
import logging
import math
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, BinaryIO, Optional

from .config import DEFAULT_RETENTION_DAYS, BackupConfig
from .errors import InvalidName, InvalidRequest, IOFailure, NotFound
from .models import (
    ARCHIVE_EXTENSION,
    ArchiveInfo,
    CleanupResult,
    DeleteResult,
    archive_kind,
)
from .policy import is_traversal_unsafe

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
SECONDS_PER_DAY = 86400


def parse_max_age_days(days: Any, default: float = DEFAULT_RETENTION_DAYS) -> float:
    """Interpret a caller-supplied retention age.

    Absent and non-numeric values fall back to the default. Fractional days
    are kept as given; only zero means every archive is expired.

    Raises:
        InvalidRequest: If the value is a negative number
    """
    if days is None or isinstance(days, bool):
        return default
    if isinstance(days, str):
        try:
            days = float(days.strip())
        except ValueError:
            return default
    if not isinstance(days, (int, float)) or not math.isfinite(days):
        return default
    if days < 0:
        raise InvalidRequest(f"Retention days must not be negative: {days}", operation="cleanup")
    return float(days)


class ArchiveDownload:
    """Open archive ready to be streamed to a caller.

    Iterating yields the file in chunks and closes it afterwards; call close()
    if the stream is abandoned before iteration starts.
    """

    def __init__(self, filename: str, size: int, handle: BinaryIO):
        self.filename = filename
        self.size = size
        self.handle = handle

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await asyncio.to_thread(self.handle.read, CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        self.handle.close()


class BackupCatalog:
    """Reads and prunes the flat directory of archive files."""

    def __init__(self, config: BackupConfig):
        self.config = config

    @property
    def store_dir(self) -> Path:
        return self.config.store_dir

    def resolve(self, filename: Optional[str], operation: str) -> Path:
        """Validate a caller-supplied archive name and return its path.

        Raises:
            InvalidName: If the name is empty or could escape the store
        """
        if not filename or is_traversal_unsafe(filename):
            raise InvalidName(f"Invalid backup filename: {filename!r}", operation=operation, target=filename)
        return self.store_dir / filename

    async def list(self) -> list[ArchiveInfo]:
        """List archives, most recent first."""
        try:
            return await asyncio.to_thread(self._list)
        except OSError as e:
            raise IOFailure(f"Cannot read backup store: {e}", operation="list") from e

    def _list(self) -> list[ArchiveInfo]:
        self.store_dir.mkdir(parents=True, exist_ok=True)
        items = []
        for path in self.store_dir.iterdir():
            if not path.name.endswith(ARCHIVE_EXTENSION) or path.name.startswith("."):
                continue
            try:
                stat = path.stat()
            except FileNotFoundError:
                # Deleted between listing and stat
                continue
            if not path.is_file():
                continue
            items.append(
                ArchiveInfo(
                    filename=path.name,
                    size=stat.st_size,
                    created=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    kind=archive_kind(path.name),
                )
            )
        items.sort(key=lambda item: (item.created, item.filename), reverse=True)
        return items

    async def get(self, filename: str) -> ArchiveInfo:
        """Metadata for a single archive.

        Raises:
            InvalidName: If the filename is unsafe
            NotFound: If no such archive exists
        """
        path = self.resolve(filename, "get")
        try:
            stat = await asyncio.to_thread(path.stat)
        except FileNotFoundError:
            raise NotFound(f"Backup not found: {filename}", operation="get", target=filename)
        return ArchiveInfo(
            filename=filename,
            size=stat.st_size,
            created=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            kind=archive_kind(filename),
        )

    async def fetch(self, filename: str) -> ArchiveDownload:
        """Open an archive for streaming.

        Raises:
            InvalidName: If the filename is unsafe
            NotFound: If no such archive exists
        """
        path = self.resolve(filename, "fetch")
        try:
            handle = await asyncio.to_thread(open, path, "rb")
        except (FileNotFoundError, IsADirectoryError):
            raise NotFound(f"Backup not found: {filename}", operation="fetch", target=filename)
        except OSError as e:
            raise IOFailure(f"Cannot open backup {filename}: {e}", operation="fetch", target=filename) from e

        size = (await asyncio.to_thread(os.fstat, handle.fileno())).st_size
        return ArchiveDownload(filename=filename, size=size, handle=handle)

    async def delete(self, filename: str) -> DeleteResult:
        """Delete one archive.

        Raises:
            InvalidName: If the filename is unsafe
            NotFound: If no such archive exists
        """
        path = self.resolve(filename, "delete")
        try:
            await asyncio.to_thread(path.unlink)
        except (FileNotFoundError, IsADirectoryError):
            raise NotFound(f"Backup not found: {filename}", operation="delete", target=filename)
        except OSError as e:
            raise IOFailure(f"Failed to delete backup {filename}: {e}", operation="delete", target=filename) from e

        logger.info(f"Deleted backup: {filename}")
        return DeleteResult(filename=filename, message=f"Deleted backup: {filename}")

    async def cleanup(self, days: Any = None) -> CleanupResult:
        """Delete every archive older than the given number of days.

        Args:
            days: Maximum age in days (absent or non-numeric = 30)

        Returns:
            Deleted count and bytes released
        """
        max_age_days = parse_max_age_days(days)
        try:
            return await asyncio.to_thread(self._cleanup, max_age_days)
        except OSError as e:
            raise IOFailure(f"Cannot read backup store: {e}", operation="cleanup") from e

    def _cleanup(self, max_age_days: float) -> CleanupResult:
        self.store_dir.mkdir(parents=True, exist_ok=True)
        max_age = max_age_days * SECONDS_PER_DAY
        now = time.time()
        result = CleanupResult()

        for path in sorted(self.store_dir.iterdir()):
            if not path.name.endswith(ARCHIVE_EXTENSION) or path.name.startswith("."):
                continue
            try:
                stat = path.stat()
                if not path.is_file():
                    continue
                if max_age_days > 0 and now - stat.st_mtime < max_age:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise IOFailure(f"Failed to delete expired backup {path.name}: {e}", operation="cleanup", target=path.name) from e

            result.deleted_count += 1
            result.released_bytes += stat.st_size
            result.deleted.append(path.name)
            logger.info(f"Removed expired backup: {path.name}")

        result.message = f"Removed {result.deleted_count} expired backup(s)"
        return result
