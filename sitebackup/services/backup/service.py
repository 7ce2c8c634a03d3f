"""Backup service facade.

Wires the policy, builder, catalog, guard and restore orchestrator for one
data root, and serializes every mutating operation on its Backup Store.
"""

import asyncio
import logging
from typing import Any, Optional

from sitebackup.lib.logging_config import log_with_context

from .builder import ArchiveBuilder
from .catalog import ArchiveDownload, BackupCatalog
from .config import BackupConfig
from .errors import BackupError, IOFailure, RestoreFailed
from .guard import ConfigGuard
from .models import (
    ArchiveInfo,
    CleanupResult,
    ConfigFallback,
    CreateResult,
    DeleteResult,
    RestoreRequest,
    RestoreResult,
)
from .policy import ReservedPathPolicy
from .restore import RestoreOrchestrator

logger = logging.getLogger(__name__)


class BackupService:
    """Site backup and restore for a single data root."""

    def __init__(self, config: BackupConfig, policy: Optional[ReservedPathPolicy] = None):
        """Initialize backup service.

        Args:
            config: Backup configuration (data root, store, config locations)
            policy: Reserved-path policy (defaults to one built from config)
        """
        self.config = config
        self.policy = policy or ReservedPathPolicy.from_config(config)
        self.guard = ConfigGuard(config)
        self.catalog = BackupCatalog(config)
        self.builder = ArchiveBuilder(config, self.policy, self.guard)
        self.restorer = RestoreOrchestrator(config, self.policy, self.builder, self.catalog, self.guard)
        # Create, delete, restore and cleanup never overlap on this store
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """True while a mutating operation holds the store lock."""
        return self._lock.locked()

    async def create_backup(self) -> CreateResult:
        """Create a full site backup.

        Returns:
            Filename and size of the new archive
        """
        async with self._lock:
            try:
                return await self.builder.create()
            except IOFailure as e:
                log_with_context(logger, "error", f"Backup creation failed: {e.message}",
                                 operation="create", target=e.target)
                raise

    async def list_backups(self) -> list[ArchiveInfo]:
        """List all archives, most recent first."""
        return await self.catalog.list()

    async def get_backup(self, filename: str) -> ArchiveInfo:
        """Metadata for one archive."""
        return await self.catalog.get(filename)

    async def fetch_backup(self, filename: str) -> ArchiveDownload:
        """Open an archive for download."""
        return await self.catalog.fetch(filename)

    async def delete_backup(self, filename: str) -> DeleteResult:
        """Delete one archive by name."""
        async with self._lock:
            return await self._logged("delete", filename, self.catalog.delete(filename))

    async def restore_backup(self, request: RestoreRequest) -> RestoreResult:
        """Restore the data root from a stored archive.

        The request is validated before waiting for the store lock, so a
        rejected request never queues behind another operation.
        """
        self.restorer.validate(request)
        async with self._lock:
            return await self._logged("restore", request.filename, self.restorer.restore(request))

    async def cleanup_backups(self, days: Any = None) -> CleanupResult:
        """Delete archives older than the given number of days."""
        if days is None:
            days = self.config.retention_days
        async with self._lock:
            return await self._logged("cleanup", None, self.catalog.cleanup(days))

    async def ensure_config(self) -> Optional[ConfigFallback]:
        """Guarantee a valid configuration document at the primary location."""
        async with self._lock:
            try:
                return await asyncio.to_thread(self.guard.guarantee)
            except OSError as e:
                log_with_context(logger, "error", f"Configuration guarantee failed: {e}",
                                 operation="ensure_config", target=str(self.config.config_path))
                raise IOFailure(f"Cannot guarantee configuration: {e}", operation="ensure_config") from e

    async def _logged(self, operation: str, target: Optional[str], call):
        try:
            return await call
        except RestoreFailed as e:
            log_with_context(logger, "error", f"{operation} failed: {e.message}",
                             operation=operation, target=target, pre_restore_backup=e.pre_restore_backup)
            raise
        except BackupError as e:
            level = "error" if isinstance(e, IOFailure) else "warning"
            log_with_context(logger, level, f"{operation} failed: {e.message}",
                             operation=operation, target=target)
            raise


# Singleton instance
_backup_service: Optional[BackupService] = None


def get_backup_service() -> BackupService:
    """Get or create the backup service configured from the environment.

    Returns:
        BackupService instance.
    """
    global _backup_service
    if _backup_service is None:
        _backup_service = BackupService(BackupConfig.from_env())
    return _backup_service
