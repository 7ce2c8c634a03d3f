"""Restore orchestrator.

Sequence for one restore:

1. Validate the request (no side effects on failure)
2. Resolve the archive in the Backup Store
3. Snapshot the current data root as ``pre-restore-*.zip``
4. Optionally clear every data root child outside the whitelist
5. Extract the archive; the configuration entry is validated before it is
   written to the primary location and mirrored
6. Guarantee a valid configuration at the primary location

Nothing is deleted before step 3 has produced a complete archive.
"""

import asyncio
import logging
import shutil
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Optional

from sitebackup.lib.logging_config import log_with_context

from .builder import ArchiveBuilder
from .catalog import BackupCatalog
from .config import BackupConfig
from .errors import InvalidRequest, IOFailure, NotFound, RestoreFailed
from .guard import ConfigGuard
from .models import CONFIRM_RESTORE, PRE_RESTORE_PREFIX, RestoreRequest, RestoreResult
from .policy import ReservedPathPolicy

logger = logging.getLogger(__name__)

ARCHIVE_ERRORS = (OSError, zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError, NotImplementedError)

RESTART_NOTICE = "Restore complete. Restart the service to apply configuration changes."


def _is_drive(part: str) -> bool:
    return len(part) == 2 and part[1] == ":"


class RestoreOrchestrator:
    """Restores a stored archive onto the data root."""

    def __init__(
        self,
        config: BackupConfig,
        policy: ReservedPathPolicy,
        builder: ArchiveBuilder,
        catalog: BackupCatalog,
        guard: ConfigGuard,
    ):
        self.config = config
        self.policy = policy
        self.builder = builder
        self.catalog = catalog
        self.guard = guard

    def validate(self, request: RestoreRequest) -> Path:
        """Check a restore request without touching storage.

        Returns:
            Path of the requested archive

        Raises:
            InvalidRequest: Missing filename, wrong confirmation or unsafe name
        """
        if not request.filename:
            raise InvalidRequest("Specify the backup file to restore", operation="restore")
        if request.confirm_restore != CONFIRM_RESTORE:
            raise InvalidRequest("Restore must be confirmed", operation="restore", target=request.filename)
        return self.catalog.resolve(request.filename, "restore")

    async def restore(self, request: RestoreRequest) -> RestoreResult:
        """Run a full restore.

        Raises:
            InvalidRequest: Request rejected before any side effect
            NotFound: Archive is not in the Backup Store
            RestoreFailed: Snapshot, clear, extraction or config guarantee failed
        """
        archive_path = self.validate(request)
        filename = request.filename

        if not await asyncio.to_thread(archive_path.is_file):
            raise NotFound(f"Backup not found: {filename}", operation="restore", target=filename)

        logger.info(f"Starting restore from {filename} (clear_data={request.clear_data})")

        try:
            snapshot = await self.builder.create(prefix=PRE_RESTORE_PREFIX)
        except IOFailure as e:
            log_with_context(
                logger, "error", f"Pre-restore snapshot failed, restore of {filename} aborted",
                operation="restore", target=filename,
            )
            raise RestoreFailed(
                f"Pre-restore snapshot failed, nothing was changed: {e.message}",
                pre_restore_backup=None,
                target=filename,
            ) from e

        logger.info(f"Pre-restore snapshot saved: {snapshot.filename}")

        result = await asyncio.to_thread(self._apply, archive_path, request.clear_data, snapshot.filename)
        logger.info(
            f"Restore from {filename} complete: {result.files_restored} files, "
            f"config_restored={result.config_restored}, fallback={result.config_fallback}"
        )
        return result

    def _apply(self, archive_path: Path, clear_data: bool, pre_restore: str) -> RestoreResult:
        result = RestoreResult(message=RESTART_NOTICE, pre_restore_backup=pre_restore)
        try:
            # Opening reads the central directory, so a corrupt archive fails before clearing
            with zipfile.ZipFile(archive_path) as zf:
                if clear_data:
                    self._clear(result)
                self._extract(zf, result)
        except ARCHIVE_ERRORS as e:
            log_with_context(
                logger, "error", f"Restore from {archive_path.name} failed: {e}",
                exc_info=True, operation="restore", target=archive_path.name,
                pre_restore_backup=pre_restore,
            )
            self._guarantee_after_failure()
            raise RestoreFailed(
                f"Restore failed: {e}. Current data was saved to {pre_restore}",
                pre_restore_backup=pre_restore,
                target=archive_path.name,
            ) from e

        try:
            result.config_fallback = self.guard.guarantee()
        except OSError as e:
            log_with_context(
                logger, "error", f"Configuration guarantee failed: {e}",
                operation="restore", target=archive_path.name, pre_restore_backup=pre_restore,
            )
            raise RestoreFailed(
                f"Restored data but could not guarantee a valid configuration: {e}",
                pre_restore_backup=pre_restore,
                target=archive_path.name,
            ) from e

        if result.config_fallback is not None:
            result.warnings.append(
                f"Configuration was invalid after restore, replaced from {result.config_fallback.value}"
            )
        return result

    def _guarantee_after_failure(self) -> None:
        try:
            self.guard.guarantee()
        except OSError as e:
            logger.error(f"Configuration guarantee after failed restore also failed: {e}")

    def _clear(self, result: RestoreResult) -> None:
        logger.warning("Clear mode: removing data root entries outside the whitelist")
        for child in sorted(self.config.data_root.iterdir()):
            name = child.name
            if self.policy.is_protected_during_clear(name):
                continue
            try:
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
            except OSError as e:
                logger.warning(f"Could not remove {name}: {e}")
                result.clear_failures.append(name)
                continue
            result.cleared.append(name)

    def _extract(self, zf: zipfile.ZipFile, result: RestoreResult) -> None:
        root = self.config.data_root.resolve()
        config_info = self._config_entry(zf)
        for info in zf.infolist():
            name = info.filename
            if self.policy.is_reserved_storage_path(name):
                result.entries_skipped += 1
                continue

            if info is config_info:
                self._restore_config(zf, info, result)
                continue

            if info.is_dir():
                continue

            target = self._safe_target(root, name)
            if target is None:
                logger.warning(f"Skipping unsafe archive entry: {name}")
                result.entries_skipped += 1
                result.warnings.append(f"Skipped unsafe entry {name}")
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            if target.is_symlink():
                target.unlink()
            with zf.open(info) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            result.files_restored += 1

    def _config_entry(self, zf: zipfile.ZipFile) -> Optional[zipfile.ZipInfo]:
        """The last top-level entry named like the configuration document.

        Earlier entries with that name are data-root files and are restored as data.
        """
        matches = [info for info in zf.infolist() if info.filename == self.config.config_entry_name]
        return matches[-1] if matches else None

    def _restore_config(self, zf: zipfile.ZipFile, info: zipfile.ZipInfo, result: RestoreResult) -> None:
        content = zf.read(info)
        if self.guard.install(content):
            result.config_restored = True
            logger.info(f"Configuration restored to {self.guard.primary}")
        else:
            result.entries_skipped += 1
            result.warnings.append("Archived configuration is invalid, existing configuration kept")

    @staticmethod
    def _safe_target(root: Path, name: str) -> Optional[Path]:
        normalized = name.replace("\\", "/")
        parts = PurePosixPath(normalized).parts
        if not parts or normalized.startswith("/") or ".." in parts or _is_drive(parts[0]):
            return None

        target = root.joinpath(*parts)
        if not target.parent.resolve().is_relative_to(root):
            return None
        return target
