"""Models for archives, restore requests and operation results."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

ARCHIVE_EXTENSION = ".zip"
BACKUP_PREFIX = "site-backup-"
PRE_RESTORE_PREFIX = "pre-restore-"

# Required value of RestoreRequest.confirm_restore
CONFIRM_RESTORE = "CONFIRM_RESTORE"


class ArchiveKind(str, Enum):
    """Origin of an archive in the Backup Store."""

    BACKUP = "backup"
    PRE_RESTORE = "pre-restore"


class ConfigFallback(str, Enum):
    """Source substituted for an invalid primary configuration."""

    MIRROR = "mirror"
    DEFAULT = "default"


class ArchiveInfo(BaseModel):
    """Catalog entry for one archive file."""

    filename: str
    size: int
    created: datetime
    kind: ArchiveKind = ArchiveKind.BACKUP


class CreateResult(BaseModel):
    """Result of a successful archive build."""

    success: bool = True
    filename: str
    size: int
    message: str = ""


class RestoreRequest(BaseModel):
    """Restore parameters as received from a caller. Never persisted."""

    model_config = ConfigDict(populate_by_name=True)

    filename: Optional[str] = None
    confirm_restore: Optional[str] = Field(default=None, alias="confirmRestore")
    clear_data: bool = Field(default=False, alias="clearData")


class RestoreResult(BaseModel):
    """Outcome of a completed restore."""

    success: bool = True
    message: str
    pre_restore_backup: str
    files_restored: int = 0
    entries_skipped: int = 0
    config_restored: bool = False
    config_fallback: Optional[ConfigFallback] = None
    cleared: list[str] = Field(default_factory=list)
    clear_failures: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class CleanupResult(BaseModel):
    """Outcome of an age-based cleanup."""

    success: bool = True
    deleted_count: int = 0
    released_bytes: int = 0
    deleted: list[str] = Field(default_factory=list)
    message: str = ""


class DeleteResult(BaseModel):
    """Outcome of a manual delete."""

    success: bool = True
    filename: str
    message: str = ""


def archive_kind(filename: str) -> ArchiveKind:
    """Classify an archive by its filename prefix."""
    if filename.startswith(PRE_RESTORE_PREFIX):
        return ArchiveKind.PRE_RESTORE
    return ArchiveKind.BACKUP
