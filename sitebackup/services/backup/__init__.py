"""Site backup service for the data root.

Snapshots the data root into ZIP archives stored in the Backup Store, restores
them with a pre-restore safety snapshot, and keeps the external configuration
document valid across restores.

Example usage:
    >>> from sitebackup.services.backup import get_backup_service
    >>>
    >>> # Configured from SITE_BACKUP_* environment variables / .env
    >>> service = get_backup_service()
    >>> created = await service.create_backup()
    >>>
    >>> # Explicit configuration
    >>> from sitebackup.services.backup import BackupConfig, BackupService
    >>> service = BackupService(BackupConfig(data_root=Path("/srv/site/data")))
"""

from .config import BackupConfig
from .errors import (
    BackupError,
    ConfigInvalid,
    InvalidName,
    InvalidRequest,
    IOFailure,
    NotFound,
    RestoreFailed,
)
from .models import (
    CONFIRM_RESTORE,
    ArchiveInfo,
    ArchiveKind,
    CleanupResult,
    ConfigFallback,
    CreateResult,
    DeleteResult,
    RestoreRequest,
    RestoreResult,
)
from .catalog import ArchiveDownload
from .policy import ReservedPathPolicy, is_traversal_unsafe
from .service import BackupService, get_backup_service

__all__ = [
    # Configuration
    "BackupConfig",
    "ReservedPathPolicy",
    # Models
    "CONFIRM_RESTORE",
    "ArchiveDownload",
    "ArchiveInfo",
    "ArchiveKind",
    "CleanupResult",
    "ConfigFallback",
    "CreateResult",
    "DeleteResult",
    "RestoreRequest",
    "RestoreResult",
    # Errors
    "BackupError",
    "ConfigInvalid",
    "InvalidName",
    "InvalidRequest",
    "IOFailure",
    "NotFound",
    "RestoreFailed",
    # Service
    "BackupService",
    "get_backup_service",
    "is_traversal_unsafe",
]
