"""Errors raised by the backup service.

InvalidRequest is always raised before storage is touched. IOFailure wraps
filesystem and archive stream errors. ConfigInvalid never leaves the
config guard; it is resolved by the fallback policy.
"""

from typing import Any, Optional


class BackupError(Exception):
    """Base class for backup and restore failures."""

    code = "backup_error"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        target: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.target = target

    def to_dict(self) -> dict[str, Any]:
        """Structured error body for callers."""
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.operation:
            body["operation"] = self.operation
        if self.target:
            body["target"] = self.target
        return body


class InvalidRequest(BackupError):
    """Malformed filename, missing confirmation or unsafe path."""

    code = "invalid_request"


class InvalidName(InvalidRequest):
    """Filename contains a parent-directory token or a path separator."""

    code = "invalid_name"


class NotFound(BackupError):
    """Archive or backup store entry is absent."""

    code = "not_found"


class IOFailure(BackupError):
    """Stream or filesystem error during read/write."""

    code = "io_failure"


class RestoreFailed(IOFailure):
    """Restore aborted after the pre-restore snapshot was taken."""

    code = "restore_failed"

    def __init__(
        self,
        message: str,
        pre_restore_backup: Optional[str] = None,
        operation: Optional[str] = "restore",
        target: Optional[str] = None,
    ):
        super().__init__(message, operation=operation, target=target)
        self.pre_restore_backup = pre_restore_backup

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["pre_restore_backup"] = self.pre_restore_backup
        return body


class ConfigInvalid(BackupError):
    """Configuration payload is empty or not a key-value document."""

    code = "config_invalid"
