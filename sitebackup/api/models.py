"""Pydantic models for API requests and responses."""

from typing import Any, Optional

from pydantic import BaseModel

from sitebackup.services.backup import ArchiveInfo


class CleanupRequest(BaseModel):
    """Request body for age-based cleanup.

    ``days`` is taken as given; absent or non-numeric values fall back to the
    retention default, negative values are rejected by the service.
    """

    days: Optional[Any] = None


class ConfigEnsureResponse(BaseModel):
    """Result of a configuration guarantee."""

    success: bool = True
    replaced: bool
    source: Optional[str] = None
    message: str


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str
    checks: dict[str, dict]


class BackupListResponse(BaseModel):
    """Archives in the Backup Store, most recent first."""

    backups: list[ArchiveInfo]
