"""Site backup admin API endpoints.

Endpoints:
- POST /api/admin/backup/create - Create a full site backup
- GET /api/admin/backup/list - List archives, most recent first
- GET /api/admin/backup/download/{filename} - Stream one archive
- DELETE /api/admin/backup/{filename} - Delete one archive
- POST /api/admin/backup/restore - Restore the data root from an archive
- POST /api/admin/backup/cleanup - Delete archives older than N days
- POST /api/admin/backup/config/ensure - Guarantee a valid configuration

Every endpoint requires the admin gate.
"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sitebackup.api.models import BackupListResponse, CleanupRequest, ConfigEnsureResponse
from sitebackup.lib.config_manager import config
from sitebackup.services.backup import (
    BackupError,
    BackupService,
    CleanupResult,
    CreateResult,
    DeleteResult,
    InvalidRequest,
    NotFound,
    RestoreRequest,
    RestoreResult,
    get_backup_service,
)

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


# =============================================================================
# Dependencies
# =============================================================================


def get_service(request: Request) -> BackupService:
    """Dependency returning the service bound to the app, else the singleton."""
    service = getattr(request.app.state, "backup_service", None)
    return service or get_backup_service()


async def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Dependency to require administrator access.

    Uses ``app.state.admin_check`` when one was injected; otherwise compares
    the bearer token with SITE_BACKUP_ADMIN_TOKEN.

    Raises:
        HTTPException: 401 without credentials, 403 when access is refused
    """
    admin_check = getattr(request.app.state, "admin_check", None)
    if admin_check is not None:
        if not admin_check(request):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin access required",
            )
        return

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expected = config.get("SITE_BACKUP_ADMIN_TOKEN") or ""
    if not expected or not secrets.compare_digest(credentials.credentials.encode(), expected.encode()):
        logger.warning(f"Rejected admin request to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )


router = APIRouter(
    prefix="/api/admin/backup",
    tags=["backup"],
    dependencies=[Depends(require_admin)],
)


def _http_error(e: BackupError) -> HTTPException:
    """Map a backup error to an HTTP error with a structured body."""
    if isinstance(e, InvalidRequest):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, NotFound):
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail=e.to_dict())


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/create", response_model=CreateResult)
async def create_backup(service: BackupService = Depends(get_service)):
    """Create a full site backup.

    Returns:
        Filename and size of the new archive.
    """
    try:
        return await service.create_backup()
    except BackupError as e:
        raise _http_error(e)


@router.get("/list", response_model=BackupListResponse)
async def list_backups(service: BackupService = Depends(get_service)):
    """List all archives, most recent first."""
    try:
        backups = await service.list_backups()
    except BackupError as e:
        raise _http_error(e)
    return BackupListResponse(backups=backups)


@router.get("/download/{filename}")
async def download_backup(filename: str, service: BackupService = Depends(get_service)):
    """Stream an archive as an attachment.

    Args:
        filename: Archive name in the Backup Store.

    Raises:
        HTTPException: 400 for an unsafe name, 404 if absent.
    """
    try:
        download = await service.fetch_backup(filename)
    except BackupError as e:
        raise _http_error(e)

    return StreamingResponse(
        download,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{download.filename}"',
            "Content-Length": str(download.size),
        },
    )


@router.delete("/{filename}", response_model=DeleteResult)
async def delete_backup(filename: str, service: BackupService = Depends(get_service)):
    """Delete an archive.

    Args:
        filename: Archive name in the Backup Store.

    Raises:
        HTTPException: 400 for an unsafe name, 404 if absent.
    """
    try:
        return await service.delete_backup(filename)
    except BackupError as e:
        raise _http_error(e)


@router.post("/restore", response_model=RestoreResult)
async def restore_backup(request: RestoreRequest, service: BackupService = Depends(get_service)):
    """Restore the data root from an archive.

    WARNING: With clearData every data root entry outside the whitelist is
    removed before extraction. The current state is always saved as a
    pre-restore archive first.

    Raises:
        HTTPException: 400 if unconfirmed or unsafe, 404 if absent, 500 on
            failure (body names the pre-restore archive).
    """
    try:
        return await service.restore_backup(request)
    except BackupError as e:
        raise _http_error(e)


@router.post("/cleanup", response_model=CleanupResult)
async def cleanup_backups(
    body: Optional[CleanupRequest] = None,
    service: BackupService = Depends(get_service),
):
    """Delete archives older than ``days`` (default from configuration)."""
    days = body.days if body else None
    try:
        return await service.cleanup_backups(days)
    except BackupError as e:
        raise _http_error(e)


@router.post("/config/ensure", response_model=ConfigEnsureResponse)
async def ensure_config(service: BackupService = Depends(get_service)):
    """Guarantee a valid configuration document at the primary location."""
    try:
        fallback = await service.ensure_config()
    except BackupError as e:
        raise _http_error(e)

    if fallback is None:
        return ConfigEnsureResponse(replaced=False, message="Configuration is valid")
    return ConfigEnsureResponse(
        replaced=True,
        source=fallback.value,
        message=f"Configuration was invalid and has been replaced from {fallback.value}",
    )
