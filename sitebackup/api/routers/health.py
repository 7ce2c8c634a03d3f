"""Health check endpoints."""

import asyncio
import os
from pathlib import Path

from fastapi import APIRouter, Depends

from sitebackup.api.models import HealthCheckResponse
from sitebackup.api.routers.backup import get_service
from sitebackup.services.backup import BackupService

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(service: BackupService = Depends(get_service)):
    """Check overall service health."""
    checks = {
        "data_root": await check_directory(service.config.data_root, writable=True),
        "backup_store": await check_directory(service.config.store_dir, writable=True),
    }

    all_ok = all(check["status"] == "ok" for check in checks.values())
    status = "ok" if all_ok else "degraded"

    return HealthCheckResponse(status=status, checks=checks)


async def check_directory(path: Path, writable: bool = False) -> dict:
    """Check that a directory exists and is accessible."""
    exists = await asyncio.to_thread(path.is_dir)
    if not exists:
        return {"status": "error", "message": f"{path} does not exist", "path": str(path)}

    mode = os.R_OK | os.X_OK | (os.W_OK if writable else 0)
    if not await asyncio.to_thread(os.access, path, mode):
        return {"status": "error", "message": f"{path} is not accessible", "path": str(path)}

    return {"status": "ok", "message": f"{path} accessible", "path": str(path)}
