"""FastAPI application exposing site backup administration."""

from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Request

from sitebackup.api.middleware import CorrelationMiddleware
from sitebackup.api.routers import backup, health
from sitebackup.lib.config_manager import config
from sitebackup.lib.logging_config import setup_logging
from sitebackup.services.backup import BackupService

SERVICE_NAME = "site-backup"
VERSION = "0.1.0"


def create_app(
    service: Optional[BackupService] = None,
    admin_check: Optional[Callable[[Request], bool]] = None,
) -> FastAPI:
    """Build the API application.

    Args:
        service: Backup service to serve (defaults to the environment-configured singleton)
        admin_check: Replaces the bearer token check; returns True to grant access

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Site Backup API",
        description="Backup, restore and retention for the site data root",
        version=VERSION,
    )
    app.state.backup_service = service
    app.state.admin_check = admin_check

    app.add_middleware(CorrelationMiddleware)

    app.include_router(health.router)
    app.include_router(backup.router)

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Site Backup API",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "backup_create": "POST /api/admin/backup/create",
                "backup_list": "GET /api/admin/backup/list",
                "backup_download": "GET /api/admin/backup/download/{filename}",
                "backup_delete": "DELETE /api/admin/backup/{filename}",
                "backup_restore": "POST /api/admin/backup/restore",
                "backup_cleanup": "POST /api/admin/backup/cleanup",
                "config_ensure": "POST /api/admin/backup/config/ensure",
            },
        }

    return app


app = create_app()


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve the API with Uvicorn."""
    setup_logging(SERVICE_NAME, level=config.get("LOG_LEVEL"), fmt=config.get("LOG_FORMAT"))
    uvicorn.run(
        app,
        host=host or config.get("API_HOST"),
        port=port or config.get("API_PORT"),
        log_config=None,
    )


if __name__ == "__main__":
    run()
