#!/usr/bin/env python
"""
Site backup command line.

Creates, lists, restores and prunes data root archives using the same
configuration (SITE_BACKUP_* environment variables / .env) as the API.

Usage:
    site-backup [--log-level LEVEL] COMMAND [ARGS]

Examples:
    # Create a backup and show the store
    site-backup create
    site-backup list

    # Restore, removing everything outside the whitelist first
    site-backup restore site-backup-2024-05-01T10-00-00-000Z.zip --clear --yes

    # Delete archives older than a week
    site-backup cleanup --days 7

    # Show resolved settings (secrets masked)
    site-backup config
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from sitebackup.api.main import run as run_api
from sitebackup.lib.config_manager import config
from sitebackup.lib.defaults import CONFIG_CATEGORIES
from sitebackup.lib.logging_config import setup_logging
from sitebackup.services.backup import (
    CONFIRM_RESTORE,
    BackupError,
    RestoreFailed,
    RestoreRequest,
    get_backup_service,
)

app = typer.Typer(help="Back up and restore the site data root")
console = Console(force_terminal=True, force_interactive=False, width=120)


def _format_size(size: int) -> str:
    """Human readable byte count."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _fail(e: BackupError) -> None:
    """Print a backup error and exit with status 1."""
    console.print(f"[red]Error: {e.message}[/]")
    if isinstance(e, RestoreFailed) and e.pre_restore_backup:
        console.print(f"[yellow]Previous state saved as {e.pre_restore_backup}[/]")
    raise typer.Exit(1)


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for console output"),
):
    """Site backup administration."""
    setup_logging("site-backup-cli", level=log_level, fmt="text")


@app.command()
def create():
    """Create a full site backup."""
    service = get_backup_service()
    try:
        result = asyncio.run(service.create_backup())
    except BackupError as e:
        _fail(e)

    console.print(f"[bold green]Backup created:[/] {result.filename} ({_format_size(result.size)})")


@app.command("list")
def list_backups():
    """List archives in the Backup Store, most recent first."""
    service = get_backup_service()
    try:
        backups = asyncio.run(service.list_backups())
    except BackupError as e:
        _fail(e)

    if not backups:
        console.print("[yellow]No backups found[/]")
        return

    table = Table(title=f"Backups in {service.config.store_dir}")
    table.add_column("Filename", style="bold")
    table.add_column("Kind")
    table.add_column("Created (UTC)")
    table.add_column("Size", justify="right")
    for item in backups:
        table.add_row(
            item.filename,
            item.kind.value,
            item.created.strftime("%Y-%m-%d %H:%M:%S"),
            _format_size(item.size),
        )
    console.print(table)


@app.command()
def delete(filename: str = typer.Argument(..., help="Archive filename")):
    """Delete one archive."""
    service = get_backup_service()
    try:
        result = asyncio.run(service.delete_backup(filename))
    except BackupError as e:
        _fail(e)

    console.print(f"[green]{result.message}[/]")


@app.command()
def restore(
    filename: str = typer.Argument(..., help="Archive filename"),
    clear: bool = typer.Option(False, "--clear", help="Remove data outside the whitelist before extracting"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """Restore the data root from an archive."""
    if not yes:
        warning = "This overwrites the current site data"
        if clear:
            warning += " and deletes everything outside the whitelist"
        console.print(f"[bold yellow]{warning}.[/]")
        if not typer.confirm(f"Restore from {filename}?"):
            console.print("[dim]Restore cancelled[/]")
            raise typer.Exit(1)

    service = get_backup_service()
    request = RestoreRequest(filename=filename, confirm_restore=CONFIRM_RESTORE, clear_data=clear)
    try:
        result = asyncio.run(service.restore_backup(request))
    except BackupError as e:
        _fail(e)

    console.print(f"[bold green]Restored {result.files_restored} file(s) from {filename}[/]")
    console.print(f"  Pre-restore backup: {result.pre_restore_backup}")
    console.print(f"  Configuration restored: {'yes' if result.config_restored else 'no'}")
    if result.cleared:
        console.print(f"  Cleared: {', '.join(result.cleared)}")
    if result.entries_skipped:
        console.print(f"  Entries skipped: {result.entries_skipped}")
    for name in result.clear_failures:
        console.print(f"  [yellow]Could not clear {name}[/]")
    for warning in result.warnings:
        console.print(f"  [yellow]{warning}[/]")
    console.print(f"[dim]{result.message}[/]")


@app.command()
def cleanup(
    days: Optional[float] = typer.Option(None, "--days", help="Maximum archive age in days (default from configuration)"),
):
    """Delete archives older than the retention age."""
    service = get_backup_service()
    try:
        result = asyncio.run(service.cleanup_backups(days))
    except BackupError as e:
        _fail(e)

    console.print(f"[green]{result.message}[/] ({_format_size(result.released_bytes)} released)")
    for name in result.deleted:
        console.print(f"  - [dim]{name}[/]")


@app.command("ensure-config")
def ensure_config():
    """Guarantee a valid configuration document at the primary location."""
    service = get_backup_service()
    try:
        fallback = asyncio.run(service.ensure_config())
    except BackupError as e:
        _fail(e)

    if fallback is None:
        console.print(f"[green]Configuration is valid:[/] {service.config.config_path}")
    else:
        console.print(f"[yellow]Configuration was invalid, replaced from {fallback.value}[/]")


@app.command("config")
def show_config():
    """Show resolved settings by category, with secrets masked."""
    values = config.get_all_sync()

    table = Table(title="Site backup configuration")
    table.add_column("Category", style="cyan")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for category, keys in CONFIG_CATEGORIES.items():
        for key in keys:
            value = values.get(key)
            shown = config.mask_value(key, value) if value not in (None, "") else "[dim](not set)[/]"
            table.add_row(category, key, shown)
    console.print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Port (default API_PORT)"),
):
    """Serve the admin API."""
    console.print(f"[bold blue]Serving site backup API on {host or config.get('API_HOST')}:{port or config.get('API_PORT')}[/]")
    run_api(host=host, port=port)


if __name__ == "__main__":
    app()
