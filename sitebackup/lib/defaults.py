"""Default configuration values for the backup subsystem.

All hardcoded defaults live here. The service should be fully functional
with these defaults (minus the admin token, which must be set explicitly).

Config hierarchy: environment / .env → these defaults
"""

from typing import Any

# =============================================================================
# Configuration Defaults
# =============================================================================

DEFAULTS: dict[str, Any] = {
    # -------------------------------------------------------------------------
    # Data Root and Backup Store
    # -------------------------------------------------------------------------
    "SITE_BACKUP_DATA_ROOT": "data",
    "SITE_BACKUP_STORE_NAME": "_site_backups",
    "SITE_BACKUP_PROTECTED_PATHS": "",  # Empty = built-in whitelist

    # -------------------------------------------------------------------------
    # External configuration document
    # -------------------------------------------------------------------------
    "SITE_BACKUP_CONFIG_PATH": "config.yaml",
    "SITE_BACKUP_CONFIG_MIRRORS": "",  # Empty = <data root>/<config file name>
    "SITE_BACKUP_DEFAULT_CONFIG": "",  # Empty = bundled default_config.yaml

    # -------------------------------------------------------------------------
    # Archive Settings
    # -------------------------------------------------------------------------
    "SITE_BACKUP_COMPRESSION_LEVEL": 6,
    "SITE_BACKUP_RETENTION_DAYS": 30,

    # -------------------------------------------------------------------------
    # Auth Settings
    # -------------------------------------------------------------------------
    "SITE_BACKUP_ADMIN_TOKEN": "",  # Empty = every admin request is rejected

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    "LOG_LEVEL": "INFO",
    "LOG_FORMAT": "json",
    "API_HOST": "127.0.0.1",
    "API_PORT": 8000,
}


# =============================================================================
# Config Categories (for display grouping)
# =============================================================================

CONFIG_CATEGORIES = {
    "storage": [
        "SITE_BACKUP_DATA_ROOT",
        "SITE_BACKUP_STORE_NAME",
        "SITE_BACKUP_PROTECTED_PATHS",
    ],
    "config_document": [
        "SITE_BACKUP_CONFIG_PATH",
        "SITE_BACKUP_CONFIG_MIRRORS",
        "SITE_BACKUP_DEFAULT_CONFIG",
    ],
    "archive": [
        "SITE_BACKUP_COMPRESSION_LEVEL",
        "SITE_BACKUP_RETENTION_DAYS",
    ],
    "auth": [
        "SITE_BACKUP_ADMIN_TOKEN",
    ],
    "app": [
        "LOG_LEVEL",
        "LOG_FORMAT",
        "API_HOST",
        "API_PORT",
    ],
}


# =============================================================================
# Sensitive Keys (should be masked when displayed)
# =============================================================================

SENSITIVE_KEYS = {
    "SITE_BACKUP_ADMIN_TOKEN",
}


def get_default(key: str) -> Any:
    """Get the default value for a config key.

    Args:
        key: Configuration key name

    Returns:
        Default value, or None if key not found
    """
    return DEFAULTS.get(key)


def is_sensitive(key: str) -> bool:
    """Check if a config key holds a secret."""
    return key in SENSITIVE_KEYS
