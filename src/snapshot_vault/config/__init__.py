"""Configuration management: profiles, TOML loading, and snapshot settings.

Usage:
    >>> from snapshot_vault.config import load_db_config, load_snapshot_settings
"""

from snapshot_vault.config.loader import load_db_config, load_snapshot_settings
from snapshot_vault.config.models import (
    DatabaseConfig,
    DatabaseProfile,
    SnapshotConfig,
    SnapshotSettings,
)

__all__ = [
    "load_db_config",
    "load_snapshot_settings",
    "DatabaseConfig",
    "DatabaseProfile",
    "SnapshotConfig",
    "SnapshotSettings",
]
