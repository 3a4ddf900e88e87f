"""Configuration loading: db.toml profiles and snapshot settings."""

import logging
import os
import tomllib
from pathlib import Path

from snapshot_vault.config.models import (
    DEFAULT_BACKUP_PASSWORD,
    DatabaseConfig,
    DatabaseProfile,
    SnapshotConfig,
    SnapshotSettings,
)

logger = logging.getLogger(__name__)


def load_db_config(config_path: Path | None = None) -> DatabaseConfig:
    """Load configuration from TOML file.

    Args:
        config_path: Path to db.toml (default: ./db.toml in the working
            directory)

    Returns:
        DatabaseConfig with all profiles and the snapshot section

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "db.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Database config not found: {config_path}\n"
            f"Copy db.toml.example to db.toml and configure your profiles."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    # Parse snapshot settings
    snapshot = SnapshotConfig(**data.get("snapshot", {}))

    return DatabaseConfig(profiles=profiles, snapshot=snapshot)


def load_snapshot_settings(
    config: SnapshotConfig | None = None,
    env_prefix: str = "",
) -> SnapshotSettings:
    """Resolve snapshot settings from db.toml values and the environment.

    Environment variables (with optional prefix):

    - ``{prefix}BACKUP_ENCRYPTION_PASSWORD``: snapshot password.  When
      unset, the fixed default is used and a warning is logged.
    - ``{prefix}BACKUP_DIR``: overrides ``[snapshot].directory``.

    Args:
        config: Parsed ``[snapshot]`` section; defaults when ``None``.
        env_prefix: Prefix for environment variable lookup.

    Returns:
        SnapshotSettings ready to pass to ``SnapshotService``.
    """
    config = config or SnapshotConfig()

    password = os.environ.get(f"{env_prefix}BACKUP_ENCRYPTION_PASSWORD")
    if not password:
        logger.warning(
            "%sBACKUP_ENCRYPTION_PASSWORD is not set; snapshots are encrypted "
            "with the built-in default password",
            env_prefix,
        )
        password = DEFAULT_BACKUP_PASSWORD

    directory = os.environ.get(f"{env_prefix}BACKUP_DIR") or config.directory

    return SnapshotSettings(
        directory=Path(directory),
        password=password,
        protected_tables=frozenset(config.protected_tables),
        restore_lock_key=config.restore_lock_key,
    )
