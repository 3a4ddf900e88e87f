"""Records store and snapshot service factory.

Supports two configuration modes:
1. Profile mode (db.toml + DB_PROFILE env var or .db-profile lock file)
2. Direct mode (DATABASE_URL env var or explicit ``database_url`` argument)

Every environment variable can carry a prefix (``env_prefix="INV_"`` reads
``INV_DB_PROFILE``, ``INV_DATABASE_URL``, ``INV_BACKUP_ENCRYPTION_PASSWORD``).

Usage:
    from snapshot_vault.factory import get_adapter, get_snapshot_service

    adapter = await get_adapter(profile_name="local")
    service = await get_snapshot_service(env_prefix="INV_")
"""

import os
from pathlib import Path
from urllib.parse import quote

from snapshot_vault.adapters.postgres import AsyncPostgresAdapter
from snapshot_vault.config.loader import load_db_config, load_snapshot_settings
from snapshot_vault.config.models import DatabaseProfile, SnapshotConfig
from snapshot_vault.snapshot.service import SnapshotService

# Profile lock file path (working directory)
_PROFILE_LOCK_FILE = Path.cwd() / ".db-profile"


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


# ============================================================================
# Profile Lock File Operations
# ============================================================================


def read_profile_lock() -> str | None:
    """Read profile name from lock file.

    Returns:
        Profile name if lock file exists, None otherwise
    """
    if _PROFILE_LOCK_FILE.exists():
        return _PROFILE_LOCK_FILE.read_text().strip() or None
    return None


def write_profile_lock(profile_name: str) -> None:
    """Write profile name to lock file.

    Only call this after a successful connection test.
    """
    _PROFILE_LOCK_FILE.write_text(profile_name)


def clear_profile_lock() -> None:
    """Remove profile lock file."""
    if _PROFILE_LOCK_FILE.exists():
        _PROFILE_LOCK_FILE.unlink()


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from env var or lock file.

    Priority:
    1. ``{env_prefix}DB_PROFILE`` env var
    2. .db-profile file (profile from a previous successful connect)
    3. Raise ProfileNotFoundError

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_profile = os.environ.get(f"{env_prefix}DB_PROFILE")
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Run: {env_prefix}DB_PROFILE=<name> snapshot-vault connect"
    )


# ============================================================================
# URL Resolution
# ============================================================================


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with ``[YOUR-PASSWORD]`` replaced by the URL-quoted
        ``db_password`` when both are present
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Factories
# ============================================================================


async def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    database_url: str | None = None,
) -> AsyncPostgresAdapter:
    """Create a new records store adapter (not cached).

    Resolution order:
    1. ``database_url`` argument
    2. ``profile_name`` argument, looked up in db.toml
    3. ``{env_prefix}DATABASE_URL`` env var
    4. Active profile (env var or lock file), looked up in db.toml

    Raises:
        ProfileNotFoundError: If nothing is configured
        KeyError: If the profile is not in db.toml
    """
    if database_url:
        return AsyncPostgresAdapter(database_url)

    if profile_name is None:
        env_url = os.environ.get(f"{env_prefix}DATABASE_URL")
        if env_url:
            return AsyncPostgresAdapter(env_url)
        profile_name = get_active_profile_name(env_prefix)

    config = load_db_config()
    if profile_name not in config.profiles:
        raise KeyError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return AsyncPostgresAdapter(resolve_url(config.profiles[profile_name]))


async def get_snapshot_service(
    profile_name: str | None = None,
    env_prefix: str = "",
    database_url: str | None = None,
) -> SnapshotService:
    """Build a ``SnapshotService`` from db.toml and the environment.

    The ``[snapshot]`` section is optional; without db.toml the defaults
    are used (``./backups``, ``AuditLog`` protected).
    """
    try:
        snapshot_config = load_db_config().snapshot
    except FileNotFoundError:
        snapshot_config = SnapshotConfig()

    settings = load_snapshot_settings(snapshot_config, env_prefix=env_prefix)
    adapter = await get_adapter(
        profile_name=profile_name,
        env_prefix=env_prefix,
        database_url=database_url,
    )
    return SnapshotService(adapter, settings)
