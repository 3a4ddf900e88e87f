"""Pydantic models for database and snapshot configuration."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr


# ============================================================================
# Configuration Models
# ============================================================================


DEFAULT_BACKUP_PASSWORD = "default-backup-password"


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: Literal["postgres"] = "postgres"  # only PostgreSQL stores are supported


class SnapshotConfig(BaseModel):
    """``[snapshot]`` section of db.toml (no secrets)."""

    directory: str = "backups"
    protected_tables: list[str] = Field(default_factory=lambda: ["AuditLog"])
    restore_lock_key: int | None = None  # pg_advisory_xact_lock key for restores


class DatabaseConfig(BaseModel):
    """Complete configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)


class SnapshotSettings(BaseModel):
    """Resolved settings handed to ``SnapshotService``.

    The service encrypts with ``password`` and never reads the environment
    itself.
    """

    directory: Path = Path("backups")
    password: SecretStr = SecretStr(DEFAULT_BACKUP_PASSWORD)
    protected_tables: frozenset[str] = frozenset({"AuditLog"})
    restore_lock_key: int | None = None
    format_version: str = "1.0.0"

    @property
    def uses_default_password(self) -> bool:
        """True when no real secret was configured."""
        return self.password.get_secret_value() == DEFAULT_BACKUP_PASSWORD
