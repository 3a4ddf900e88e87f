"""Tests for profile resolution and the adapter/service factories."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from snapshot_vault.adapters.postgres import AsyncPostgresAdapter
from snapshot_vault.config.models import DatabaseConfig, DatabaseProfile, SnapshotConfig
from snapshot_vault.factory import (
    ProfileNotFoundError,
    clear_profile_lock,
    get_active_profile_name,
    get_adapter,
    get_snapshot_service,
    read_profile_lock,
    resolve_url,
    write_profile_lock,
)
from snapshot_vault.snapshot.service import SnapshotService


def _config(**profiles: str) -> DatabaseConfig:
    return DatabaseConfig(
        profiles={name: DatabaseProfile(url=url) for name, url in profiles.items()},
        snapshot=SnapshotConfig(directory="/srv/snapshots", restore_lock_key=3),
    )


def _env_without(*keys: str) -> dict[str, str]:
    return {k: v for k, v in os.environ.items() if k not in keys}


# ============================================================================
# Test: Profile lock file
# ============================================================================


class TestProfileLock:
    """.db-profile read/write/clear."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """Written profile is read back; clear removes it."""
        lock_file = tmp_path / ".db-profile"
        with patch("snapshot_vault.factory._PROFILE_LOCK_FILE", lock_file):
            assert read_profile_lock() is None
            write_profile_lock("local")
            assert read_profile_lock() == "local"
            clear_profile_lock()
            assert read_profile_lock() is None
            clear_profile_lock()

    def test_blank_lock_file(self, tmp_path: Path) -> None:
        """An empty lock file means no profile."""
        lock_file = tmp_path / ".db-profile"
        lock_file.write_text("  \n")
        with patch("snapshot_vault.factory._PROFILE_LOCK_FILE", lock_file):
            assert read_profile_lock() is None


# ============================================================================
# Test: get_active_profile_name
# ============================================================================


class TestGetActiveProfileName:
    """Env var first, then lock file."""

    def test_env_var(self) -> None:
        """DB_PROFILE is honoured."""
        with patch.dict(os.environ, {"DB_PROFILE": "local"}, clear=False):
            assert get_active_profile_name() == "local"

    def test_env_prefix(self) -> None:
        """{prefix}DB_PROFILE is read with a prefix."""
        with patch.dict(os.environ, {"INV_DB_PROFILE": "rds"}, clear=False):
            assert get_active_profile_name(env_prefix="INV_") == "rds"

    def test_lock_file_fallback(self, tmp_path: Path) -> None:
        """Lock file is used when the env var is unset."""
        lock_file = tmp_path / ".db-profile"
        lock_file.write_text("staging")
        with patch.dict(os.environ, _env_without("DB_PROFILE"), clear=True), \
             patch("snapshot_vault.factory._PROFILE_LOCK_FILE", lock_file):
            assert get_active_profile_name() == "staging"

    def test_raises_when_no_profile(self, tmp_path: Path) -> None:
        """Neither source -> ProfileNotFoundError."""
        with patch.dict(os.environ, _env_without("DB_PROFILE"), clear=True), \
             patch("snapshot_vault.factory._PROFILE_LOCK_FILE", tmp_path / ".db-profile"):
            with pytest.raises(ProfileNotFoundError, match="DB_PROFILE"):
                get_active_profile_name()


# ============================================================================
# Test: resolve_url
# ============================================================================


class TestResolveUrl:
    """Password placeholder substitution."""

    def test_substitutes_and_quotes(self) -> None:
        """[YOUR-PASSWORD] is replaced with the URL-quoted password."""
        profile = DatabaseProfile(
            url="postgresql://app:[YOUR-PASSWORD]@db/inventory", db_password="p@ss/word"
        )
        assert resolve_url(profile) == "postgresql://app:p%40ss%2Fword@db/inventory"

    def test_no_placeholder(self) -> None:
        """URLs without the placeholder are unchanged."""
        profile = DatabaseProfile(url="postgresql://app@db/inventory", db_password="x")
        assert resolve_url(profile) == "postgresql://app@db/inventory"


# ============================================================================
# Test: get_adapter
# ============================================================================


class TestGetAdapter:
    """URL resolution order of get_adapter()."""

    @pytest.mark.asyncio
    async def test_explicit_url(self) -> None:
        """database_url wins over everything else."""
        with patch.object(AsyncPostgresAdapter, "__init__", return_value=None) as mock_init:
            adapter = await get_adapter(profile_name="ignored", database_url="postgresql://x/db")
        assert isinstance(adapter, AsyncPostgresAdapter)
        mock_init.assert_called_once_with("postgresql://x/db")

    @pytest.mark.asyncio
    async def test_profile_name(self) -> None:
        """A named profile is looked up in db.toml."""
        with patch("snapshot_vault.factory.load_db_config",
                   return_value=_config(local="postgresql://local/db")), \
             patch.object(AsyncPostgresAdapter, "__init__", return_value=None) as mock_init:
            await get_adapter(profile_name="local")
        mock_init.assert_called_once_with("postgresql://local/db")

    @pytest.mark.asyncio
    async def test_database_url_env(self) -> None:
        """DATABASE_URL is used when no profile is named."""
        with patch.dict(os.environ, {"INV_DATABASE_URL": "postgresql://env/db"}, clear=False), \
             patch.object(AsyncPostgresAdapter, "__init__", return_value=None) as mock_init:
            await get_adapter(env_prefix="INV_")
        mock_init.assert_called_once_with("postgresql://env/db")

    @pytest.mark.asyncio
    async def test_active_profile(self, tmp_path: Path) -> None:
        """Falls back to the active profile."""
        env = {**_env_without("DATABASE_URL"), "DB_PROFILE": "rds"}
        with patch.dict(os.environ, env, clear=True), \
             patch("snapshot_vault.factory.load_db_config",
                   return_value=_config(rds="postgresql://rds/db")), \
             patch.object(AsyncPostgresAdapter, "__init__", return_value=None) as mock_init:
            await get_adapter()
        mock_init.assert_called_once_with("postgresql://rds/db")

    @pytest.mark.asyncio
    async def test_unknown_profile(self) -> None:
        """A profile missing from db.toml raises KeyError."""
        with patch("snapshot_vault.factory.load_db_config",
                   return_value=_config(local="postgresql://local/db")):
            with pytest.raises(KeyError, match="nope"):
                await get_adapter(profile_name="nope")

    @pytest.mark.asyncio
    async def test_nothing_configured(self, tmp_path: Path) -> None:
        """No URL and no profile -> ProfileNotFoundError."""
        with patch.dict(os.environ, _env_without("DATABASE_URL", "DB_PROFILE"), clear=True), \
             patch("snapshot_vault.factory._PROFILE_LOCK_FILE", tmp_path / ".db-profile"):
            with pytest.raises(ProfileNotFoundError):
                await get_adapter()


# ============================================================================
# Test: get_snapshot_service
# ============================================================================


class TestGetSnapshotService:
    """Service wiring from db.toml and the environment."""

    @pytest.mark.asyncio
    async def test_uses_snapshot_section(self) -> None:
        """[snapshot] settings reach the service."""
        env = {**_env_without("BACKUP_DIR"), "BACKUP_ENCRYPTION_PASSWORD": "pw"}
        with patch.dict(os.environ, env, clear=True), \
             patch("snapshot_vault.factory.load_db_config",
                   return_value=_config(local="postgresql://local/db")), \
             patch.object(AsyncPostgresAdapter, "__init__", return_value=None):
            service = await get_snapshot_service(profile_name="local")

        assert isinstance(service, SnapshotService)
        assert service.settings.directory == Path("/srv/snapshots")
        assert service.settings.restore_lock_key == 3
        assert service.settings.password.get_secret_value() == "pw"
        assert "AssetSerialNumber" in service.registry.names

    @pytest.mark.asyncio
    async def test_without_db_toml(self) -> None:
        """Direct URL mode works without db.toml."""
        env = _env_without("BACKUP_DIR", "BACKUP_ENCRYPTION_PASSWORD")
        with patch.dict(os.environ, env, clear=True), \
             patch("snapshot_vault.factory.load_db_config",
                   side_effect=FileNotFoundError("Database config not found")), \
             patch.object(AsyncPostgresAdapter, "__init__", return_value=None):
            service = await get_snapshot_service(database_url="postgresql://x/db")

        assert service.settings.directory == Path("backups")
        assert service.settings.uses_default_password is True
        assert service.settings.protected_tables == frozenset({"AuditLog"})

    @pytest.mark.asyncio
    async def test_env_prefix_forwarded(self) -> None:
        """env_prefix applies to both password and adapter lookup."""
        env = {
            **_env_without("INV_BACKUP_DIR"),
            "INV_BACKUP_ENCRYPTION_PASSWORD": "inv-pw",
            "INV_DATABASE_URL": "postgresql://inv/db",
        }
        with patch.dict(os.environ, env, clear=True), \
             patch("snapshot_vault.factory.load_db_config",
                   side_effect=FileNotFoundError("missing")), \
             patch.object(AsyncPostgresAdapter, "__init__", return_value=None) as mock_init:
            service = await get_snapshot_service(env_prefix="INV_")

        mock_init.assert_called_once_with("postgresql://inv/db")
        assert service.settings.password.get_secret_value() == "inv-pw"
