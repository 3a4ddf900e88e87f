"""CLI for encrypted store snapshots.

Provides commands for database profile management and for creating,
listing, restoring, deleting and downloading snapshots.

Usage:
    DB_PROFILE=local snapshot-vault connect
    snapshot-vault status
    snapshot-vault profiles
    snapshot-vault create --description "before stocktake"
    snapshot-vault list
    snapshot-vault stats
    snapshot-vault restore <id> --dry-run
    snapshot-vault restore <id> --tables Room,CableRoute --yes
    snapshot-vault delete <id>
    snapshot-vault download <id> --plain --output snapshot.json

Commands:
    connect   - Test the database connection and remember the profile
    status    - Show current connection status
    profiles  - List available profiles
    create    - Create an encrypted snapshot of every registered table
    list      - List snapshots, newest first
    stats     - Show snapshot statistics
    restore   - Restore a snapshot (all-or-nothing)
    delete    - Delete a snapshot
    download  - Write a snapshot artifact (optionally decrypted) to a file
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from snapshot_vault.config.loader import load_db_config
from snapshot_vault.errors import SnapshotVaultError
from snapshot_vault.factory import (
    ProfileNotFoundError,
    get_active_profile_name,
    get_adapter,
    get_snapshot_service,
    read_profile_lock,
    write_profile_lock,
)
from snapshot_vault.snapshot.models import RestoreOptions

console = Console()


def _format_size(size: int) -> str:
    """Human-readable byte count."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_connect(args: argparse.Namespace) -> int:
    """Async implementation for connect command.

    Returns:
        0 on success, 1 on failure.
    """
    env_prefix = getattr(args, "env_prefix", "")
    previous_profile = read_profile_lock()

    try:
        profile_name = get_active_profile_name(env_prefix=env_prefix)
    except ProfileNotFoundError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    console.print("Connecting to database...", style="dim")

    try:
        adapter = await get_adapter(profile_name=profile_name, env_prefix=env_prefix)
        try:
            await adapter.test_connection()
        finally:
            await adapter.close()
    except Exception as e:
        console.print()
        console.print(f"[bold red]x[/bold red] Failed to connect to database: {e}")
        return 1

    write_profile_lock(profile_name)

    console.print()
    console.print(
        f"[bold green]v[/bold green] Connected to profile: "
        f"[bold cyan]{profile_name}[/bold cyan]"
    )
    if previous_profile and previous_profile != profile_name:
        console.print(
            f"\n[dim]Switched from[/dim] [bold]{previous_profile}[/bold] "
            f"[dim]to[/dim] [bold cyan]{profile_name}[/bold cyan]"
        )
    return 0


async def _async_create(args: argparse.Namespace) -> int:
    """Async implementation for create command."""
    service = await get_snapshot_service(env_prefix=args.env_prefix)
    try:
        console.print("Creating snapshot...", style="dim")
        metadata = await service.create_snapshot(args.description)
    finally:
        await service.store.close()

    console.print()
    console.print(
        f"[bold green]v[/bold green] Snapshot created: [bold cyan]{metadata.id}[/bold cyan]"
    )
    console.print(f"  Tables: {len(metadata.tables)}")
    console.print(f"  Records: {metadata.record_count}")
    console.print(f"  Size: {_format_size(metadata.size)}")
    return 0


async def _async_list(args: argparse.Namespace) -> int:
    """Async implementation for list command."""
    service = await get_snapshot_service(env_prefix=args.env_prefix)
    try:
        snapshots = await service.list_snapshots()
    finally:
        await service.store.close()

    if not snapshots:
        console.print("[yellow]No snapshots found.[/yellow]")
        return 0

    table = Table(title="Snapshots", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Created")
    table.add_column("Tables", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Description")

    for m in snapshots:
        table.add_row(
            m.id,
            m.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            str(len(m.tables)),
            str(m.record_count),
            _format_size(m.size),
            m.description or "",
        )

    console.print(table)
    return 0


async def _async_stats(args: argparse.Namespace) -> int:
    """Async implementation for stats command."""
    service = await get_snapshot_service(env_prefix=args.env_prefix)
    try:
        stats = await service.get_snapshot_stats()
    finally:
        await service.store.close()

    table = Table(title="Snapshot Statistics", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Snapshots", str(stats.total_snapshots))
    table.add_row("Total size", _format_size(stats.total_size))
    table.add_row("Average size", _format_size(stats.average_size))
    table.add_row("Oldest", stats.oldest.isoformat() if stats.oldest else "-")
    table.add_row("Newest", stats.newest.isoformat() if stats.newest else "-")
    console.print(table)
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Asks for confirmation unless ``--yes`` or ``--dry-run`` is given.
    """
    tables = [t.strip() for t in args.tables.split(",")] if args.tables else None

    if not args.yes and not args.dry_run:
        console.print(
            f"[bold yellow]![/bold yellow] This will replace table contents with "
            f"snapshot [bold]{args.snapshot_id}[/bold]"
        )
        if tables:
            console.print(f"  Tables: [dim]{', '.join(tables)}[/dim]")
        response = console.input("Continue? [y/N] ")
        if response.lower() not in ("y", "yes"):
            console.print("Cancelled.")
            return 0

    options = RestoreOptions(
        dry_run=args.dry_run,
        skip_protected_tables=not args.include_protected,
        tables=tables,
    )

    service = await get_snapshot_service(env_prefix=args.env_prefix)
    try:
        result = await service.restore_snapshot(args.snapshot_id, options)
    finally:
        await service.store.close()

    console.print()
    if args.dry_run:
        console.print("[bold yellow]DRY RUN[/bold yellow] - No changes made.")
        counts = Table(title="Snapshot Contents", show_header=True, header_style="bold")
        counts.add_column("Table", style="dim")
        counts.add_column("Records", justify="right")
        for name, count in result.details.get("table_counts", {}).items():
            counts.add_row(name, str(count))
        console.print(counts)
    else:
        console.print(f"[bold green]v[/bold green] {result.message}")
        console.print(f"  Tables: {len(result.details.get('tables', []))}")
        console.print(f"  Records: {result.details.get('record_count', 0)}")

    for name in result.details.get("unknown_tables", []):
        console.print(f"  [yellow]Not in snapshot: {name}[/yellow]")
    for name in result.details.get("protected_tables_skipped", []):
        console.print(f"  [dim]Protected, skipped: {name}[/dim]")
    return 0


async def _async_delete(args: argparse.Namespace) -> int:
    """Async implementation for delete command."""
    service = await get_snapshot_service(env_prefix=args.env_prefix)
    try:
        removed = await service.delete_snapshot(args.snapshot_id)
    finally:
        await service.store.close()

    if removed:
        console.print(f"[bold green]v[/bold green] Deleted snapshot {args.snapshot_id}")
    else:
        console.print(f"[yellow]Nothing to delete for {args.snapshot_id}[/yellow]")
    return 0


async def _async_download(args: argparse.Namespace) -> int:
    """Async implementation for download command."""
    service = await get_snapshot_service(env_prefix=args.env_prefix)
    try:
        download = await service.download_snapshot(args.snapshot_id, plain=args.plain)
    finally:
        await service.store.close()

    output = Path(args.output) if args.output else Path.cwd() / download.filename
    output.write_bytes(download.content)
    console.print(
        f"[bold green]v[/bold green] Wrote {_format_size(len(download.content))} "
        f"to [cyan]{output}[/cyan]"
    )
    return 0


def _run(coro) -> int:
    """Run an async command, rendering library errors as exit code 1."""
    try:
        return asyncio.run(coro)
    except (SnapshotVaultError, ProfileNotFoundError, KeyError, FileNotFoundError) as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        return 1


# ============================================================================
# Command wrappers
# ============================================================================


def cmd_connect(args: argparse.Namespace) -> int:
    """Test the connection and remember the profile."""
    return _run(_async_connect(args))


def cmd_status(args: argparse.Namespace) -> int:
    """Show current connection status.

    Reads only local files (lock file and TOML config) -- no database calls.

    Returns:
        0 always (informational command).
    """
    profile = read_profile_lock()

    if profile:
        table = Table(title="Connection Status", show_header=False)
        table.add_column("Key", style="dim")
        table.add_column("Value")

        table.add_row("Current profile", f"[bold cyan]{profile}[/bold cyan]")
        table.add_row("Profile source", ".db-profile")

        try:
            config = load_db_config()
            if profile in config.profiles:
                p = config.profiles[profile]
                table.add_row("Provider", p.provider)
                if p.description:
                    table.add_row("Description", p.description)
            table.add_row("Snapshot directory", config.snapshot.directory)
        except FileNotFoundError:
            table.add_row("Warning", "[yellow]db.toml not found[/yellow]")

        console.print(table)
    else:
        console.print("[yellow]No connected profile.[/yellow]")
        console.print(
            "[dim]Run:[/dim] [cyan]DB_PROFILE=<name> snapshot-vault connect[/cyan]"
        )

    return 0


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_db_config()
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = read_profile_lock()

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = current profile")

    return 0


def cmd_create(args: argparse.Namespace) -> int:
    """Create a snapshot."""
    return _run(_async_create(args))


def cmd_list(args: argparse.Namespace) -> int:
    """List snapshots."""
    return _run(_async_list(args))


def cmd_stats(args: argparse.Namespace) -> int:
    """Show snapshot statistics."""
    return _run(_async_stats(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a snapshot."""
    return _run(_async_restore(args))


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a snapshot."""
    return _run(_async_delete(args))


def cmd_download(args: argparse.Namespace) -> int:
    """Download a snapshot artifact."""
    return _run(_async_download(args))


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Argument parser with every subcommand registered."""
    parser = argparse.ArgumentParser(
        prog="snapshot-vault",
        description="Encrypted snapshots and restores of the inventory store",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix INV_ reads INV_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_connect = subparsers.add_parser("connect", help="Test connection and remember profile")
    p_connect.set_defaults(func=cmd_connect)

    p_status = subparsers.add_parser("status", help="Show current connection status")
    p_status.set_defaults(func=cmd_status)

    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    p_create = subparsers.add_parser("create", help="Create an encrypted snapshot")
    p_create.add_argument("--description", "-d", help="Description stored with the snapshot")
    p_create.set_defaults(func=cmd_create)

    p_list = subparsers.add_parser("list", help="List snapshots, newest first")
    p_list.set_defaults(func=cmd_list)

    p_stats = subparsers.add_parser("stats", help="Show snapshot statistics")
    p_stats.set_defaults(func=cmd_stats)

    p_restore = subparsers.add_parser("restore", help="Restore a snapshot")
    p_restore.add_argument("snapshot_id", help="Snapshot id")
    p_restore.add_argument(
        "--dry-run",
        action="store_true",
        help="Decrypt and verify only; no changes are made",
    )
    p_restore.add_argument(
        "--tables",
        help="Comma-separated list of tables to restore (default: all)",
    )
    p_restore.add_argument(
        "--include-protected",
        action="store_true",
        help="Also restore protected tables such as AuditLog",
    )
    p_restore.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )
    p_restore.set_defaults(func=cmd_restore)

    p_delete = subparsers.add_parser("delete", help="Delete a snapshot")
    p_delete.add_argument("snapshot_id", help="Snapshot id")
    p_delete.set_defaults(func=cmd_delete)

    p_download = subparsers.add_parser("download", help="Download a snapshot artifact")
    p_download.add_argument("snapshot_id", help="Snapshot id")
    p_download.add_argument(
        "--plain",
        action="store_true",
        help="Decrypt with the configured password before writing",
    )
    p_download.add_argument("--output", "-o", help="Output file path")
    p_download.set_defaults(func=cmd_download)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
