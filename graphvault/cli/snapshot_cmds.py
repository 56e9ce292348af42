"""CLI commands: snapshot create/list/show/restore."""

from __future__ import annotations

import json

import click
from rich.panel import Panel
from rich.table import Table

from graphvault.cli import actor_option, console, db_option, open_engine, run_engine_command


@click.group()
def snapshot() -> None:
    """Versioned snapshots of a project's graph."""


@snapshot.command("create")
@click.argument("project_id", type=int)
@click.option("--notes", "-m", default="", help="Snapshot notes")
@actor_option
@db_option
def create(project_id, notes, actor_id, db) -> None:
    """Capture the live graph as a new snapshot version."""

    async def _create():
        async with open_engine(db) as engine:
            snap = await engine.create_snapshot(project_id, actor_id, notes)
        console.print(
            f"[green]✓[/] Snapshot [bold]v{snap.version_num}[/] (#{snap.id}) created for project #{project_id}."
        )

    run_engine_command(_create())


@snapshot.command("list")
@click.argument("project_id", type=int)
@db_option
def list_cmd(project_id, db) -> None:
    """List snapshots, newest version first."""

    async def _list():
        async with open_engine(db) as engine:
            snaps = await engine.list_snapshots(project_id)
        if not snaps:
            console.print("[dim]No snapshots for this project.[/]")
            return
        table = Table(title=f"Snapshots — project #{project_id} ({len(snaps)})", border_style="cyan")
        table.add_column("ID", style="bold", width=6)
        table.add_column("Version", justify="right")
        table.add_column("Created", style="dim")
        table.add_column("By", justify="right")
        table.add_column("Notes")
        for s in snaps:
            table.add_row(str(s.id), f"v{s.version_num}", s.created_at[:19], str(s.created_by), s.notes[:60])
        console.print(table)

    run_engine_command(_list())


@snapshot.command("show")
@click.argument("snapshot_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print the full payload as JSON")
@db_option
def show(snapshot_id, as_json, db) -> None:
    """Show a snapshot's metadata and contents."""

    async def _show():
        async with open_engine(db) as engine:
            snap = await engine.get_snapshot(snapshot_id)
        if as_json:
            click.echo(json.dumps(snap.to_dict(), indent=2))
            return
        data = snap.data
        console.print(
            Panel(
                f"Project: #{snap.project_id}\n"
                f"Version: v{snap.version_num}\n"
                f"Created: {snap.created_at} by #{snap.created_by}\n"
                f"Services: {len(data.get('services') or [])}\n"
                f"Dependencies: {len(data.get('dependencies') or [])}\n"
                f"Notes: {snap.notes or '-'}",
                title=f"Snapshot #{snap.id}",
                border_style="cyan",
            )
        )

    run_engine_command(_show())


@snapshot.command("restore")
@click.argument("snapshot_id", type=int)
@click.option("--force", is_flag=True, help="Skip the automatic pre-restore backup")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@actor_option
@db_option
def restore(snapshot_id, force, yes, actor_id, db) -> None:
    """Replace the project's live graph with a snapshot."""
    if not yes:
        click.confirm(
            f"Replace the live graph with snapshot #{snapshot_id}?", abort=True
        )

    async def _restore():
        async with open_engine(db) as engine:
            result = await engine.restore_snapshot(snapshot_id, actor_id, force=force)
        console.print(
            f"[green]✓[/] Project #{result.project_id} restored to v{result.version_num}: "
            f"{result.restored_services} services, {result.restored_dependencies} dependencies."
        )
        if result.backup_snapshot_id is not None:
            console.print(f"[dim]Backup saved as snapshot #{result.backup_snapshot_id}.[/]")
        if result.skipped_services or result.skipped_dependencies:
            console.print(
                f"[yellow]⚠ Skipped {result.skipped_services} services and "
                f"{result.skipped_dependencies} dependencies that could not be restored.[/]"
            )

    run_engine_command(_restore())
