"""CLI commands: bulk-save, graph, history."""

from __future__ import annotations

import json

import click
from pydantic import ValidationError as PydanticValidationError
from rich.table import Table

from graphvault.cli import actor_option, cli, console, db_option, open_engine, run_engine_command
from graphvault.models import BulkSaveRequest


@cli.command("bulk-save")
@click.argument("project_id", type=int)
@click.argument("batch_file", type=click.File("r"))
@actor_option
@db_option
def bulk_save(project_id, batch_file, actor_id, db) -> None:
    """Apply a JSON batch of graph changes to a project atomically."""
    try:
        batch = BulkSaveRequest.model_validate_json(batch_file.read())
    except PydanticValidationError as e:
        console.print(f"[red]✗ Invalid batch file:[/] {e.error_count()} error(s)")
        for err in e.errors()[:10]:
            loc = ".".join(str(p) for p in err["loc"])
            console.print(f"  [dim]{loc}[/]: {err['msg']}")
        raise SystemExit(1) from None

    async def _apply():
        async with open_engine(db) as engine:
            result = await engine.apply_bulk_changes(project_id, actor_id, batch)

        table = Table(title=f"Bulk save — project #{project_id}", border_style="cyan")
        table.add_column("Entity", style="bold")
        table.add_column("Created", justify="right")
        table.add_column("Updated", justify="right")
        table.add_column("Deleted", justify="right")
        table.add_row(
            "services",
            str(len(result.created_services)),
            str(len(result.updated_services)),
            str(result.deleted_services_count),
        )
        table.add_row(
            "dependencies",
            str(len(result.created_dependencies)),
            str(len(result.updated_dependencies)),
            str(result.deleted_dependencies_count),
        )
        console.print(table)

    run_engine_command(_apply())


@cli.command("graph")
@click.argument("project_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@db_option
def show_graph(project_id, as_json, db) -> None:
    """Show the live services and dependencies of a project."""

    async def _show():
        async with open_engine(db) as engine:
            graph = await engine.get_graph(project_id)

        if as_json:
            click.echo(json.dumps(graph, indent=2))
            return

        names = {s["id"]: s["name"] for s in graph["services"]}
        table = Table(title=f"Services ({len(graph['services'])})", border_style="cyan")
        table.add_column("ID", style="bold", width=6)
        table.add_column("Name", style="cyan")
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("Pos", style="dim")
        for s in graph["services"]:
            table.add_row(str(s["id"]), s["name"], s["type"], s["status"], f"{s['pos_x']},{s['pos_y']}")
        console.print(table)

        edges = Table(title=f"Dependencies ({len(graph['dependencies'])})", border_style="magenta")
        edges.add_column("ID", style="bold", width=6)
        edges.add_column("Source")
        edges.add_column("Target")
        edges.add_column("Type")
        edges.add_column("Protocol", style="dim")
        for d in graph["dependencies"]:
            edges.add_row(
                str(d["id"]),
                names.get(d["source_id"], f"#{d['source_id']}"),
                names.get(d["target_id"], f"#{d['target_id']}"),
                d["type"],
                d["protocol"],
            )
        console.print(edges)

    run_engine_command(_show())


@cli.command()
@click.argument("project_id", type=int)
@click.option("--limit", "-n", default=20, help="Maximum entries")
@db_option
def history(project_id, limit, db) -> None:
    """Show recent graph changes of a project."""

    async def _history():
        async with open_engine(db) as engine:
            entries = await engine.list_history(project_id, limit)
        if not entries:
            console.print("[dim]No history entries.[/]")
            return
        table = Table(title=f"History — project #{project_id}", border_style="cyan")
        table.add_column("ID", style="bold", width=6)
        table.add_column("When", style="dim")
        table.add_column("User", justify="right")
        table.add_column("Action", style="cyan")
        table.add_column("Details")
        for e in entries:
            table.add_row(
                str(e["id"]),
                e["timestamp"][:19],
                str(e["user_id"]),
                e["action"],
                json.dumps(e["details"], sort_keys=True)[:80],
            )
        console.print(table)

    run_engine_command(_history())
