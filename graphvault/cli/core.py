"""CLI commands: init, project-create."""

from __future__ import annotations

import click
from rich.panel import Panel

from graphvault import __version__
from graphvault.cli import actor_option, cli, console, db_option, open_engine, run_engine_command


@cli.command()
@db_option
def init(db) -> None:
    """Initialize the GRAPHVAULT database."""

    async def _init():
        async with open_engine(db) as engine:
            console.print(
                Panel(
                    f"[bold green]✓ GRAPHVAULT v{__version__} initialized[/]\nDatabase: {engine.config.db_path}",
                    title="GRAPHVAULT",
                    border_style="green",
                )
            )

    run_engine_command(_init())


@cli.command("project-create")
@click.argument("name")
@click.argument("slug")
@click.option("--description", "-d", default="", help="Project description")
@actor_option
@db_option
def project_create(name, slug, description, actor_id, db) -> None:
    """Register a project that owns a service graph."""

    async def _create():
        async with open_engine(db) as engine:
            project = await engine.create_project(name, slug, actor_id, description)
        console.print(f"[green]✓[/] Project [bold]#{project['id']}[/] [cyan]{slug}[/] created.")

    run_engine_command(_create())
