"""
GRAPHVAULT CLI — Package init.

Re-exports the main CLI group and shared utilities.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import click
from rich.console import Console

from graphvault import __version__, config
from graphvault.config import GraphVaultConfig, configure_logging
from graphvault.engine import GraphVaultEngine
from graphvault.exceptions import GraphVaultError

console = Console()
DEFAULT_DB = config.DB_PATH

actor_option = click.option(
    "--actor",
    "actor_id",
    type=int,
    required=True,
    envvar="GRAPHVAULT_ACTOR_ID",
    help="Acting user id (already authorized)",
)
db_option = click.option("--db", default=DEFAULT_DB, help="Database path")


def _run_async(coro):
    """Helper to run async coroutines from sync CLI."""
    return asyncio.run(coro)


@asynccontextmanager
async def open_engine(db: str) -> AsyncIterator[GraphVaultEngine]:
    """Open an engine on ``db`` for the duration of one command."""
    engine = await GraphVaultEngine.open(GraphVaultConfig.from_env(db_path=db))
    try:
        yield engine
    finally:
        await engine.close()


def run_engine_command(coro) -> None:
    """Run a command coroutine, reporting engine errors as exit code 1."""
    try:
        _run_async(coro)
    except GraphVaultError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/]")
        raise SystemExit(1) from None


# ─── Main Group ──────────────────────────────────────────────────

@click.group()
@click.version_option(__version__, prog_name="graphvault")
@click.option("--log-level", default=None, help="Logging level (default from GRAPHVAULT_LOG_LEVEL)")
def cli(log_level) -> None:
    """GRAPHVAULT — versioned service-dependency graphs."""
    configure_logging(log_level)


# ─── Register all sub-modules ───────────────────────────────────
from graphvault.cli import core  # noqa: E402, F401
from graphvault.cli import graph_cmds  # noqa: E402, F401
from graphvault.cli import snapshot_cmds  # noqa: E402, F401

# ─── Registration ────────────────────────────────────────────────
from graphvault.cli.snapshot_cmds import snapshot  # noqa: E402

cli.add_command(snapshot)


if __name__ == "__main__":
    cli()
