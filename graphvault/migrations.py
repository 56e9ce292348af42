"""
GRAPHVAULT v1.0 — Schema Migrations.

The base schema is created on a fresh database; numbered migrations then
run one transaction each, committed together with their
``schema_version`` row.
"""

from __future__ import annotations

import logging

import aiosqlite

from graphvault.schema import ALL_SCHEMA

logger = logging.getLogger("graphvault.migrations")

CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER PRIMARY KEY,
    applied_at  TEXT DEFAULT (datetime('now')),
    description TEXT
)
"""


async def _backfill_snapshot_counters(conn: aiosqlite.Connection) -> None:
    """Seed per-project version counters from snapshots already on disk."""
    await conn.execute(
        "INSERT OR IGNORE INTO snapshot_counters (project_id, last_version) "
        "SELECT project_id, MAX(version_num) FROM snapshots GROUP BY project_id"
    )


async def _index_history_by_service(conn: aiosqlite.Connection) -> None:
    await conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_history_service ON change_history(service_id)"
    )


MIGRATIONS = [
    (1, "Backfill snapshot counters", _backfill_snapshot_counters),
    (2, "Index change history by service", _index_history_by_service),
]


async def get_current_version(conn: aiosqlite.Connection) -> int:
    """Get the current schema version (0 means fresh DB)."""
    async with conn.execute("SELECT MAX(version) FROM schema_version") as cursor:
        row = await cursor.fetchone()
    return row[0] if row and row[0] is not None else 0


async def _apply(conn: aiosqlite.Connection, version: int, description: str, func) -> bool:
    """Run one migration atomically; False if another process got there first."""
    await conn.execute("BEGIN IMMEDIATE")
    try:
        if await get_current_version(conn) >= version:
            await conn.rollback()
            return False
        await func(conn)
        await conn.execute(
            "INSERT INTO schema_version (version, description) VALUES (?, ?)",
            (version, description),
        )
    except BaseException:
        await conn.rollback()
        raise
    await conn.commit()
    return True


async def run_migrations(conn: aiosqlite.Connection) -> int:
    """Apply the base schema and every pending migration.

    Args:
        conn: aiosqlite connection in autocommit mode.

    Returns:
        Number of migrations applied.
    """
    await conn.execute(CREATE_SCHEMA_VERSION)

    if await get_current_version(conn) == 0:
        logger.info("Fresh database, creating base schema")
        for stmt in ALL_SCHEMA:
            await conn.executescript(stmt)

    applied = 0
    for version, description, func in MIGRATIONS:
        if version <= await get_current_version(conn):
            continue
        logger.info("Applying migration %d: %s", version, description)
        if await _apply(conn, version, description, func):
            applied += 1

    if applied:
        logger.info("Schema now at version %d (%d applied)", MIGRATIONS[-1][0], applied)
    return applied
