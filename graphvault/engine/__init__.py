"""
GRAPHVAULT Engine — async facade over the connection pool.

Composes the bulk synchronizer, snapshot store and snapshot restorer
mixins around a single transactional primitive: one pooled connection,
one ``BEGIN IMMEDIATE`` transaction per invocation.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import aiosqlite

from graphvault.config import GraphVaultConfig
from graphvault.connection_pool import GraphVaultPool
from graphvault.engine.bulk_mixin import BulkSyncMixin
from graphvault.engine.restore_mixin import RestoreMixin
from graphvault.engine.snapshot_mixin import SnapshotMixin
from graphvault.exceptions import ConflictError, ProjectNotFound, StorageError, ValidationError
from graphvault.migrations import run_migrations
from graphvault.repository import GraphRepository

logger = logging.getLogger("graphvault.engine")


def translate_db_error(exc: sqlite3.Error) -> Exception:
    """Map a driver error onto the public taxonomy without leaking SQL."""
    msg = str(exc).upper()
    if isinstance(exc, sqlite3.IntegrityError):
        if "UNIQUE" in msg:
            return ConflictError("Uniqueness constraint violated")
        if "FOREIGN KEY" in msg:
            return ValidationError("Referenced entity does not exist")
    return StorageError("Database transaction failed and was rolled back")


class GraphVaultEngine(BulkSyncMixin, SnapshotMixin, RestoreMixin):
    """
    Native async engine for GRAPHVAULT.

    Exposes ``apply_bulk_changes``, ``create_snapshot``, ``get_snapshot``,
    ``list_snapshots`` and ``restore_snapshot``.
    """

    def __init__(self, pool: GraphVaultPool, config: GraphVaultConfig):
        self._pool = pool
        self._config = config

    @classmethod
    async def open(cls, config: GraphVaultConfig) -> GraphVaultEngine:
        """Build a pool for ``config.db_path``, migrate the schema and return an engine."""
        config.ensure_dirs()
        pool = GraphVaultPool(
            config.db_path,
            min_connections=config.pool_min,
            max_connections=config.pool_max,
            busy_timeout_ms=config.busy_timeout_ms,
        )
        engine = cls(pool, config)
        await engine.init_db()
        return engine

    @property
    def config(self) -> GraphVaultConfig:
        return self._config

    async def init_db(self) -> int:
        """Create tables and apply pending migrations."""
        async with self.session() as conn:
            return await run_migrations(conn)

    async def close(self) -> None:
        await self._pool.close()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[aiosqlite.Connection]:
        """Autocommit connection from the pool, for reads."""
        async with self._pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Write transaction: commit on success, roll back on any error.

        ``BEGIN IMMEDIATE`` takes the database write lock up front, so
        concurrent writers queue on ``busy_timeout`` instead of
        interleaving. Cancellation also rolls back.
        """
        async with self.session() as conn:
            try:
                await conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                logger.error("Could not open transaction: %s", e)
                raise translate_db_error(e) from e

            try:
                yield conn
            except sqlite3.Error as e:
                await self._rollback(conn)
                logger.error("Transaction rolled back: %s", e)
                raise translate_db_error(e) from e
            except OverflowError as e:
                # Python int outside SQLite's 64-bit INTEGER range.
                await self._rollback(conn)
                raise ValidationError("integer value out of range") from e
            except BaseException:
                await self._rollback(conn)
                raise

            try:
                await conn.commit()
            except sqlite3.Error as e:
                await self._rollback(conn)
                logger.error("Commit failed: %s", e)
                raise translate_db_error(e) from e

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        try:
            await conn.rollback()
        except sqlite3.Error as e:
            logger.warning("Rollback failed: %s", e)

    async def _log_change(
        self,
        conn: aiosqlite.Connection,
        project_id: int,
        user_id: int,
        action: str,
        details: dict[str, Any],
        service_id: Optional[int] = None,
    ) -> int:
        return await GraphRepository(conn).insert_history(
            project_id, user_id, action, details, service_id=service_id
        )

    async def _require_project(self, conn: aiosqlite.Connection, project_id: int) -> dict:
        project = await GraphRepository(conn).get_project(project_id)
        if project is None:
            raise ProjectNotFound(f"Project {project_id} not found")
        return project

    # ─── Projects (minimal registry) ─────────────────────────────────

    async def create_project(
        self, name: str, slug: str, owner_id: int, description: str = ""
    ) -> dict:
        async with self.transaction() as conn:
            project = await GraphRepository(conn).create_project(name, slug, owner_id, description)
        logger.info("Created project %d (%s)", project["id"], slug)
        return project

    async def get_project(self, project_id: int) -> dict:
        async with self.session() as conn:
            return await self._require_project(conn, project_id)

    # ─── Reads ───────────────────────────────────────────────────────

    async def get_graph(self, project_id: int) -> dict[str, Any]:
        """Live services and dependencies of a project."""
        async with self.session() as conn:
            await self._require_project(conn, project_id)
            repo = GraphRepository(conn)
            services = await repo.find_services(project_id)
            dependencies = await repo.find_dependencies(project_id)
        return {
            "project_id": project_id,
            "services": [s.to_dict() for s in services],
            "dependencies": [d.to_dict() for d in dependencies],
        }

    async def list_history(self, project_id: int, limit: int = 50) -> list[dict]:
        async with self.session() as conn:
            await self._require_project(conn, project_id)
            return await GraphRepository(conn).list_history(project_id, limit)

    async def health_check(self) -> bool:
        try:
            async with self.session() as conn:
                async with conn.execute("SELECT 1") as cursor:
                    await cursor.fetchone()
            return True
        except (sqlite3.Error, OSError):
            return False


__all__ = ["GraphVaultEngine", "translate_db_error"]
