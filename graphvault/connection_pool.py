"""
GRAPHVAULT v1.0 — Async Connection Pool.

Bounded asyncio pool of aiosqlite connections. Connections run in
autocommit mode so every transaction boundary is explicit.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

logger = logging.getLogger("graphvault.pool")

# Applied to every new connection, in order.
CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)


class GraphVaultPool:
    """
    Connection pool for GRAPHVAULT.

    - At most ``max_connections`` connections are checked out at once;
      further callers wait.
    - Idle connections are reused; a connection is dropped instead of
      returned when its holder raised or left a transaction open.
    - Foreign keys are on for every connection (edge cascades need them)
      and ``busy_timeout`` makes writers queue on the database lock.
    """

    def __init__(
        self,
        db_path: str,
        min_connections: int = 2,
        max_connections: int = 10,
        busy_timeout_ms: int = 5000,
    ):
        self.db_path = str(Path(db_path).expanduser())
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.busy_timeout_ms = busy_timeout_ms

        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()
        self._slots = asyncio.Semaphore(max_connections)
        self._open_lock = asyncio.Lock()
        self._active_count = 0
        self._initialized = False
        self._closed = False

    @property
    def size(self) -> int:
        """Connections currently open, idle or checked out."""
        return self._active_count

    async def initialize(self) -> None:
        """Open ``min_connections`` connections up front."""
        async with self._open_lock:
            if self._initialized:
                return
            logger.info(
                "Opening pool for %s (min=%d, max=%d)",
                self.db_path,
                self.min_connections,
                self.max_connections,
            )
            for _ in range(self.min_connections):
                self._idle.put_nowait(await self._open())
            self._initialized = True
            self._closed = False

    async def _open(self) -> aiosqlite.Connection:
        try:
            conn = await aiosqlite.connect(self.db_path, isolation_level=None)
            conn.row_factory = aiosqlite.Row
            for pragma in CONNECTION_PRAGMAS:
                await conn.execute(pragma)
            await conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}")
        except (sqlite3.Error, OSError) as e:
            logger.critical("Cannot open database %s: %s", self.db_path, e)
            raise
        self._active_count += 1
        return conn

    async def _discard(self, conn: aiosqlite.Connection) -> None:
        self._active_count = max(0, self._active_count - 1)
        try:
            await conn.close()
        except (sqlite3.Error, ValueError) as e:
            logger.warning("Error closing connection: %s", e)

    async def _usable(self, conn: aiosqlite.Connection) -> bool:
        """Alive and not holding a transaction left behind by a previous user."""
        try:
            if conn.in_transaction:
                return False
            async with conn.execute("SELECT 1") as cursor:
                await cursor.fetchone()
        except (sqlite3.Error, ValueError):
            return False
        return True

    async def _checkout(self) -> aiosqlite.Connection:
        while not self._idle.empty():
            conn = self._idle.get_nowait()
            if await self._usable(conn):
                return conn
            logger.warning("Dropping unusable pooled connection")
            await self._discard(conn)
        return await self._open()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Check out a connection for the duration of the block.

        A connection whose user raised is closed rather than returned,
        so an aborted transaction can never leak into the next caller.
        """
        if not self._initialized:
            await self.initialize()

        async with self._slots:
            conn = await self._checkout()
            try:
                yield conn
            except BaseException:
                await self._discard(conn)
                raise
            if self._closed:
                # Checked out while the pool was closing.
                await self._discard(conn)
            else:
                self._idle.put_nowait(conn)

    async def close(self) -> None:
        """Close idle connections now and checked-out ones on release."""
        logger.info("Closing connection pool for %s", self.db_path)
        self._closed = True
        while not self._idle.empty():
            await self._discard(self._idle.get_nowait())
        self._initialized = False
