"""Snapshot mixin — create, get and list versioned graph snapshots."""

from __future__ import annotations

import logging
from typing import Any, Optional

import aiosqlite

from graphvault.codec import encode_payload
from graphvault.engine.models import Snapshot
from graphvault.exceptions import SnapshotNotFound
from graphvault.repository import GraphRepository
from graphvault.temporal import now_iso

logger = logging.getLogger("graphvault.snapshots")


class SnapshotMixin:
    async def create_snapshot(
        self,
        project_id: int,
        actor_id: int,
        notes: str = "",
        conn: Optional[aiosqlite.Connection] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Snapshot:
        """Capture the project's live graph as a new immutable snapshot.

        Args:
            project_id: Project whose graph is captured.
            actor_id: Identity recorded as the snapshot creator.
            notes: Free-text notes stored with the snapshot.
            conn: Connection holding an open write transaction. When given,
                the snapshot joins that transaction and nothing is committed
                here; otherwise a transaction is opened and committed.
            metadata: Extra keys merged into the payload metadata.

        Returns:
            The stored snapshot with its assigned ``version_num``.
        """
        if conn is not None:
            return await self._create_snapshot_impl(conn, project_id, actor_id, notes, metadata)

        async with self.transaction() as conn:
            snapshot = await self._create_snapshot_impl(conn, project_id, actor_id, notes, metadata)
            await self._log_change(
                conn,
                project_id,
                actor_id,
                "snapshot_create",
                {"snapshot_id": snapshot.id, "version_num": snapshot.version_num},
            )
        logger.info(
            "Snapshot v%d (#%d) created for project %d",
            snapshot.version_num,
            snapshot.id,
            project_id,
        )
        return snapshot

    async def _create_snapshot_impl(
        self,
        conn: aiosqlite.Connection,
        project_id: int,
        actor_id: int,
        notes: str,
        metadata: Optional[dict[str, Any]],
    ) -> Snapshot:
        await self._require_project(conn, project_id)
        repo = GraphRepository(conn)

        services = await repo.find_services(project_id)
        dependencies = await repo.find_dependencies(project_id)
        meta = {"created_by": actor_id, "timestamp": now_iso()}
        if metadata:
            meta.update(metadata)
        payload = encode_payload(services, dependencies, meta)

        version_num = await repo.next_snapshot_version(project_id)
        return await repo.insert_snapshot(project_id, version_num, payload, actor_id, notes)

    async def get_snapshot(self, snapshot_id: int) -> Snapshot:
        async with self.session() as conn:
            snapshot = await GraphRepository(conn).get_snapshot(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFound(f"Snapshot {snapshot_id} not found")
        return snapshot

    async def list_snapshots(self, project_id: int) -> list[Snapshot]:
        """All snapshots of a project, newest version first."""
        async with self.session() as conn:
            await self._require_project(conn, project_id)
            return await GraphRepository(conn).list_snapshots(project_id)
