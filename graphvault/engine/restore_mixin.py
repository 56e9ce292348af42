"""Restore mixin — replace a project's live graph with a stored snapshot."""

from __future__ import annotations

import logging

import aiosqlite

from graphvault.codec import decode_dependency, decode_payload, decode_service
from graphvault.engine.models import RestoreResult, Snapshot
from graphvault.exceptions import SerializationError, SnapshotNotFound
from graphvault.repository import GraphRepository

logger = logging.getLogger("graphvault.restore")

BACKUP_NOTES = "Automatic backup before restore"


class RestoreMixin:
    async def restore_snapshot(
        self, snapshot_id: int, actor_id: int, force: bool = False
    ) -> RestoreResult:
        """Restore a project's graph from a snapshot in one transaction.

        Unless ``force`` is set, the live graph is first captured as a
        backup snapshot inside the same transaction, so a failed restore
        leaves no backup behind either.

        Service and dependency records that cannot be decoded are skipped
        and counted in the result, as are dependencies whose endpoints did
        not survive the restore. Edge endpoints are remapped from the ids
        stored in the payload to the ids the restored services receive.

        Raises:
            SnapshotNotFound: Unknown snapshot.
            SerializationError: The payload as a whole cannot be parsed.
            StorageError: Any database failure (everything rolled back).
        """
        async with self.transaction() as conn:
            repo = GraphRepository(conn)
            snapshot = await repo.get_snapshot(snapshot_id)
            if snapshot is None:
                raise SnapshotNotFound(f"Snapshot {snapshot_id} not found")

            data = decode_payload(snapshot.payload)
            result = RestoreResult(
                snapshot_id=snapshot.id,
                version_num=snapshot.version_num,
                project_id=snapshot.project_id,
            )

            if not force:
                backup = await self.create_snapshot(
                    snapshot.project_id,
                    actor_id,
                    notes=f"{BACKUP_NOTES} (snapshot #{snapshot.id}, v{snapshot.version_num})",
                    conn=conn,
                    metadata={"backup_before_restore": True, "restored_from": snapshot.id},
                )
                result.backup_snapshot_id = backup.id

            await repo.delete_project_services(snapshot.project_id)
            await self._restore_graph(conn, snapshot, data, actor_id, result)

            await self._log_change(
                conn,
                snapshot.project_id,
                actor_id,
                "snapshot_restore",
                result.to_dict(),
            )

        logger.info(
            "Restored project %d from snapshot v%d (#%d): %d services, %d dependencies, "
            "%d/%d skipped",
            result.project_id,
            result.version_num,
            result.snapshot_id,
            result.restored_services,
            result.restored_dependencies,
            result.skipped_services,
            result.skipped_dependencies,
        )
        return result

    async def _restore_graph(
        self,
        conn: aiosqlite.Connection,
        snapshot: Snapshot,
        data: dict,
        actor_id: int,
        result: RestoreResult,
    ) -> None:
        repo = GraphRepository(conn)
        id_map: dict[int, int] = {}

        services = data.get("services") or []
        if not isinstance(services, list):
            raise SerializationError("snapshot services must be a list")
        for item in services:
            try:
                old_id, fields, created_at = decode_service(item)
            except SerializationError as e:
                logger.warning("Skipping service in snapshot #%d: %s", snapshot.id, e)
                result.skipped_services += 1
                continue

            service = await repo.insert_service(
                snapshot.project_id,
                fields,
                created_by=actor_id,
                updated_by=actor_id,
                created_at=created_at,
            )
            if old_id is not None:
                id_map[old_id] = service.id
            result.restored_services += 1

        dependencies = data.get("dependencies") or []
        if not isinstance(dependencies, list):
            raise SerializationError("snapshot dependencies must be a list")
        for item in dependencies:
            try:
                old_source, old_target, fields, created_at = decode_dependency(item)
            except SerializationError as e:
                logger.warning("Skipping dependency in snapshot #%d: %s", snapshot.id, e)
                result.skipped_dependencies += 1
                continue

            source_id = id_map.get(old_source)
            target_id = id_map.get(old_target)
            if source_id is None or target_id is None:
                logger.warning(
                    "Skipping dependency %s->%s in snapshot #%d: endpoint not restored",
                    old_source,
                    old_target,
                    snapshot.id,
                )
                result.skipped_dependencies += 1
                continue

            await repo.insert_dependency(
                source_id,
                target_id,
                fields,
                created_by=actor_id,
                updated_by=actor_id,
                created_at=created_at,
            )
            result.restored_dependencies += 1
