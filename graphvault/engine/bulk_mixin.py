"""Bulk synchronization mixin — one atomic batch of graph mutations."""

from __future__ import annotations

import logging
from typing import Optional

import aiosqlite

from graphvault.engine.models import (
    BulkResult,
    validate_dependency_endpoints,
    validate_service_fields,
)
from graphvault.exceptions import DependencyNotFound, ServiceNotFound, ValidationError
from graphvault.models import BulkSaveRequest
from graphvault.repository import GraphRepository

logger = logging.getLogger("graphvault.bulk")


class BulkSyncMixin:
    async def apply_bulk_changes(
        self, project_id: int, actor_id: int, batch: BulkSaveRequest
    ) -> BulkResult:
        """Apply a batch of node/edge creates, updates and deletes atomically.

        Steps run in a fixed order inside one transaction:

        1. delete dependencies
        2. delete services of the project (edges cascade)
        3. update services
        4. create services
        5. update dependencies
        6. create dependencies (endpoints may be services from step 4)

        Any failure rolls back every step.

        Raises:
            ProjectNotFound: Unknown project.
            ServiceNotFound: A service to update is not in the project.
            DependencyNotFound: A dependency to update does not exist.
            ValidationError: A created item is malformed or an edge endpoint
                does not resolve inside the project.
        """
        async with self.transaction() as conn:
            await self._require_project(conn, project_id)
            result = await self._apply_bulk_impl(conn, project_id, actor_id, batch)
            await self._log_change(
                conn,
                project_id,
                actor_id,
                "bulk_save",
                {
                    "created_services": len(result.created_services),
                    "created_dependencies": len(result.created_dependencies),
                    "updated_services": len(result.updated_services),
                    "updated_dependencies": len(result.updated_dependencies),
                    "deleted_services": result.deleted_services_count,
                    "deleted_dependencies": result.deleted_dependencies_count,
                },
            )

        logger.info(
            "Bulk save on project %d: +%d/~%d/-%d services, +%d/~%d/-%d dependencies",
            project_id,
            len(result.created_services),
            len(result.updated_services),
            result.deleted_services_count,
            len(result.created_dependencies),
            len(result.updated_dependencies),
            result.deleted_dependencies_count,
        )
        return result

    async def _apply_bulk_impl(
        self,
        conn: aiosqlite.Connection,
        project_id: int,
        actor_id: int,
        batch: BulkSaveRequest,
    ) -> BulkResult:
        repo = GraphRepository(conn)
        result = BulkResult()

        # 1. Edges first so node deletes never trip over edges slated for removal.
        if batch.deleted_dependencies:
            result.deleted_dependencies_count = await repo.delete_dependencies(
                batch.deleted_dependencies
            )

        # 2. Nodes of this project only; referencing edges cascade.
        if batch.deleted_services:
            result.deleted_services_count = await repo.delete_services(
                batch.deleted_services, project_id
            )

        # 3. Partial merge; position is always overwritten.
        for update in batch.updated_services:
            service = await repo.get_service(update.id, project_id)
            if service is None:
                raise ServiceNotFound(f"service {update.id} not found for update")

            changes = update.present_fields()
            validate_service_fields(
                changes.get("name"),
                changes.get("type"),
                changes.get("status"),
                changes.get("environment"),
                partial=True,
            )
            for name, value in changes.items():
                setattr(service, name, value)
            service.pos_x = update.pos_x
            service.pos_y = update.pos_y
            service.updated_by = actor_id

            result.updated_services.append(await repo.save_service(service))

        # 4. New nodes.
        refs: dict[str, int] = {}
        for create in batch.services:
            validate_service_fields(create.name, create.type, create.status, create.environment)
            if create.ref is not None and create.ref in refs:
                raise ValidationError(f"duplicate service ref {create.ref!r}")
            service = await repo.insert_service(
                project_id, create.model_dump(exclude={"ref"}), created_by=actor_id
            )
            if create.ref is not None:
                refs[create.ref] = service.id
            result.created_services.append(service)

        # 5. Dependency updates (project scoping is opt-in).
        scope = project_id if self._config.scope_dependency_updates else None
        for update in batch.updated_dependencies:
            dependency = await repo.get_dependency(update.id, scope)
            if dependency is None:
                raise DependencyNotFound(f"dependency {update.id} not found for update")

            for name, value in update.present_fields().items():
                setattr(dependency, name, value)
            dependency.updated_by = actor_id

            result.updated_dependencies.append(await repo.save_dependency(dependency))

        # 6. New edges, after every node create has materialized.
        for create in batch.dependencies:
            source_id = _resolve_endpoint(create.source_id, create.source_ref, refs, "source")
            target_id = _resolve_endpoint(create.target_id, create.target_ref, refs, "target")
            validate_dependency_endpoints(source_id, target_id)
            if await repo.get_service(source_id, project_id) is None:
                raise ValidationError(f"source service {source_id} not found")
            if await repo.get_service(target_id, project_id) is None:
                raise ValidationError(f"target service {target_id} not found")

            dependency = await repo.insert_dependency(
                source_id,
                target_id,
                create.model_dump(exclude={"source_id", "target_id", "source_ref", "target_ref"}),
                created_by=actor_id,
            )
            result.created_dependencies.append(dependency)

        return result


def _resolve_endpoint(endpoint_id: int, ref: Optional[str], refs: dict[str, int], role: str) -> int:
    if ref is None:
        return endpoint_id
    if ref not in refs:
        raise ValidationError(f"{role} ref {ref!r} does not name a service created in this batch")
    return refs[ref]
