"""
GRAPHVAULT v1.0 — Graph Repository.

Row-level storage operations bound to a single aiosqlite connection.
The repository never begins or ends transactions; it runs inside
whatever transaction the caller holds on ``conn``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

import aiosqlite

from graphvault.engine.models import (
    DEPENDENCY_COLUMNS,
    SERVICE_COLUMNS,
    SERVICE_FIELDS,
    SNAPSHOT_COLUMNS,
    Dependency,
    Service,
    Snapshot,
    row_to_dependency,
    row_to_service,
    row_to_snapshot,
)
from graphvault.temporal import now_iso

logger = logging.getLogger("graphvault.repository")

_JSON_COLUMNS = ("health_metrics", "metadata")


def _dump_json(value: Any) -> Optional[str]:
    return None if value is None else json.dumps(value, sort_keys=True)


def _placeholders(ids: list) -> str:
    return ",".join("?" * len(ids))


class GraphRepository:
    def __init__(self, conn: aiosqlite.Connection):
        self.conn = conn

    # ─── Projects ────────────────────────────────────────────────────

    async def create_project(
        self, name: str, slug: str, owner_id: int, description: str = ""
    ) -> dict:
        ts = now_iso()
        async with self.conn.execute(
            "INSERT INTO projects (name, slug, description, owner_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (name, slug, description, owner_id, ts, ts),
        ) as cursor:
            project_id = cursor.lastrowid
        return {
            "id": project_id,
            "name": name,
            "slug": slug,
            "description": description,
            "owner_id": owner_id,
            "created_at": ts,
            "updated_at": ts,
        }

    async def get_project(self, project_id: int) -> Optional[dict]:
        async with self.conn.execute(
            "SELECT id, name, slug, description, owner_id, created_at, updated_at "
            "FROM projects WHERE id = ?",
            (project_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None
        keys = ("id", "name", "slug", "description", "owner_id", "created_at", "updated_at")
        return dict(zip(keys, tuple(row)))

    # ─── Services ────────────────────────────────────────────────────

    async def get_service(self, service_id: int, project_id: Optional[int] = None) -> Optional[Service]:
        """Point lookup, optionally scoped to a project."""
        query = f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = ?"
        params: list = [service_id]
        if project_id is not None:
            query += " AND project_id = ?"
            params.append(project_id)
        async with self.conn.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return row_to_service(row) if row else None

    async def find_services(self, project_id: int) -> list[Service]:
        async with self.conn.execute(
            f"SELECT {SERVICE_COLUMNS} FROM services WHERE project_id = ? ORDER BY id",
            (project_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row_to_service(r) for r in rows]

    async def insert_service(
        self,
        project_id: int,
        fields: dict,
        created_by: int,
        updated_by: Optional[int] = None,
        created_at: Optional[str] = None,
    ) -> Service:
        """Insert a service and return it with its generated id and timestamps.

        Empty ``status``/``environment`` fall back to the column defaults.
        """
        ts = now_iso()
        values = {name: fields.get(name) for name in SERVICE_FIELDS}
        values["status"] = values["status"] or "active"
        values["environment"] = values["environment"] or "production"
        for name in ("description", "version", "language", "deploy_url", "domain", "git_repo", "notes"):
            values[name] = values[name] or ""
        values["pos_x"] = values["pos_x"] or 0
        values["pos_y"] = values["pos_y"] or 0

        row = [values[name] for name in SERVICE_FIELDS]
        for col in _JSON_COLUMNS:
            row[SERVICE_FIELDS.index(col)] = _dump_json(values[col])

        columns = ", ".join(SERVICE_FIELDS)
        async with self.conn.execute(
            f"INSERT INTO services (project_id, {columns}, created_by, updated_by, created_at, updated_at) "
            f"VALUES (?, {_placeholders(list(SERVICE_FIELDS))}, ?, ?, ?, ?)",
            [project_id, *row, created_by, updated_by, created_at or ts, ts],
        ) as cursor:
            service_id = cursor.lastrowid

        return Service(
            id=service_id,
            project_id=project_id,
            created_by=created_by,
            updated_by=updated_by,
            created_at=created_at or ts,
            updated_at=ts,
            **values,
        )

    async def save_service(self, service: Service) -> Service:
        """Persist every mutable column of ``service`` and bump ``updated_at``."""
        service.updated_at = now_iso()
        assignments = ", ".join(f"{name} = ?" for name in SERVICE_FIELDS)
        row = [getattr(service, name) for name in SERVICE_FIELDS]
        for col in _JSON_COLUMNS:
            row[SERVICE_FIELDS.index(col)] = _dump_json(getattr(service, col))
        await self.conn.execute(
            f"UPDATE services SET {assignments}, updated_by = ?, updated_at = ? WHERE id = ?",
            [*row, service.updated_by, service.updated_at, service.id],
        )
        return service

    async def delete_services(self, service_ids: Iterable[int], project_id: int) -> int:
        """Delete services of ``project_id`` by id; foreign ids are ignored.

        Referencing dependencies are removed by the FK cascade.
        """
        ids = list(service_ids)
        if not ids:
            return 0
        async with self.conn.execute(
            f"DELETE FROM services WHERE project_id = ? AND id IN ({_placeholders(ids)})",
            [project_id, *ids],
        ) as cursor:
            return cursor.rowcount

    async def delete_project_services(self, project_id: int) -> int:
        async with self.conn.execute(
            "DELETE FROM services WHERE project_id = ?", (project_id,)
        ) as cursor:
            return cursor.rowcount

    # ─── Dependencies ────────────────────────────────────────────────

    async def get_dependency(
        self, dependency_id: int, project_id: Optional[int] = None
    ) -> Optional[Dependency]:
        """Point lookup; with ``project_id`` both endpoints must belong to it."""
        if project_id is None:
            query = f"SELECT {DEPENDENCY_COLUMNS} FROM dependencies WHERE id = ?"
            params: list = [dependency_id]
        else:
            cols = ", ".join(f"d.{c.strip()}" for c in DEPENDENCY_COLUMNS.split(","))
            query = (
                f"SELECT {cols} FROM dependencies d "
                "JOIN services s ON s.id = d.source_id "
                "JOIN services t ON t.id = d.target_id "
                "WHERE d.id = ? AND s.project_id = ? AND t.project_id = ?"
            )
            params = [dependency_id, project_id, project_id]
        async with self.conn.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return row_to_dependency(row) if row else None

    async def find_dependencies(self, project_id: int) -> list[Dependency]:
        """Dependencies whose source or target belongs to the project."""
        async with self.conn.execute(
            f"SELECT {DEPENDENCY_COLUMNS} FROM dependencies "
            "WHERE source_id IN (SELECT id FROM services WHERE project_id = ?) "
            "OR target_id IN (SELECT id FROM services WHERE project_id = ?) "
            "ORDER BY id",
            (project_id, project_id),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row_to_dependency(r) for r in rows]

    async def insert_dependency(
        self,
        source_id: int,
        target_id: int,
        fields: dict,
        created_by: int,
        updated_by: Optional[int] = None,
        created_at: Optional[str] = None,
    ) -> Dependency:
        ts = now_iso()
        values = {
            "type": fields.get("type") or "",
            "description": fields.get("description") or "",
            "protocol": fields.get("protocol") or "",
            "method": fields.get("method") or "",
        }
        async with self.conn.execute(
            "INSERT INTO dependencies (source_id, target_id, type, description, protocol, method, "
            "created_by, updated_by, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                source_id,
                target_id,
                values["type"],
                values["description"],
                values["protocol"],
                values["method"],
                created_by,
                updated_by,
                created_at or ts,
                ts,
            ),
        ) as cursor:
            dependency_id = cursor.lastrowid
        return Dependency(
            id=dependency_id,
            source_id=source_id,
            target_id=target_id,
            created_by=created_by,
            updated_by=updated_by,
            created_at=created_at or ts,
            updated_at=ts,
            **values,
        )

    async def save_dependency(self, dependency: Dependency) -> Dependency:
        dependency.updated_at = now_iso()
        await self.conn.execute(
            "UPDATE dependencies SET type = ?, description = ?, protocol = ?, method = ?, "
            "updated_by = ?, updated_at = ? WHERE id = ?",
            (
                dependency.type,
                dependency.description,
                dependency.protocol,
                dependency.method,
                dependency.updated_by,
                dependency.updated_at,
                dependency.id,
            ),
        )
        return dependency

    async def delete_dependencies(self, dependency_ids: Iterable[int]) -> int:
        """Delete dependencies by id; unknown ids do not count."""
        ids = list(dependency_ids)
        if not ids:
            return 0
        async with self.conn.execute(
            f"DELETE FROM dependencies WHERE id IN ({_placeholders(ids)})", ids
        ) as cursor:
            return cursor.rowcount

    # ─── Snapshots ───────────────────────────────────────────────────

    async def next_snapshot_version(self, project_id: int) -> int:
        """Reserve the next version number for ``project_id``.

        Must run inside a write transaction. The counter row is seeded
        from ``MAX(version_num)`` the first time a project is seen.
        """
        await self.conn.execute(
            "INSERT INTO snapshot_counters (project_id, last_version) "
            "VALUES (?, (SELECT COALESCE(MAX(version_num), 0) + 1 FROM snapshots WHERE project_id = ?)) "
            "ON CONFLICT(project_id) DO UPDATE SET last_version = last_version + 1",
            (project_id, project_id),
        )
        async with self.conn.execute(
            "SELECT last_version FROM snapshot_counters WHERE project_id = ?", (project_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0]

    async def insert_snapshot(
        self, project_id: int, version_num: int, payload: str, created_by: int, notes: str = ""
    ) -> Snapshot:
        ts = now_iso()
        async with self.conn.execute(
            "INSERT INTO snapshots (project_id, version_num, payload, created_by, created_at, notes) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (project_id, version_num, payload, created_by, ts, notes),
        ) as cursor:
            snapshot_id = cursor.lastrowid
        return Snapshot(
            id=snapshot_id,
            project_id=project_id,
            version_num=version_num,
            payload=payload,
            created_by=created_by,
            created_at=ts,
            notes=notes,
        )

    async def get_snapshot(self, snapshot_id: int) -> Optional[Snapshot]:
        async with self.conn.execute(
            f"SELECT {SNAPSHOT_COLUMNS} FROM snapshots WHERE id = ?", (snapshot_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return row_to_snapshot(row) if row else None

    async def list_snapshots(self, project_id: int) -> list[Snapshot]:
        async with self.conn.execute(
            f"SELECT {SNAPSHOT_COLUMNS} FROM snapshots WHERE project_id = ? ORDER BY version_num DESC",
            (project_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row_to_snapshot(r) for r in rows]

    # ─── Change History ──────────────────────────────────────────────

    async def insert_history(
        self,
        project_id: int,
        user_id: int,
        action: str,
        details: dict,
        service_id: Optional[int] = None,
    ) -> int:
        async with self.conn.execute(
            "INSERT INTO change_history (project_id, service_id, user_id, action, details, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (project_id, service_id, user_id, action, json.dumps(details, sort_keys=True), now_iso()),
        ) as cursor:
            return cursor.lastrowid

    async def list_history(self, project_id: int, limit: int = 50) -> list[dict]:
        async with self.conn.execute(
            "SELECT id, project_id, service_id, user_id, action, details, timestamp "
            "FROM change_history WHERE project_id = ? ORDER BY id DESC LIMIT ?",
            (project_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            {
                "id": r[0],
                "project_id": r[1],
                "service_id": r[2],
                "user_id": r[3],
                "action": r[4],
                "details": json.loads(r[5]) if r[5] else {},
                "timestamp": r[6],
            }
            for r in rows
        ]
