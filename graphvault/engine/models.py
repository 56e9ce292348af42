"""GRAPHVAULT Engine — Graph entities, results and row helpers."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from graphvault.exceptions import ValidationError

logger = logging.getLogger("graphvault.engine")

SERVICE_STATUSES = ("active", "inactive")
SERVICE_ENVIRONMENTS = ("production", "development")

# Columns copied verbatim between live rows and snapshot payloads.
SERVICE_FIELDS = (
    "name",
    "description",
    "type",
    "status",
    "version",
    "language",
    "environment",
    "deploy_url",
    "domain",
    "git_repo",
    "health_metrics",
    "metadata",
    "pos_x",
    "pos_y",
    "notes",
)
DEPENDENCY_FIELDS = ("type", "description", "protocol", "method")


@dataclass
class Service:
    id: int
    project_id: int
    name: str
    type: str
    description: str = ""
    status: str = "active"
    version: str = ""
    language: str = ""
    environment: str = "production"
    deploy_url: str = ""
    domain: str = ""
    git_repo: str = ""
    health_metrics: Any = None
    metadata: Any = None
    pos_x: int = 0
    pos_y: int = 0
    notes: str = ""
    created_by: int = 0
    updated_by: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Dependency:
    id: int
    source_id: int
    target_id: int
    type: str = ""
    description: str = ""
    protocol: str = ""
    method: str = ""
    created_by: int = 0
    updated_by: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Snapshot:
    """Immutable, versioned capture of one project's graph."""

    id: int
    project_id: int
    version_num: int
    payload: str
    created_by: int
    created_at: str
    notes: str = ""

    @property
    def data(self) -> dict:
        from graphvault.codec import decode_payload

        return decode_payload(self.payload)

    def to_dict(self, include_payload: bool = True) -> dict:
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "version_num": self.version_num,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "notes": self.notes,
        }
        if include_payload:
            d["snapshot"] = self.data
        return d


@dataclass
class BulkResult:
    created_services: list[Service] = field(default_factory=list)
    created_dependencies: list[Dependency] = field(default_factory=list)
    updated_services: list[Service] = field(default_factory=list)
    updated_dependencies: list[Dependency] = field(default_factory=list)
    deleted_services_count: int = 0
    deleted_dependencies_count: int = 0

    def to_dict(self) -> dict:
        return {
            "created_services": [s.to_dict() for s in self.created_services],
            "created_dependencies": [d.to_dict() for d in self.created_dependencies],
            "updated_services": [s.to_dict() for s in self.updated_services],
            "updated_dependencies": [d.to_dict() for d in self.updated_dependencies],
            "deleted_services_count": self.deleted_services_count,
            "deleted_dependencies_count": self.deleted_dependencies_count,
        }


@dataclass
class RestoreResult:
    snapshot_id: int
    version_num: int
    project_id: int
    backup_snapshot_id: Optional[int] = None
    restored_services: int = 0
    restored_dependencies: int = 0
    skipped_services: int = 0
    skipped_dependencies: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


# ─── Field validation ────────────────────────────────────────────────


def validate_service_fields(
    name: Optional[str],
    service_type: Optional[str],
    status: Optional[str] = None,
    environment: Optional[str] = None,
    partial: bool = False,
) -> None:
    """Check required node attributes.

    With ``partial`` set, absent (None or empty) values are accepted and
    only supplied values are checked.

    Raises:
        ValidationError: On the first offending attribute.
    """
    if name or not partial:
        if not name or not name.strip():
            raise ValidationError("service name is required")
        if not 2 <= len(name) <= 100:
            raise ValidationError("service name must be 2-100 characters")
    if service_type or not partial:
        if not service_type or not service_type.strip():
            raise ValidationError("service type is required")
        if not 2 <= len(service_type) <= 50:
            raise ValidationError("service type must be 2-50 characters")
    if status and status not in SERVICE_STATUSES:
        raise ValidationError(f"invalid service status: {status!r}")
    if environment and environment not in SERVICE_ENVIRONMENTS:
        raise ValidationError(f"invalid service environment: {environment!r}")


def validate_dependency_endpoints(source_id: Optional[int], target_id: Optional[int]) -> None:
    if not source_id:
        raise ValidationError("dependency source_id is required")
    if not target_id:
        raise ValidationError("dependency target_id is required")


# ─── Row helpers ─────────────────────────────────────────────────────

SERVICE_COLUMNS = (
    "id, project_id, name, description, type, status, version, language, "
    "environment, deploy_url, domain, git_repo, health_metrics, metadata, "
    "pos_x, pos_y, notes, created_by, updated_by, created_at, updated_at"
)
DEPENDENCY_COLUMNS = (
    "id, source_id, target_id, type, description, protocol, method, "
    "created_by, updated_by, created_at, updated_at"
)
SNAPSHOT_COLUMNS = "id, project_id, version_num, payload, created_by, created_at, notes"


def _load_json(raw: Optional[str], column: str, row_id: int) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Unreadable %s on service %d, treating as null", column, row_id)
        return None


def row_to_service(row) -> Service:
    return Service(
        id=row[0],
        project_id=row[1],
        name=row[2],
        description=row[3],
        type=row[4],
        status=row[5],
        version=row[6],
        language=row[7],
        environment=row[8],
        deploy_url=row[9],
        domain=row[10],
        git_repo=row[11],
        health_metrics=_load_json(row[12], "health_metrics", row[0]),
        metadata=_load_json(row[13], "metadata", row[0]),
        pos_x=row[14],
        pos_y=row[15],
        notes=row[16],
        created_by=row[17],
        updated_by=row[18],
        created_at=row[19],
        updated_at=row[20],
    )


def row_to_dependency(row) -> Dependency:
    return Dependency(
        id=row[0],
        source_id=row[1],
        target_id=row[2],
        type=row[3],
        description=row[4],
        protocol=row[5],
        method=row[6],
        created_by=row[7],
        updated_by=row[8],
        created_at=row[9],
        updated_at=row[10],
    )


def row_to_snapshot(row) -> Snapshot:
    return Snapshot(
        id=row[0],
        project_id=row[1],
        version_num=row[2],
        payload=row[3],
        created_by=row[4],
        created_at=row[5],
        notes=row[6] or "",
    )
