"""
GRAPHVAULT v1.0 — Request Models.

Pydantic models for batch, snapshot and project requests. Shared by the
engine (as its input contract), the REST API and the CLI.
"""

from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import BaseModel, Field

# SQLite INTEGER is a signed 64-bit value.
SQLITE_INT_MAX = 2**63 - 1

Coordinate = Annotated[int, Field(ge=-SQLITE_INT_MAX - 1, le=SQLITE_INT_MAX)]
RowId = Annotated[int, Field(ge=0, le=SQLITE_INT_MAX)]


class ServiceCreate(BaseModel):
    ref: Optional[str] = Field(
        None, max_length=100, description="Client-side placeholder new dependencies may point at"
    )
    name: str = Field("", max_length=100)
    type: str = Field("", max_length=50)
    description: str = ""
    status: str = ""
    version: str = ""
    language: str = ""
    environment: str = ""
    deploy_url: str = Field("", max_length=255)
    domain: str = Field("", max_length=255)
    git_repo: str = Field("", max_length=255)
    health_metrics: Any = None
    metadata: Any = None
    pos_x: Coordinate = 0
    pos_y: Coordinate = 0
    notes: str = ""


class ServiceUpdate(BaseModel):
    """Partial update of a service.

    Every attribute except position is optional; only attributes that
    were sent and are non-empty overwrite stored values. ``pos_x`` and
    ``pos_y`` are always written, so 0 is a real coordinate.
    """

    id: RowId
    name: Optional[str] = Field(None, max_length=100)
    type: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    status: Optional[str] = None
    version: Optional[str] = None
    language: Optional[str] = None
    environment: Optional[str] = None
    deploy_url: Optional[str] = Field(None, max_length=255)
    domain: Optional[str] = Field(None, max_length=255)
    git_repo: Optional[str] = Field(None, max_length=255)
    health_metrics: Any = None
    metadata: Any = None
    pos_x: Coordinate = 0
    pos_y: Coordinate = 0
    notes: Optional[str] = None

    def present_fields(self) -> dict[str, Any]:
        """Attributes explicitly sent with a usable value (position excluded)."""
        return _present(self, exclude={"id", "pos_x", "pos_y"})


class DependencyCreate(BaseModel):
    """New edge. ``source_ref``/``target_ref`` name services created in the
    same batch and take precedence over the numeric ids."""

    source_id: RowId = 0
    target_id: RowId = 0
    source_ref: Optional[str] = None
    target_ref: Optional[str] = None
    type: str = Field("", max_length=50)
    description: str = ""
    protocol: str = Field("", max_length=50)
    method: str = Field("", max_length=20)


class DependencyUpdate(BaseModel):
    id: RowId
    type: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    protocol: Optional[str] = Field(None, max_length=50)
    method: Optional[str] = Field(None, max_length=20)

    def present_fields(self) -> dict[str, Any]:
        return _present(self, exclude={"id"})


class BulkSaveRequest(BaseModel):
    """One batch of graph mutations, applied atomically."""

    services: list[ServiceCreate] = Field(default_factory=list)
    dependencies: list[DependencyCreate] = Field(default_factory=list)
    updated_services: list[ServiceUpdate] = Field(default_factory=list)
    updated_dependencies: list[DependencyUpdate] = Field(default_factory=list)
    deleted_services: list[RowId] = Field(default_factory=list)
    deleted_dependencies: list[RowId] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any((
            self.services,
            self.dependencies,
            self.updated_services,
            self.updated_dependencies,
            self.deleted_services,
            self.deleted_dependencies,
        ))


class SnapshotCreateRequest(BaseModel):
    notes: str = Field("", max_length=5000)


class RestoreRequest(BaseModel):
    force: bool = Field(False, description="Skip the automatic pre-restore backup")


class ProjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=100)
    description: str = ""


def _present(model: BaseModel, exclude: set[str]) -> dict[str, Any]:
    values = {}
    for name in model.model_fields_set - exclude:
        value = getattr(model, name)
        if value is None or value == "":
            continue
        values[name] = value
    return values
