"""GRAPHVAULT v1.0 — Snapshot Payload Codec.

Deterministic JSON encoding of a project's node/edge set and tolerant
per-item decoding for restores.

Payload shape::

    {
        "services": [ {<service columns>}, ... ],
        "dependencies": [ {<dependency columns>}, ... ],
        "metadata": { "created_by": ..., "timestamp": ..., ... }
    }
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from graphvault.engine.models import DEPENDENCY_FIELDS, SERVICE_FIELDS, Dependency, Service
from graphvault.exceptions import SerializationError


def canonical_json(obj: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace, ASCII-safe."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"),
        ensure_ascii=True,
    )


def encode_payload(
    services: Iterable[Service],
    dependencies: Iterable[Dependency],
    metadata: Optional[dict] = None,
) -> str:
    """Serialize a graph into a snapshot payload.

    Raises:
        SerializationError: If any attribute is not JSON-serializable.
    """
    data = {
        "services": [s.to_dict() for s in services],
        "dependencies": [d.to_dict() for d in dependencies],
        "metadata": metadata or {},
    }
    try:
        return canonical_json(data)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"snapshot payload cannot be encoded: {e}") from e


def decode_payload(raw: str | bytes) -> dict:
    """Parse a stored payload into its top-level dict.

    Raises:
        SerializationError: If the payload is not a JSON object.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError, UnicodeDecodeError) as e:
        raise SerializationError("snapshot payload is not valid JSON") from e
    if not isinstance(data, dict):
        raise SerializationError("snapshot payload must be a JSON object")
    return data


class _PayloadService(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
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
    created_at: Optional[str] = None


class _PayloadDependency(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    source_id: int
    target_id: int
    type: str = ""
    description: str = ""
    protocol: str = ""
    method: str = ""
    created_at: Optional[str] = None


def decode_service(item: Any) -> tuple[Optional[int], dict, Optional[str]]:
    """Decode one payload service.

    Returns:
        (original id, column values without identity, original created_at).

    Raises:
        SerializationError: If the record is malformed.
    """
    try:
        rec = _PayloadService.model_validate(item)
    except PydanticValidationError as e:
        raise SerializationError(f"malformed service record: {e.error_count()} error(s)") from e
    fields = {name: getattr(rec, name) for name in SERVICE_FIELDS}
    return rec.id, fields, rec.created_at


def decode_dependency(item: Any) -> tuple[int, int, dict, Optional[str]]:
    """Decode one payload dependency.

    Returns:
        (original source id, original target id, column values, original created_at).

    Raises:
        SerializationError: If the record is malformed.
    """
    try:
        rec = _PayloadDependency.model_validate(item)
    except PydanticValidationError as e:
        raise SerializationError(f"malformed dependency record: {e.error_count()} error(s)") from e
    fields = {name: getattr(rec, name) for name in DEPENDENCY_FIELDS}
    return rec.source_id, rec.target_id, fields, rec.created_at
