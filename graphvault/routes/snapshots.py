"""
GRAPHVAULT v1.0 - Snapshot Router.

Create, list, fetch and restore versioned graph snapshots.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends

from graphvault.api_deps import get_actor_id, get_engine
from graphvault.engine import GraphVaultEngine
from graphvault.models import RestoreRequest, SnapshotCreateRequest

router = APIRouter(tags=["snapshots"])
logger = logging.getLogger("graphvault.api.snapshots")


@router.get("/v1/projects/{project_id}/snapshots")
async def list_snapshots(
    project_id: int,
    engine: GraphVaultEngine = Depends(get_engine),
) -> dict:
    """Snapshot metadata of a project, newest version first; fetch one for its payload."""
    snapshots = await engine.list_snapshots(project_id)
    return {
        "snapshots": [s.to_dict(include_payload=False) for s in snapshots],
        "total": len(snapshots),
    }


@router.post("/v1/projects/{project_id}/snapshots", status_code=201)
async def create_snapshot(
    project_id: int,
    req: SnapshotCreateRequest,
    actor_id: int = Depends(get_actor_id),
    engine: GraphVaultEngine = Depends(get_engine),
) -> dict:
    snapshot = await engine.create_snapshot(project_id, actor_id, req.notes)
    return {"message": "Snapshot created successfully", "snapshot": snapshot.to_dict()}


@router.get("/v1/snapshots/{snapshot_id}")
async def get_snapshot(
    snapshot_id: int,
    engine: GraphVaultEngine = Depends(get_engine),
) -> dict:
    snapshot = await engine.get_snapshot(snapshot_id)
    return {"snapshot": snapshot.to_dict()}


@router.post("/v1/snapshots/{snapshot_id}/restore")
async def restore_snapshot(
    snapshot_id: int,
    req: Optional[RestoreRequest] = Body(None),
    actor_id: int = Depends(get_actor_id),
    engine: GraphVaultEngine = Depends(get_engine),
) -> dict:
    """Replace the project's graph with the snapshot; a missing body means force=False."""
    force = req.force if req else False
    result = await engine.restore_snapshot(snapshot_id, actor_id, force=force)
    return {
        "message": "Snapshot restored successfully",
        "snapshot": {
            "id": result.snapshot_id,
            "version": result.version_num,
            "project_id": result.project_id,
        },
        "result": result.to_dict(),
    }
