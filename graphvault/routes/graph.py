"""
GRAPHVAULT v1.0 - Graph Router.

Project bootstrap, live graph reads, bulk save and change history.
"""

import logging

from fastapi import APIRouter, Depends, Query

from graphvault.api_deps import get_actor_id, get_engine
from graphvault.engine import GraphVaultEngine
from graphvault.models import BulkSaveRequest, ProjectCreateRequest

router = APIRouter(tags=["graph"])
logger = logging.getLogger("graphvault.api.graph")


@router.post("/v1/projects", status_code=201)
async def create_project(
    req: ProjectCreateRequest,
    actor_id: int = Depends(get_actor_id),
    engine: GraphVaultEngine = Depends(get_engine),
) -> dict:
    project = await engine.create_project(req.name, req.slug, actor_id, req.description)
    return {"project": project}


@router.get("/v1/projects/{project_id}/graph")
async def get_graph(
    project_id: int,
    engine: GraphVaultEngine = Depends(get_engine),
) -> dict:
    """Live services and dependencies of a project."""
    return await engine.get_graph(project_id)


@router.post("/v1/projects/{project_id}/bulk-save")
async def bulk_save(
    project_id: int,
    req: BulkSaveRequest,
    actor_id: int = Depends(get_actor_id),
    engine: GraphVaultEngine = Depends(get_engine),
) -> dict:
    """Apply creates, updates and deletes of services/dependencies atomically."""
    result = await engine.apply_bulk_changes(project_id, actor_id, req)
    return {"message": "Bulk save successful", "result": result.to_dict()}


@router.get("/v1/projects/{project_id}/history")
async def get_history(
    project_id: int,
    limit: int = Query(50, ge=1, le=500),
    engine: GraphVaultEngine = Depends(get_engine),
) -> dict:
    entries = await engine.list_history(project_id, limit)
    return {"history": entries, "total": len(entries)}
