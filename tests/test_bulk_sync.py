"""
Tests for atomic bulk synchronization of services and dependencies.
"""

import dataclasses

import pytest
from pydantic import ValidationError as RequestValidationError

from graphvault.engine import GraphVaultEngine
from graphvault.exceptions import (
    DependencyNotFound,
    ProjectNotFound,
    ServiceNotFound,
    ValidationError,
)
from graphvault.models import (
    BulkSaveRequest,
    DependencyCreate,
    DependencyUpdate,
    ServiceCreate,
    ServiceUpdate,
)

ACTOR = 7


async def _seed(engine, project_id, *names):
    """Create services (and a chain of edges between them) in one batch."""
    batch = BulkSaveRequest(
        services=[ServiceCreate(ref=n, name=n, type="api") for n in names],
        dependencies=[
            DependencyCreate(source_ref=a, target_ref=b, type="http")
            for a, b in zip(names, names[1:])
        ],
    )
    return await engine.apply_bulk_changes(project_id, ACTOR, batch)


@pytest.mark.asyncio
async def test_create_services_and_edge_between_new_nodes(engine, project):
    result = await _seed(engine, project["id"], "gateway", "orders")

    assert len(result.created_services) == 2
    assert len(result.created_dependencies) == 1
    gateway, orders = result.created_services
    edge = result.created_dependencies[0]
    assert (edge.source_id, edge.target_id) == (gateway.id, orders.id)
    assert gateway.status == "active"
    assert gateway.environment == "production"
    assert gateway.created_by == ACTOR

    graph = await engine.get_graph(project["id"])
    assert [s["name"] for s in graph["services"]] == ["gateway", "orders"]
    assert graph["dependencies"][0]["type"] == "http"


@pytest.mark.asyncio
async def test_create_edge_by_existing_ids(engine, project):
    seeded = await _seed(engine, project["id"], "a-svc", "b-svc")
    a, b = seeded.created_services

    result = await engine.apply_bulk_changes(
        project["id"],
        ACTOR,
        BulkSaveRequest(dependencies=[DependencyCreate(source_id=b.id, target_id=a.id, protocol="grpc")]),
    )
    edge = result.created_dependencies[0]
    assert (edge.source_id, edge.target_id, edge.protocol) == (b.id, a.id, "grpc")


@pytest.mark.asyncio
async def test_partial_update_keeps_unsent_fields_and_resets_position(engine, project):
    seeded = await engine.apply_bulk_changes(
        project["id"],
        ACTOR,
        BulkSaveRequest(
            services=[
                ServiceCreate(name="search", type="api", language="go", pos_x=120, pos_y=45)
            ]
        ),
    )
    svc = seeded.created_services[0]

    result = await engine.apply_bulk_changes(
        project["id"],
        ACTOR + 1,
        BulkSaveRequest(updated_services=[ServiceUpdate(id=svc.id, description="full text", language="")]),
    )

    updated = result.updated_services[0]
    assert updated.description == "full text"
    assert updated.language == "go"  # empty string is not a value
    assert updated.name == "search"
    assert (updated.pos_x, updated.pos_y) == (0, 0)
    assert updated.updated_by == ACTOR + 1

    graph = await engine.get_graph(project["id"])
    stored = graph["services"][0]
    assert (stored["pos_x"], stored["pos_y"]) == (0, 0)
    assert stored["language"] == "go"


@pytest.mark.asyncio
async def test_position_only_update_moves_node_to_origin(engine, project):
    seeded = await engine.apply_bulk_changes(
        project["id"],
        ACTOR,
        BulkSaveRequest(
            services=[
                ServiceCreate(name="ledger", type="database", language="sql", pos_x=120, pos_y=45)
            ]
        ),
    )
    svc = seeded.created_services[0]

    result = await engine.apply_bulk_changes(
        project["id"],
        ACTOR,
        BulkSaveRequest(updated_services=[ServiceUpdate(id=svc.id, pos_x=0, pos_y=0)]),
    )

    updated = result.updated_services[0]
    assert (updated.pos_x, updated.pos_y) == (0, 0)
    assert (updated.name, updated.type, updated.language) == ("ledger", "database", "sql")
    stored = (await engine.get_graph(project["id"]))["services"][0]
    assert (stored["pos_x"], stored["pos_y"]) == (0, 0)
    assert stored["name"] == "ledger"


@pytest.mark.asyncio
async def test_delete_service_cascades_to_edges(engine, project):
    seeded = await _seed(engine, project["id"], "front", "back")
    front, _ = seeded.created_services

    result = await engine.apply_bulk_changes(
        project["id"], ACTOR, BulkSaveRequest(deleted_services=[front.id])
    )

    assert result.deleted_services_count == 1
    assert result.deleted_dependencies_count == 0
    graph = await engine.get_graph(project["id"])
    assert [s["name"] for s in graph["services"]] == ["back"]
    assert graph["dependencies"] == []


@pytest.mark.asyncio
async def test_delete_edge_and_endpoint_in_one_batch(engine, project):
    seeded = await _seed(engine, project["id"], "one", "two")
    edge = seeded.created_dependencies[0]

    result = await engine.apply_bulk_changes(
        project["id"],
        ACTOR,
        BulkSaveRequest(
            deleted_dependencies=[edge.id],
            deleted_services=[edge.source_id],
        ),
    )
    assert result.deleted_dependencies_count == 1
    assert result.deleted_services_count == 1


@pytest.mark.asyncio
async def test_deletes_run_before_updates(engine, project, table_dump):
    seeded = await _seed(engine, project["id"], "doomed")
    svc = seeded.created_services[0]
    before = await table_dump()

    with pytest.raises(ServiceNotFound):
        await engine.apply_bulk_changes(
            project["id"],
            ACTOR,
            BulkSaveRequest(
                deleted_services=[svc.id],
                updated_services=[ServiceUpdate(id=svc.id, name="renamed")],
            ),
        )
    assert await table_dump() == before


@pytest.mark.asyncio
async def test_missing_service_update_rolls_back_everything(engine, project, table_dump):
    seeded = await _seed(engine, project["id"], "keep-me", "and-me")
    edge = seeded.created_dependencies[0]
    before = await table_dump()

    with pytest.raises(ServiceNotFound):
        await engine.apply_bulk_changes(
            project["id"],
            ACTOR,
            BulkSaveRequest(
                deleted_dependencies=[edge.id],
                services=[ServiceCreate(name="new-one", type="worker")],
                updated_services=[ServiceUpdate(id=99999, name="ghost")],
            ),
        )

    assert await table_dump() == before


@pytest.mark.asyncio
async def test_invalid_new_edge_rolls_back_new_services(engine, project, table_dump):
    before = await table_dump()

    with pytest.raises(ValidationError):
        await engine.apply_bulk_changes(
            project["id"],
            ACTOR,
            BulkSaveRequest(
                services=[ServiceCreate(ref="n", name="new-node", type="api")],
                dependencies=[DependencyCreate(source_ref="n", target_id=424242)],
            ),
        )

    assert await table_dump() == before


@pytest.mark.asyncio
async def test_update_of_other_projects_service_is_not_found(engine, project, other_project):
    foreign = (await _seed(engine, other_project["id"], "foreign")).created_services[0]

    with pytest.raises(ServiceNotFound):
        await engine.apply_bulk_changes(
            project["id"],
            ACTOR,
            BulkSaveRequest(updated_services=[ServiceUpdate(id=foreign.id, name="hijack")]),
        )


@pytest.mark.asyncio
async def test_delete_of_other_projects_service_is_ignored(engine, project, other_project):
    foreign = (await _seed(engine, other_project["id"], "foreign")).created_services[0]

    result = await engine.apply_bulk_changes(
        project["id"], ACTOR, BulkSaveRequest(deleted_services=[foreign.id])
    )

    assert result.deleted_services_count == 0
    graph = await engine.get_graph(other_project["id"])
    assert [s["id"] for s in graph["services"]] == [foreign.id]


@pytest.mark.asyncio
async def test_missing_edge_delete_is_not_counted(engine, project):
    result = await engine.apply_bulk_changes(
        project["id"], ACTOR, BulkSaveRequest(deleted_dependencies=[31337])
    )
    assert result.deleted_dependencies_count == 0


@pytest.mark.asyncio
async def test_edge_to_other_projects_service_is_rejected(engine, project, other_project):
    mine = (await _seed(engine, project["id"], "mine")).created_services[0]
    foreign = (await _seed(engine, other_project["id"], "theirs")).created_services[0]

    with pytest.raises(ValidationError, match="target service"):
        await engine.apply_bulk_changes(
            project["id"],
            ACTOR,
            BulkSaveRequest(dependencies=[DependencyCreate(source_id=mine.id, target_id=foreign.id)]),
        )


@pytest.mark.asyncio
async def test_dependency_update_partial_merge(engine, project):
    edge = (await _seed(engine, project["id"], "s1", "s2")).created_dependencies[0]

    result = await engine.apply_bulk_changes(
        project["id"],
        ACTOR,
        BulkSaveRequest(updated_dependencies=[DependencyUpdate(id=edge.id, protocol="amqp", type="")]),
    )
    updated = result.updated_dependencies[0]
    assert updated.protocol == "amqp"
    assert updated.type == "http"
    assert updated.updated_by == ACTOR


@pytest.mark.asyncio
async def test_missing_dependency_update_raises(engine, project):
    with pytest.raises(DependencyNotFound):
        await engine.apply_bulk_changes(
            project["id"],
            ACTOR,
            BulkSaveRequest(updated_dependencies=[DependencyUpdate(id=5150, type="x")]),
        )


@pytest.mark.asyncio
async def test_dependency_updates_are_unscoped_by_default(engine, project, other_project):
    foreign_edge = (await _seed(engine, other_project["id"], "o1", "o2")).created_dependencies[0]

    result = await engine.apply_bulk_changes(
        project["id"],
        ACTOR,
        BulkSaveRequest(updated_dependencies=[DependencyUpdate(id=foreign_edge.id, method="POST")]),
    )
    assert result.updated_dependencies[0].method == "POST"


@pytest.mark.asyncio
async def test_scoped_dependency_updates_reject_foreign_edges(engine, settings, project, other_project):
    foreign_edge = (await _seed(engine, other_project["id"], "o1", "o2")).created_dependencies[0]
    scoped = await GraphVaultEngine.open(dataclasses.replace(settings, scope_dependency_updates=True))
    try:
        with pytest.raises(DependencyNotFound):
            await scoped.apply_bulk_changes(
                project["id"],
                ACTOR,
                BulkSaveRequest(updated_dependencies=[DependencyUpdate(id=foreign_edge.id, method="POST")]),
            )
    finally:
        await scoped.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "service",
    [
        ServiceCreate(name="", type="api"),
        ServiceCreate(name="x", type="api"),
        ServiceCreate(name="valid", type=""),
        ServiceCreate(name="valid", type="api", status="paused"),
        ServiceCreate(name="valid", type="api", environment="staging"),
    ],
)
async def test_invalid_new_service_is_rejected(engine, project, service):
    with pytest.raises(ValidationError):
        await engine.apply_bulk_changes(project["id"], ACTOR, BulkSaveRequest(services=[service]))


@pytest.mark.asyncio
async def test_unknown_and_duplicate_refs_are_rejected(engine, project):
    with pytest.raises(ValidationError, match="source ref"):
        await engine.apply_bulk_changes(
            project["id"],
            ACTOR,
            BulkSaveRequest(
                services=[ServiceCreate(ref="a", name="alpha", type="api")],
                dependencies=[DependencyCreate(source_ref="nope", target_ref="a")],
            ),
        )

    with pytest.raises(ValidationError, match="duplicate"):
        await engine.apply_bulk_changes(
            project["id"],
            ACTOR,
            BulkSaveRequest(
                services=[
                    ServiceCreate(ref="a", name="alpha", type="api"),
                    ServiceCreate(ref="a", name="beta", type="api"),
                ]
            ),
        )


@pytest.mark.asyncio
async def test_unknown_project_raises(engine):
    with pytest.raises(ProjectNotFound):
        await engine.apply_bulk_changes(
            404, ACTOR, BulkSaveRequest(services=[ServiceCreate(name="orphan", type="api")])
        )


@pytest.mark.asyncio
async def test_bulk_save_is_recorded_in_history(engine, project):
    await _seed(engine, project["id"], "h1", "h2")

    history = await engine.list_history(project["id"])
    assert history[0]["action"] == "bulk_save"
    assert history[0]["user_id"] == ACTOR
    assert history[0]["details"]["created_services"] == 2
    assert history[0]["details"]["created_dependencies"] == 1


@pytest.mark.asyncio
async def test_edge_from_node_deleted_in_same_batch_fails(engine, project, table_dump):
    doomed, survivor = (await _seed(engine, project["id"], "doomed", "survivor")).created_services
    before = await table_dump()

    with pytest.raises(ValidationError, match=f"source service {doomed.id}"):
        await engine.apply_bulk_changes(
            project["id"],
            ACTOR,
            BulkSaveRequest(
                deleted_services=[doomed.id],
                dependencies=[DependencyCreate(source_id=doomed.id, target_id=survivor.id)],
            ),
        )
    assert await table_dump() == before


@pytest.mark.asyncio
async def test_deleting_edge_target_cascades_and_keeps_source(engine, project):
    a, b = (await _seed(engine, project["id"], "svc-a", "svc-b")).created_services

    result = await engine.apply_bulk_changes(
        project["id"], ACTOR, BulkSaveRequest(deleted_services=[b.id])
    )

    assert result.deleted_services_count == 1
    graph = await engine.get_graph(project["id"])
    assert graph["dependencies"] == []
    assert graph["services"][0]["id"] == a.id
    assert graph["services"][0]["updated_at"] == a.updated_at


def test_request_models_reject_integers_beyond_sqlite_range():
    with pytest.raises(RequestValidationError):
        ServiceCreate(name="big", type="api", pos_x=2**70)
    with pytest.raises(RequestValidationError):
        ServiceUpdate(id=1, pos_y=-(2**63) - 1)
    with pytest.raises(RequestValidationError):
        BulkSaveRequest(deleted_services=[2**70])
    with pytest.raises(RequestValidationError):
        DependencyCreate(source_id=2**63, target_id=1)

    edge = ServiceCreate(name="edge", type="api", pos_x=2**63 - 1, pos_y=-(2**63))
    assert (edge.pos_x, edge.pos_y) == (2**63 - 1, -(2**63))


@pytest.mark.asyncio
async def test_oversized_id_in_unvalidated_batch_rolls_back_as_validation_error(
    engine, project, table_dump
):
    await _seed(engine, project["id"], "keep-a", "keep-b")
    before = await table_dump()
    batch = BulkSaveRequest.model_construct(
        services=[],
        dependencies=[],
        updated_services=[],
        updated_dependencies=[],
        deleted_services=[2**70],
        deleted_dependencies=[],
    )

    with pytest.raises(ValidationError, match="out of range"):
        await engine.apply_bulk_changes(project["id"], ACTOR, batch)
    assert await table_dump() == before
