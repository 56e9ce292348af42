"""
Tests for restoring a project's graph from a snapshot.
"""

import json

import pytest

from graphvault.codec import canonical_json
from graphvault.engine.restore_mixin import BACKUP_NOTES
from graphvault.exceptions import SerializationError, SnapshotNotFound
from graphvault.models import BulkSaveRequest, DependencyCreate, ServiceCreate, ServiceUpdate
from graphvault.repository import GraphRepository

ACTOR = 7


def _shape(graph):
    """Graph contents without generated ids, with edges as name pairs."""
    names = {s["id"]: s["name"] for s in graph["services"]}
    services = sorted(
        (s["name"], s["type"], s["status"], s["pos_x"], s["pos_y"], json.dumps(s["metadata"]))
        for s in graph["services"]
    )
    edges = sorted(
        (names[d["source_id"]], names[d["target_id"]], d["type"], d["protocol"])
        for d in graph["dependencies"]
    )
    return services, edges


async def _build_graph(engine, project_id):
    batch = BulkSaveRequest(
        services=[
            ServiceCreate(ref="web", name="web", type="frontend", pos_x=5),
            ServiceCreate(ref="api", name="api", type="backend", metadata={"replicas": 3}),
            ServiceCreate(ref="db", name="db", type="database", status="inactive"),
        ],
        dependencies=[
            DependencyCreate(source_ref="web", target_ref="api", type="http", protocol="https"),
            DependencyCreate(source_ref="api", target_ref="db", type="sql"),
        ],
    )
    return await engine.apply_bulk_changes(project_id, ACTOR, batch)


async def _store_raw_snapshot(engine, project_id, payload: str):
    async with engine.transaction() as conn:
        repo = GraphRepository(conn)
        version = await repo.next_snapshot_version(project_id)
        return await repo.insert_snapshot(project_id, version, payload, ACTOR, "hand-made")


@pytest.mark.asyncio
async def test_restore_brings_back_graph_with_remapped_edges(engine, project):
    seeded = await _build_graph(engine, project["id"])
    original = _shape(await engine.get_graph(project["id"]))
    snap = await engine.create_snapshot(project["id"], ACTOR)

    # Drift: drop a node (and its edges), rename another, add a new one.
    await engine.apply_bulk_changes(
        project["id"],
        ACTOR,
        BulkSaveRequest(
            deleted_services=[seeded.created_services[2].id],
            updated_services=[ServiceUpdate(id=seeded.created_services[0].id, name="web-v2")],
            services=[ServiceCreate(name="cache", type="redis")],
        ),
    )
    assert _shape(await engine.get_graph(project["id"])) != original

    result = await engine.restore_snapshot(snap.id, ACTOR + 1)

    assert result.restored_services == 3
    assert result.restored_dependencies == 2
    assert result.skipped_services == 0
    assert result.skipped_dependencies == 0
    assert result.version_num == snap.version_num
    graph = await engine.get_graph(project["id"])
    assert _shape(graph) == original
    old_ids = {s.id for s in seeded.created_services}
    assert not old_ids & {s["id"] for s in graph["services"]}
    assert all(s["updated_by"] == ACTOR + 1 for s in graph["services"])


@pytest.mark.asyncio
async def test_restore_keeps_original_creation_timestamps(engine, project):
    seeded = await _build_graph(engine, project["id"])
    snap = await engine.create_snapshot(project["id"], ACTOR)

    await engine.restore_snapshot(snap.id, ACTOR)

    graph = await engine.get_graph(project["id"])
    created = {s.name: s.created_at for s in seeded.created_services}
    assert {s["name"]: s["created_at"] for s in graph["services"]} == created


@pytest.mark.asyncio
async def test_restore_creates_backup_of_current_graph(engine, project):
    await _build_graph(engine, project["id"])
    snap = await engine.create_snapshot(project["id"], ACTOR)
    await engine.apply_bulk_changes(
        project["id"], ACTOR, BulkSaveRequest(services=[ServiceCreate(name="extra", type="job")])
    )
    before_restore = _shape(await engine.get_graph(project["id"]))

    result = await engine.restore_snapshot(snap.id, ACTOR)

    assert result.backup_snapshot_id is not None
    backup = await engine.get_snapshot(result.backup_snapshot_id)
    assert backup.version_num == 2
    assert backup.notes.startswith(BACKUP_NOTES)
    assert backup.data["metadata"]["backup_before_restore"] is True
    assert backup.data["metadata"]["restored_from"] == snap.id
    backup_graph = {"services": backup.data["services"], "dependencies": backup.data["dependencies"]}
    assert _shape(backup_graph) == before_restore


@pytest.mark.asyncio
async def test_force_restore_skips_backup(engine, project):
    await _build_graph(engine, project["id"])
    snap = await engine.create_snapshot(project["id"], ACTOR)

    result = await engine.restore_snapshot(snap.id, ACTOR, force=True)

    assert result.backup_snapshot_id is None
    assert [s.version_num for s in await engine.list_snapshots(project["id"])] == [1]


@pytest.mark.asyncio
async def test_restore_of_empty_snapshot_clears_graph(engine, project):
    snap = await engine.create_snapshot(project["id"], ACTOR)
    await _build_graph(engine, project["id"])

    result = await engine.restore_snapshot(snap.id, ACTOR)

    assert result.restored_services == 0
    graph = await engine.get_graph(project["id"])
    assert graph["services"] == []
    assert graph["dependencies"] == []


@pytest.mark.asyncio
async def test_restore_leaves_other_projects_alone(engine, project, other_project):
    await _build_graph(engine, other_project["id"])
    other_before = await engine.get_graph(other_project["id"])
    snap = await engine.create_snapshot(project["id"], ACTOR)

    await engine.restore_snapshot(snap.id, ACTOR)

    assert await engine.get_graph(other_project["id"]) == other_before


@pytest.mark.asyncio
async def test_malformed_items_are_skipped_and_counted(engine, project):
    payload = canonical_json(
        {
            "services": [
                {"id": 1, "name": "ok-one", "type": "api"},
                {"id": 2, "type": "api"},
                "not-a-record",
                {"id": 3, "name": "ok-two", "type": "worker", "pos_x": 9},
            ],
            "dependencies": [
                {"source_id": 1, "target_id": 3, "type": "queue"},
                {"source_id": 1, "target_id": 2},
                {"target_id": 3},
            ],
            "metadata": {},
        }
    )
    snap = await _store_raw_snapshot(engine, project["id"], payload)

    result = await engine.restore_snapshot(snap.id, ACTOR, force=True)

    assert result.restored_services == 2
    assert result.skipped_services == 2
    assert result.restored_dependencies == 1
    assert result.skipped_dependencies == 2
    graph = await engine.get_graph(project["id"])
    services = {s["name"]: s for s in graph["services"]}
    assert set(services) == {"ok-one", "ok-two"}
    edge = graph["dependencies"][0]
    assert (edge["source_id"], edge["target_id"]) == (services["ok-one"]["id"], services["ok-two"]["id"])


@pytest.mark.asyncio
async def test_unreadable_payload_rolls_back_and_leaves_no_backup(engine, project, table_dump):
    await _build_graph(engine, project["id"])
    snap = await _store_raw_snapshot(engine, project["id"], '{"services": {"not": "a list"}}')
    before = await table_dump()

    with pytest.raises(SerializationError):
        await engine.restore_snapshot(snap.id, ACTOR)

    assert await table_dump() == before


@pytest.mark.asyncio
async def test_non_object_payload_is_rejected(engine, project):
    snap = await _store_raw_snapshot(engine, project["id"], "[1, 2, 3]")
    with pytest.raises(SerializationError):
        await engine.restore_snapshot(snap.id, ACTOR)


@pytest.mark.asyncio
async def test_restore_unknown_snapshot(engine):
    with pytest.raises(SnapshotNotFound):
        await engine.restore_snapshot(12345, ACTOR)


@pytest.mark.asyncio
async def test_restore_is_logged(engine, project):
    snap = await engine.create_snapshot(project["id"], ACTOR)
    await engine.restore_snapshot(snap.id, ACTOR, force=True)

    entry = (await engine.list_history(project["id"]))[0]
    assert entry["action"] == "snapshot_restore"
    assert entry["details"]["snapshot_id"] == snap.id
    assert entry["details"]["backup_snapshot_id"] is None
