import pytest
import pytest_asyncio

from graphvault import config
from graphvault.config import GraphVaultConfig
from graphvault.engine import GraphVaultEngine

ACTOR = 7


@pytest.fixture(autouse=True)
def reset_graphvault_config():
    """Reset module config from the environment between every test."""
    config.reload()
    yield
    config.reload()


@pytest.fixture
def settings(tmp_path):
    return GraphVaultConfig(db_path=str(tmp_path / "graphvault.db"), pool_min=1, pool_max=8)


@pytest_asyncio.fixture
async def engine(settings):
    engine = await GraphVaultEngine.open(settings)
    yield engine
    await engine.close()


@pytest_asyncio.fixture
async def project(engine):
    return await engine.create_project("Payments", "payments", ACTOR)


@pytest_asyncio.fixture
async def other_project(engine):
    return await engine.create_project("Billing", "billing", ACTOR)


async def dump_tables(engine) -> dict:
    """Every row of every graph table, for before/after comparisons."""
    tables = ("projects", "services", "dependencies", "snapshots", "snapshot_counters", "change_history")
    dump = {}
    async with engine.session() as conn:
        for table in tables:
            async with conn.execute(f"SELECT * FROM {table} ORDER BY rowid") as cursor:
                dump[table] = [tuple(r) for r in await cursor.fetchall()]
    return dump


@pytest.fixture
def table_dump(engine):
    """Async callable returning the current contents of every table."""
    return lambda: dump_tables(engine)
