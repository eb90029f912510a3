"""Integration tests for SqlAlchemyPersistenceStore on SQLite."""

import asyncio

import pytest
import pytest_asyncio

from core.compliance import ComplianceLog
from core.infrastructure.adapters.ledger import InMemoryLedgerAdapter
from core.infrastructure.database.config import (
    close_database,
    create_engine,
    get_session_factory,
    init_database,
)
from core.infrastructure.database.repositories import SqlAlchemyPersistenceStore
from core.settings import DatabaseSettings
from orchestration import Collaborators


@pytest_asyncio.fixture
async def file_store(tmp_path):
    """Store on a file-backed SQLite database."""
    engine = create_engine(DatabaseSettings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'store.db'}"))
    await init_database(engine)

    yield SqlAlchemyPersistenceStore(get_session_factory(engine))

    await close_database(engine)


@pytest.mark.asyncio
async def test_insert_find_and_filter(sql_store):
    await sql_store.insert("posts", {"id": "p1", "postId": "p1", "channel": "general", "likes": 3})
    await sql_store.insert("posts", {"id": "p2", "postId": "p2", "channel": "random", "likes": 3})
    await sql_store.insert("ads", {"id": "a1", "channel": "general"})

    assert (await sql_store.find_one("posts", {"postId": "p2"}))["channel"] == "random"
    assert [r["id"] for r in await sql_store.find("posts", {"likes": 3})] == ["p1", "p2"]
    assert [r["id"] for r in await sql_store.find("posts", {"channel": "general"})] == ["p1"]
    assert await sql_store.find_one("posts", {"postId": "missing"}) is None


@pytest.mark.asyncio
async def test_filter_on_non_scalar_values(sql_store):
    await sql_store.insert("dashboards", {"id": "d1", "sharedWith": ["u1"], "archived": False})
    await sql_store.insert("dashboards", {"id": "d2", "sharedWith": [], "archived": True})

    assert (await sql_store.find_one("dashboards", {"sharedWith": []}))["id"] == "d2"
    assert (await sql_store.find_one("dashboards", {"archived": False}))["id"] == "d1"


@pytest.mark.asyncio
async def test_update_and_upsert(sql_store):
    await sql_store.insert("vouchers", {"voucherId": "v1", "status": "created", "transferHistory": []})

    updated = await sql_store.update(
        "vouchers",
        {"voucherId": "v1"},
        {"$set": {"status": "transferred"}, "$push": {"transferHistory": {"toSID": "s2"}}},
    )
    missing = await sql_store.update("vouchers", {"voucherId": "v2"}, {"$set": {"status": "x"}})
    upserted = await sql_store.update(
        "vouchers", {"voucherId": "v3"}, {"$setOnInsert": {"status": "created"}}, upsert=True
    )

    assert updated["transferHistory"] == [{"toSID": "s2"}]
    assert (await sql_store.find_one("vouchers", {"voucherId": "v1"}))["status"] == "transferred"
    assert missing is None
    assert upserted == {"voucherId": "v3", "status": "created"}


@pytest.mark.asyncio
async def test_increment_creates_at_baseline(sql_store):
    await sql_store.increment("pulse", {"sid": "s1"}, "pulseScore", 7)
    result = await sql_store.increment("pulse", {"sid": "s1"}, "pulseScore", 5)

    assert result["pulseScore"] == 12
    assert len(await sql_store.find("pulse")) == 1
    assert await sql_store.increment("pulse", {"sid": "s2"}, "pulseScore", 1, upsert=False) is None


@pytest.mark.asyncio
async def test_workflows_run_on_sql_store(sql_store, executor, schema_registry):
    ledger = InMemoryLedgerAdapter()
    collaborators = Collaborators(
        store=sql_store, ledger=ledger, compliance_log=ComplianceLog(ledger, schema_registry)
    )

    await executor.execute("computing-donation", {"sid": "s1", "resource": {"amount": 2}}, collaborators)
    result = await executor.execute(
        "pulse-quest", {"sid": "s1", "quest": {"type": "special", "reward": 5}}, collaborators
    )
    score = await executor.execute("pulse-score", {"sid": "s1"}, collaborators)

    assert result.outputs["pulseScore"] == 25
    assert score.outputs == {"sid": "s1", "pulseScore": 25}


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(file_store):
    await file_store.increment("pulse", {"sid": "s1"}, "pulseScore", 0)

    await asyncio.gather(
        *(file_store.increment("pulse", {"sid": "s1"}, "pulseScore", 10) for _ in range(5))
    )

    assert await file_store.find("pulse") == [{"sid": "s1", "pulseScore": 50}]


@pytest.mark.asyncio
async def test_concurrent_first_increments_create_one_record(file_store):
    await asyncio.gather(
        file_store.increment("pulse", {"sid": "s2"}, "pulseScore", 10),
        file_store.increment("pulse", {"sid": "s2"}, "pulseScore", 10),
    )

    assert await file_store.find("pulse", {"sid": "s2"}) == [{"sid": "s2", "pulseScore": 20}]


@pytest.mark.asyncio
async def test_concurrent_upserts_keep_every_push(file_store):
    await asyncio.gather(
        *(
            file_store.update(
                "posts",
                {"postId": "p1"},
                {"$push": {"comments": {"n": n}}, "$setOnInsert": {"createdAt": "t0"}},
                upsert=True,
            )
            for n in range(4)
        )
    )

    records = await file_store.find("posts", {"postId": "p1"})
    assert len(records) == 1
    assert sorted(c["n"] for c in records[0]["comments"]) == [0, 1, 2, 3]
