"""Tests for InMemoryPersistenceStore and the shared mutation helper."""

import asyncio

import pytest

from core.domain.repositories import PersistenceStoreError, apply_mutation
from core.infrastructure.adapters.persistence import InMemoryPersistenceStore


@pytest.mark.asyncio
async def test_insert_and_find_one_return_copies(store: InMemoryPersistenceStore):
    record = {"id": "v1", "voucherId": "v1", "status": "created"}
    await store.insert("vouchers", record)

    found = await store.find_one("vouchers", {"voucherId": "v1"})
    found["status"] = "tampered"

    assert (await store.find_one("vouchers", {"voucherId": "v1"}))["status"] == "created"
    assert await store.find_one("vouchers", {"voucherId": "missing"}) is None


@pytest.mark.asyncio
async def test_find_filters_and_limits(store):
    for index in range(5):
        await store.insert("posts", {"id": str(index), "channel": "a" if index % 2 else "b"})

    assert [r["id"] for r in await store.find("posts", {"channel": "a"})] == ["1", "3"]
    assert len(await store.find("posts", limit=2)) == 2
    assert await store.find("empty") == []


@pytest.mark.asyncio
async def test_update_applies_operators(store):
    await store.insert("vouchers", {"voucherId": "v1", "status": "created", "transferHistory": []})

    updated = await store.update(
        "vouchers",
        {"voucherId": "v1"},
        {"$set": {"status": "transferred"}, "$push": {"transferHistory": {"toSID": "s2"}}},
    )

    assert updated["status"] == "transferred"
    assert updated["transferHistory"] == [{"toSID": "s2"}]
    assert store.count("vouchers") == 1


@pytest.mark.asyncio
async def test_update_without_match_and_without_upsert_returns_none(store):
    assert await store.update("vouchers", {"voucherId": "nope"}, {"$set": {"x": 1}}) is None
    assert store.count("vouchers") == 0


@pytest.mark.asyncio
async def test_upsert_creates_then_updates(store):
    mutation = {"$set": {"title": "t"}, "$setOnInsert": {"createdAt": "first"}}

    created = await store.update("ads", {"adId": "a1"}, mutation, upsert=True)
    again = await store.update(
        "ads", {"adId": "a1"}, {"$set": {"title": "t2"}, "$setOnInsert": {"createdAt": "second"}}, upsert=True
    )

    assert created == {"adId": "a1", "title": "t", "createdAt": "first"}
    assert again["title"] == "t2"
    assert again["createdAt"] == "first"
    assert store.count("ads") == 1


@pytest.mark.asyncio
async def test_increment_creates_at_baseline_then_adds(store):
    """Absent aggregate starts at baseline 0; two increments sum up."""
    first = await store.increment("pulse", {"sid": "s1"}, "pulseScore", 7)
    second = await store.increment("pulse", {"sid": "s1"}, "pulseScore", 5)

    assert first == {"sid": "s1", "pulseScore": 7}
    assert second["pulseScore"] == 12
    assert store.count("pulse") == 1


@pytest.mark.asyncio
async def test_increment_respects_custom_baseline_and_missing_field(store):
    await store.insert("reputation", {"subject": "x"})

    updated = await store.increment("reputation", {"subject": "x"}, "karma", 2, baseline=10)
    created = await store.increment("reputation", {"subject": "y"}, "karma", 1, baseline=10)

    assert updated["karma"] == 12
    assert created["karma"] == 11


@pytest.mark.asyncio
async def test_increment_without_upsert(store):
    assert await store.increment("pulse", {"sid": "ghost"}, "pulseScore", 1, upsert=False) is None


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(store):
    await asyncio.gather(
        *(store.increment("pulse", {"sid": "s1"}, "pulseScore", 1) for _ in range(50))
    )

    assert (await store.find_one("pulse", {"sid": "s1"}))["pulseScore"] == 50


def test_apply_mutation_rejects_unknown_operator():
    with pytest.raises(PersistenceStoreError):
        apply_mutation({}, {"$unset": {"a": 1}})


def test_apply_mutation_rejects_type_mismatches():
    with pytest.raises(PersistenceStoreError):
        apply_mutation({"tags": "x"}, {"$push": {"tags": "y"}})
    with pytest.raises(PersistenceStoreError):
        apply_mutation({"score": "high"}, {"$inc": {"score": 1}})


def test_apply_mutation_does_not_modify_input():
    original = {"items": [1]}

    result = apply_mutation(original, {"$push": {"items": 2}, "$setOnInsert": {"new": True}})

    assert original == {"items": [1]}
    assert result == {"items": [1, 2]}
