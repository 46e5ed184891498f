"""Mongo ledger store against a real MongoDB (set MONGODB_TEST_URI to run)."""

import asyncio
import os
import uuid

import pytest
import pytest_asyncio

from headshot_api.core.exceptions import InsufficientCreditsError
from headshot_api.services.ledger import CreditLedger

MONGODB_TEST_URI = os.environ.get("MONGODB_TEST_URI")

pytestmark = [
    pytest.mark.asyncio,
    pytest.mark.skipif(not MONGODB_TEST_URI, reason="MONGODB_TEST_URI not set"),
]


@pytest_asyncio.fixture
async def mongo_ledger(settings, monkeypatch, clock):
    from headshot_api.db.init import init_db
    from headshot_api.storage.mongo import MongoLedgerStore
    monkeypatch.setattr(settings, "mongodb_uri", MONGODB_TEST_URI)
    monkeypatch.setattr(settings, "mongodb_db_name", "headshots_test")
    await init_db()
    return CreditLedger(MongoLedgerStore(), clock=clock)


async def test_get_balance_creates_and_recovers(mongo_ledger, clock):
    user_id = f"test-{uuid.uuid4()}"
    record = await mongo_ledger.get_balance(user_id)
    assert record.current_credits == 4
    await mongo_ledger.deduct(user_id, 3)
    clock.advance(hours=2)
    record = await mongo_ledger.get_balance(user_id)
    assert record.current_credits == 3
    assert record.daily_recovered_credits == 2
    assert record.total_credits_used == 3


async def test_concurrent_deductions(mongo_ledger):
    user_id = f"test-{uuid.uuid4()}"
    await mongo_ledger.get_balance(user_id)
    results = await asyncio.gather(
        mongo_ledger.deduct(user_id, 4),
        mongo_ledger.deduct(user_id, 4),
        return_exceptions=True,
    )
    assert sum(isinstance(r, InsufficientCreditsError) for r in results) == 1
    assert (await mongo_ledger.get_balance(user_id)).current_credits == 0


async def test_reset(mongo_ledger):
    user_id = f"test-{uuid.uuid4()}"
    await mongo_ledger.deduct(user_id, 2)
    record = await mongo_ledger.reset(user_id)
    assert record.current_credits == 4
    assert record.total_credits_used == 2
