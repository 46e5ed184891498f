from datetime import datetime

import pytest

pytestmark = pytest.mark.asyncio

USER = {"X-User-ID": "user-123"}


async def test_get_credits_creates_ledger(client):
    r = await client.get("/credits", headers=USER)
    assert r.status_code == 200
    data = r.json()
    assert data["user_id"] == "user-123"
    assert data["current_credits"] == 4
    assert data["daily_recovered_credits"] == 0
    assert "version" not in data
    datetime.fromisoformat(data["last_credit_award_time"])
    datetime.fromisoformat(data["daily_credit_reset_time"])


async def test_get_credits_accepts_query_user_id(client):
    r = await client.get("/credits", params={"user_id": "from-query"})
    assert r.status_code == 200
    assert r.json()["user_id"] == "from-query"


async def test_missing_user_id(client):
    r = await client.get("/credits")
    assert r.status_code == 400
    body = r.json()
    assert body["error"]["code"] == "INVALID_ARGUMENT"
    assert body["error"]["message"] == "Missing user_id"


async def test_use_credits_default_amount(client, settings):
    r = await client.post("/credits/use", headers=USER)
    assert r.status_code == 200
    assert r.json()["current_credits"] == 4 - settings.credits_per_use
    assert r.json()["total_credits_used"] == settings.credits_per_use


async def test_use_credits_body_user_wins(client):
    r = await client.post("/credits/use", json={"user_id": "body-user", "amount": 1}, headers=USER)
    assert r.status_code == 200
    assert r.json()["user_id"] == "body-user"
    assert r.json()["current_credits"] == 3


async def test_use_credits_insufficient(client):
    r = await client.post("/credits/use", json={"amount": 5}, headers=USER)
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["code"] == "INSUFFICIENT_CREDITS"
    assert error["details"] == {"required": 5, "available": 4}
    r = await client.get("/credits", headers=USER)
    assert r.json()["current_credits"] == 4


@pytest.mark.parametrize("amount", [0, -1, 1.5])
async def test_use_credits_invalid_amount(client, amount):
    r = await client.post("/credits/use", json={"amount": amount}, headers=USER)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_ARGUMENT"
    assert r.json()["error"]["message"] == "amount must be a positive integer"


async def test_reset_credits(client):
    await client.post("/credits/use", json={"amount": 3}, headers=USER)
    r = await client.post("/credits/reset", headers=USER)
    assert r.status_code == 200
    assert r.json()["current_credits"] == 4
    assert r.json()["daily_recovered_credits"] == 0


async def test_reset_requires_admin_token_when_configured(client, settings, monkeypatch):
    monkeypatch.setattr(settings, "admin_token", "s3cret")
    r = await client.post("/credits/reset", headers=USER)
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "FORBIDDEN"
    r = await client.post("/credits/reset", headers={**USER, "X-Admin-Token": "s3cret"})
    assert r.status_code == 200


async def test_request_id_is_echoed(client):
    r = await client.get("/credits", headers={**USER, "X-Request-ID": "req-42"})
    assert r.headers["X-Request-ID"] == "req-42"
    r = await client.get("/credits")
    assert r.json()["request_id"] == r.headers["X-Request-ID"]
