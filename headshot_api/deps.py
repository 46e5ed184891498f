"""Shared FastAPI dependencies."""

import hmac
from typing import AsyncGenerator

import redis.asyncio as aioredis
from fastapi import Depends, Header, Request

from headshot_api.core.config import get_settings
from headshot_api.core.exceptions import ForbiddenError, InvalidArgumentError
from headshot_api.services.ledger import CreditLedger
from headshot_api.services.replicate import ReplicateClient
from headshot_api.storage.base import LedgerStore, get_ledger_store


def get_store() -> LedgerStore:
    return get_ledger_store()


def get_ledger(store: LedgerStore = Depends(get_store)) -> CreditLedger:
    return CreditLedger(store)


def get_image_generator() -> ReplicateClient:
    return ReplicateClient()


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    client = aioredis.from_url(get_settings().redis_url, decode_responses=True)
    try:
        yield client
    finally:
        await client.aclose()


def resolve_user_id(body_user_id: str | None, header_user_id: str | None) -> str:
    """Body user_id wins over the X-User-ID header."""
    user_id = (body_user_id or header_user_id or "").strip()
    if not user_id:
        raise InvalidArgumentError("Missing user_id")
    return user_id


async def require_admin(x_admin_token: str | None = Header(None, alias="X-Admin-Token")) -> None:
    """Dependency: when ADMIN_TOKEN is configured, require it on administrative routes."""
    expected = get_settings().admin_token
    if not expected:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise ForbiddenError("Admin only")


def client_address(request: Request) -> str:
    from headshot_api.services.rate_limit import client_id_from_headers
    peer = request.client.host if request.client else None
    return client_id_from_headers(request.headers.get("x-forwarded-for"), peer)
