"""Per-client request rate limit: fixed one-minute window counted in Redis."""

import time

from redis.exceptions import RedisError

from headshot_api.core.config import get_settings
from headshot_api.core.exceptions import TooManyRequestsError
from headshot_api.core.logging import get_logger

log = get_logger(__name__)

KEY_PREFIX = "ratelimit:headshots"
WINDOW_SECONDS = 60


def _window_start(now: float) -> int:
    return int(now // WINDOW_SECONDS) * WINDOW_SECONDS


def _key(client_id: str, now: float) -> str:
    return f"{KEY_PREFIX}:{client_id}:{_window_start(now)}"


async def hit(redis, client_id: str, now: float | None = None) -> int:
    """Count one request in the current window and return the new count; set TTL on first hit."""
    now = time.time() if now is None else now
    key = _key(client_id, now)
    n = await redis.incr(key)
    if n == 1:
        # one spare second so the key outlives its window on slow clocks
        await redis.expire(key, WINDOW_SECONDS + 1)
    return n


async def enforce(redis, client_id: str, limit: int | None = None, now: float | None = None) -> None:
    """Raise TooManyRequestsError when client_id is over the limit for this window."""
    limit = get_settings().rate_limit_per_minute if limit is None else limit
    if limit <= 0:
        return
    now = time.time() if now is None else now
    try:
        count = await hit(redis, client_id, now)
    except RedisError as e:
        log.warning("rate_limit_unavailable", client_id=client_id, error=str(e))
        return
    if count > limit:
        retry_after = _window_start(now) + WINDOW_SECONDS - int(now)
        log.info("rate_limited", client_id=client_id, count=count, limit=limit)
        raise TooManyRequestsError(retry_after=max(retry_after, 1))


def client_id_from_headers(forwarded_for: str | None, peer_host: str | None) -> str:
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer_host or "unknown"
