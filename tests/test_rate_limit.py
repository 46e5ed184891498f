import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from headshot_api.core.exceptions import TooManyRequestsError
from headshot_api.services import rate_limit

pytestmark = pytest.mark.asyncio

NOW = 1_800_000_010.0  # 10s into a window


async def test_allows_up_to_limit(fake_redis):
    for _ in range(3):
        await rate_limit.enforce(fake_redis, "1.2.3.4", limit=3, now=NOW)
    with pytest.raises(TooManyRequestsError) as exc_info:
        await rate_limit.enforce(fake_redis, "1.2.3.4", limit=3, now=NOW + 5)
    assert exc_info.value.status_code == 429
    assert exc_info.value.details == {"retry_after": 45}


async def test_ttl_set_on_first_hit_only(fake_redis):
    await rate_limit.enforce(fake_redis, "1.2.3.4", limit=5, now=NOW)
    key = rate_limit._key("1.2.3.4", NOW)
    assert fake_redis.ttls == {key: rate_limit.WINDOW_SECONDS + 1}
    fake_redis.ttls.clear()
    await rate_limit.enforce(fake_redis, "1.2.3.4", limit=5, now=NOW)
    assert fake_redis.ttls == {}


async def test_counts_are_per_client_and_window(fake_redis):
    await rate_limit.enforce(fake_redis, "a", limit=1, now=NOW)
    await rate_limit.enforce(fake_redis, "b", limit=1, now=NOW)
    await rate_limit.enforce(fake_redis, "a", limit=1, now=NOW + 60)


async def test_zero_limit_disables(fake_redis):
    for _ in range(20):
        await rate_limit.enforce(fake_redis, "a", limit=0, now=NOW)
    assert fake_redis.values == {}


class DownRedis:
    async def incr(self, key):
        raise RedisConnectionError("Connection refused")


async def test_redis_outage_allows_request():
    await rate_limit.enforce(DownRedis(), "a", limit=1, now=NOW)


def test_client_id_from_headers():
    assert rate_limit.client_id_from_headers("203.0.113.7, 10.0.0.1", "10.0.0.2") == "203.0.113.7"
    assert rate_limit.client_id_from_headers(None, "10.0.0.2") == "10.0.0.2"
    assert rate_limit.client_id_from_headers("", None) == "unknown"
