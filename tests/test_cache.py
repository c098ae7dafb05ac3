import uuid

import pytest
from fakeredis import FakeServer, aioredis
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from schoolhub.auth.tokens import TokenService
from schoolhub.core.cache import CacheManager, MemoryCacheBackend, RedisCacheBackend
from schoolhub.core.enums import Role
from schoolhub.core.exceptions import InternalError
from schoolhub.pipeline.context import ApiRequest, ApiResponse, GateDependencies
from schoolhub.pipeline.gates import rate_limiter

from helpers import call, login, register


class FlakyBackend(MemoryCacheBackend):
    """Memory cache whose revocation reads and marker writes can be switched off."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.fail_exists = False
        self.fail_set = False

    async def exists(self, key):
        if self.fail_exists:
            raise ConnectionError("cache unreachable")
        return await super().exists(key)

    async def set(self, key, value, ttl=None):
        if self.fail_set:
            return False
        return await super().set(key, value, ttl)


@pytest.fixture()
def cache_backend(test_settings, clock) -> FlakyBackend:
    return FlakyBackend(default_ttl=test_settings.cache_ttl, clock=clock)


@pytest.fixture()
async def redis_backend():
    backend = RedisCacheBackend(client=aioredis.FakeRedis(server=FakeServer(), decode_responses=True))
    yield backend
    await backend.close()


@pytest.fixture()
async def offline_redis_backend():
    server = FakeServer()
    server.connected = False
    client = aioredis.FakeRedis(server=server, decode_responses=True)
    backend = RedisCacheBackend(client=client)
    yield backend
    await backend.close()


async def test_redis_backend_round_trip(redis_backend: RedisCacheBackend) -> None:
    cache = CacheManager(redis_backend)
    assert await cache.set("school:1", {"name": "Greenwood", "code": "GREEN01"}, ttl=120)
    assert await cache.get("school:1") == {"name": "Greenwood", "code": "GREEN01"}
    assert await cache.exists("school:1")
    assert 0 < await redis_backend.redis.ttl("school:1") <= 120

    assert await cache.delete("school:1")
    assert await cache.get("school:1") is None
    assert not await cache.exists("school:1")


async def test_rate_limiter_over_redis(redis_backend: RedisCacheBackend, test_settings) -> None:
    settings = test_settings.model_copy(update={"rate_limit_max_requests": 2, "rate_limit_window_seconds": 30})
    gate = rate_limiter.build(GateDependencies(settings=settings, cache=CacheManager(redis_backend), tokens=None))

    responses = []
    for _ in range(3):
        response = ApiResponse()
        await gate(ApiRequest("auth", "login", "POST", client_ip="1.2.3.4"), response, lambda extra=None: None)
        responses.append(response)

    assert [r.headers["X-RateLimit-Remaining"] for r in responses] == ["1", "0", "0"]
    assert responses[2].status_code == 429
    assert await redis_backend.redis.get("rate_limit:1.2.3.4") == "2"
    assert 0 < await redis_backend.redis.ttl("rate_limit:1.2.3.4") <= 30


async def test_offline_redis_fails_revocation_closed(offline_redis_backend: RedisCacheBackend) -> None:
    cache = CacheManager(offline_redis_backend)
    assert await cache.get("school:1") is None
    assert await cache.set("school:1", {"name": "x"}) is False
    with pytest.raises(RedisConnectionError):
        await cache.exists("revoked:abc")

    tokens = TokenService(cache, secret_key="unit-secret")
    token = tokens.create_access_token(uuid.uuid4(), Role.SUPERADMIN)
    with pytest.raises(InternalError, match="Token revocation failed"):
        await tokens.revoke(token)
    with pytest.raises(RedisConnectionError):
        await tokens.verify(token)


async def test_logout_fails_when_marker_cannot_be_stored(client: AsyncClient, cache_backend: FlakyBackend) -> None:
    await register(client, "outage@schoolhub.io")
    access = (await login(client, "outage@schoolhub.io"))["accessToken"]

    cache_backend.fail_set = True
    logout = await call(client, "auth", "logout", token=access)
    assert logout.status_code == 500
    assert logout.json() == {"ok": False, "code": 500, "errors": "Internal server error"}

    cache_backend.fail_set = False
    retry = await call(client, "auth", "logout", token=access)
    assert retry.status_code == 200
    after = await call(client, "auth", "profile", method="GET", token=access)
    assert after.status_code == 401


async def test_unreadable_revocation_list_rejects_tokens(client: AsyncClient, cache_backend: FlakyBackend) -> None:
    await register(client, "blind@schoolhub.io")
    tokens = await login(client, "blind@schoolhub.io")

    cache_backend.fail_exists = True
    profile = await call(client, "auth", "profile", method="GET", token=tokens["accessToken"])
    assert profile.status_code == 500
    assert profile.json()["ok"] is False

    refreshed = await call(client, "auth", "refresh", json={"refreshToken": tokens["refreshToken"]})
    assert refreshed.status_code == 500

    cache_backend.fail_exists = False
    profile = await call(client, "auth", "profile", method="GET", token=tokens["accessToken"])
    assert profile.status_code == 200
