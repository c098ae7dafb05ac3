import pytest
from httpx import ASGITransport, AsyncClient

from schoolhub.core.cache import CacheManager, MemoryCacheBackend
from schoolhub.main import create_app
from schoolhub.pipeline.context import ApiRequest, ApiResponse, GateDependencies
from schoolhub.pipeline.gates import rate_limiter
from schoolhub.pipeline.gates.device import client_ip

from helpers import call


@pytest.fixture()
def settings_overrides() -> dict:
    return {"rate_limit_max_requests": 3, "rate_limit_window_seconds": 60}


async def _attempt(client: AsyncClient):
    return await call(client, "auth", "login", json={"email": "nobody@schoolhub.io", "password": "wrong"})


async def test_fourth_request_in_window_is_throttled(client: AsyncClient, clock) -> None:
    remaining = []
    for _ in range(3):
        response = await _attempt(client)
        assert response.status_code == 401
        remaining.append(response.headers["X-RateLimit-Remaining"])
    assert remaining == ["2", "1", "0"]

    throttled = await _attempt(client)
    assert throttled.status_code == 429
    assert throttled.json() == {
        "ok": False,
        "code": 429,
        "errors": "Too many requests. Maximum 3 requests allowed",
    }
    assert throttled.headers["X-RateLimit-Limit"] == "3"
    assert throttled.headers["X-RateLimit-Remaining"] == "0"

    clock.advance(61)
    after_window = await _attempt(client)
    assert after_window.status_code == 401
    assert after_window.headers["X-RateLimit-Remaining"] == "2"


async def test_clients_are_counted_separately(client: AsyncClient, server) -> None:
    for _ in range(3):
        await _attempt(client)
    assert (await _attempt(client)).status_code == 429

    transport = ASGITransport(app=create_app(server), client=("10.0.0.9", 5000))
    async with AsyncClient(transport=transport, base_url="http://test") as other_client:
        other = await _attempt(other_client)
    assert other.status_code == 401
    assert other.headers["X-RateLimit-Remaining"] == "2"


async def test_forwarded_header_does_not_reset_the_window(client: AsyncClient) -> None:
    codes = []
    for i in range(6):
        response = await call(
            client,
            "auth",
            "login",
            json={"email": "nobody@schoolhub.io", "password": "wrong"},
            headers={"X-Forwarded-For": f"10.0.0.{i}"},
        )
        codes.append(response.status_code)
    assert codes == [401, 401, 401, 429, 429, 429]


def test_forwarded_header_only_counts_behind_trusted_proxy() -> None:
    request = ApiRequest(
        "auth", "login", "POST", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}, client_ip="10.0.0.1"
    )
    assert client_ip(request) == "10.0.0.1"
    assert client_ip(request, trust_proxy_headers=True) == "203.0.113.7"
    assert client_ip(ApiRequest("auth", "login", "POST"), trust_proxy_headers=True) == "unknown"


class _BrokenBackend(MemoryCacheBackend):
    async def get(self, key):
        raise ConnectionError("cache down")


async def test_cache_outage_fails_open(test_settings) -> None:
    deps = GateDependencies(settings=test_settings, cache=CacheManager(_BrokenBackend()), tokens=None)
    gate = rate_limiter.build(deps)
    proceeded = []
    response = ApiResponse()

    await gate(ApiRequest("auth", "login", "POST", client_ip="1.2.3.4"), response, lambda extra=None: proceeded.append(True))

    assert proceeded == [True]
    assert response.sent is False
