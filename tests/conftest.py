import os
from typing import AsyncGenerator

# Must be set before schoolhub.core.config builds the module-level settings
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub.core.cache import CacheBackend, CacheManager, MemoryCacheBackend
from schoolhub.core.config import Settings
from schoolhub.main import create_app
from schoolhub.pipeline.server import SchoolServer

from helpers import PASSWORD, call, login, register


class FakeClock:
    """Controllable time source for the memory cache (TTL expiry, rate-limit windows)."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings_overrides() -> dict:
    """Override in a test module to tweak settings (e.g. a small rate limit)."""
    return {}


@pytest.fixture()
def test_settings(tmp_path, settings_overrides) -> Settings:
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'schoolhub-test.db'}",
        "jwt_secret_key": "test-secret-key",
        "environment": "test",
        "rate_limit_max_requests": 10_000,
        "bcrypt_rounds": 4,
    }
    values.update(settings_overrides)
    return Settings(**values)


@pytest.fixture()
def cache_backend(test_settings: Settings, clock: FakeClock) -> CacheBackend:
    """Override in a test module to run the server on another cache backend."""
    return MemoryCacheBackend(default_ttl=test_settings.cache_ttl, clock=clock)


@pytest.fixture()
async def server(test_settings: Settings, cache_backend: CacheBackend) -> AsyncGenerator[SchoolServer, None]:
    """Started server on a temporary SQLite file with the test cache backend."""
    cache = CacheManager(cache_backend)
    srv = SchoolServer(test_settings, cache=cache)
    await srv.start()
    yield srv
    await srv.stop()


@pytest.fixture()
async def client(server: SchoolServer) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app wrapping the started server."""
    app = create_app(server)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def db_session(server: SchoolServer) -> AsyncGenerator[AsyncSession, None]:
    async with server.session_factory() as session:
        yield session


@pytest.fixture()
async def superadmin_token(client: AsyncClient) -> str:
    await register(client, "root@schoolhub.io", role="superadmin")
    data = await login(client, "root@schoolhub.io")
    return data["accessToken"]


@pytest.fixture()
def school_admin_token(client: AsyncClient):
    """Factory: register a school_admin for school_id and return its access token."""

    async def _make(school_id: str, email: str) -> str:
        await register(client, email, role="school_admin", school_id=school_id)
        data = await login(client, email, PASSWORD)
        return data["accessToken"]

    return _make


@pytest.fixture()
def api(client: AsyncClient):
    """Shortcut: await api("schools", "create", token, json={...})."""

    async def _call(module: str, function: str, token=None, method: str = "POST", **kwargs):
        return await call(client, module, function, method=method, token=token, **kwargs)

    return _call
