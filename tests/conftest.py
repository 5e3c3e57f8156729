"""Test configuration and fixtures."""
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.services.storage import TickStore

TESTDATA = Path(__file__).parent / "testdata"


@pytest.fixture
def testdata() -> Path:
    return TESTDATA


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        listen_host="127.0.0.1",
        v1_port=0,
        v2_port=0,
        v3_port=0,
        socket_timeout_seconds=0.5,
        log_capacity=1000,
        admin_username="admin",
        admin_password="secret",
    )


@pytest_asyncio.fixture
async def redis() -> AsyncGenerator[FakeAsyncRedis, None]:
    """An isolated in-memory Redis."""
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def store(redis: FakeAsyncRedis, settings: Settings) -> TickStore:
    return TickStore(redis, settings)


@pytest_asyncio.fixture
async def broken_store(settings: Settings) -> AsyncGenerator[TickStore, None]:
    """A store whose Redis connection is down."""
    server = FakeServer()
    server.connected = False
    client = FakeAsyncRedis(server=server, decode_responses=True)
    yield TickStore(client, settings)
    await client.aclose()


def _client_for(store: TickStore, settings: Settings):
    from app.deps import get_app_settings, get_tick_store
    from app.main import app

    async def override_get_tick_store():
        yield store

    app.dependency_overrides[get_tick_store] = override_get_tick_store
    app.dependency_overrides[get_app_settings] = lambda: settings
    return app


@pytest_asyncio.fixture
async def client(store: TickStore, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the in-memory store."""
    app = _client_for(store, settings)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def broken_client(broken_store: TickStore, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    app = _client_for(broken_store, settings)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_auth() -> tuple[str, str]:
    return ("admin", "secret")
