"""Shared fixtures: an in-memory Redis server wired into the app."""

import fakeredis
import pytest
from fastapi.testclient import TestClient

from telemetry_cache.api import get_store
from telemetry_cache.config import Settings, get_settings
from telemetry_cache.main import app
from telemetry_cache.storage import MetricStore

API_TOKEN = "test-token-123"


class FakeClientFactory:
    """Hands out FakeAsyncRedis clients bound to one server and counts connections."""

    def __init__(self, server: fakeredis.FakeServer):
        self.server = server
        self.calls = 0

    def __call__(self, url: str, connect_timeout: float) -> fakeredis.FakeAsyncRedis:
        self.calls += 1
        return fakeredis.FakeAsyncRedis(server=self.server, decode_responses=True)


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def client_factory(fake_server) -> FakeClientFactory:
    return FakeClientFactory(fake_server)


@pytest.fixture
def store(client_factory) -> MetricStore:
    return MetricStore("redis://fake:6379/0", client_factory=client_factory)


@pytest.fixture
def settings() -> Settings:
    return Settings(redis_url="redis://fake:6379/0", api_token=API_TOKEN, _env_file=None)


@pytest.fixture
def client(store, settings):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    return {"X-API-Token": API_TOKEN}


@pytest.fixture
def api_token() -> str:
    return API_TOKEN
