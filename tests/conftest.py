"""Pytest configuration and fixtures."""

import os
import time

# Set before profile_api.main is imported: it builds a module-level app from the environment.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient

from profile_api.config import Settings
from profile_api.db import ConnectionState, RecordStore
from profile_api.main import create_app
from profile_api.services.users import UserCollectionService


def _settings(database_url: str) -> Settings:
    return Settings(
        database_uri=database_url,
        environment="test",
        app_version="9.9.9",
        store_connect_retries=1,
        store_retry_interval=0,
        store_ping_timeout=2,
    )


def _wait_for(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.02)
    raise AssertionError("condition not reached before timeout")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return _settings(f"sqlite+aiosqlite:///{tmp_path / 'profiles.db'}")


@pytest.fixture
def offline_settings(tmp_path) -> Settings:
    return _settings(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'profiles.db'}")


@pytest.fixture
async def store(settings):
    record_store = RecordStore.from_settings(settings)
    await record_store.connect()
    yield record_store
    await record_store.dispose()


@pytest.fixture
async def service(store):
    async with store.session() as session:
        yield UserCollectionService(session)


@pytest.fixture
def client(settings):
    """Client for an app whose record store finished connecting."""

    with TestClient(create_app(settings)) as test_client:
        _wait_for(lambda: test_client.app.state.store.state is ConnectionState.CONNECTED)
        yield test_client


@pytest.fixture
def offline_client(offline_settings):
    """Client for an app whose record store could not be reached."""

    with TestClient(create_app(offline_settings)) as test_client:
        _wait_for(lambda: test_client.app.state.store.state is ConnectionState.DISCONNECTED)
        yield test_client


@pytest.fixture
def jo_ann() -> dict:
    return {"name": "Jo Ann", "email": "jo@x.com", "age": 34, "city": "Lisbon", "phone": "+351 (21) 555-0100"}
