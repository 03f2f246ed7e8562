"""Shared test fixtures and configuration."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from syncstore.config.settings import ResourceSettings, Settings
from syncstore.datasources.memory.datasource import MemoryDataSource


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=True,
    )


@pytest.fixture
def resource_settings() -> ResourceSettings:
    return ResourceSettings(host="api.test", secure=False, timeout=5.0)


@pytest.fixture
def memory_ds() -> MemoryDataSource:
    """An unconnected in-memory datasource."""
    return MemoryDataSource()


@pytest.fixture
async def connected_memory_ds() -> MemoryDataSource:
    """An in-memory datasource connected with the ``users`` collection bound."""
    ds = MemoryDataSource()
    await ds.get_connection("memory://local", "users")
    return ds


@pytest.fixture
def mongo_collection() -> MagicMock:
    """A Motor-like collection: async write verbs, ``find()`` returning a cursor."""
    collection = MagicMock()
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="id-1"))
    collection.insert_many = AsyncMock(return_value=MagicMock(inserted_ids=["id-1", "id-2"]))
    collection.update_many = AsyncMock(return_value=MagicMock(modified_count=1))
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=1))
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=[])
    collection.find = MagicMock(return_value=cursor)
    return collection


@pytest.fixture
def mongo_db(mongo_collection: MagicMock) -> MagicMock:
    db = MagicMock()
    db.command = AsyncMock(return_value={"ok": 1.0})
    db.__getitem__.return_value = mongo_collection
    return db


@pytest.fixture
def mongo_client(mongo_db: MagicMock) -> MagicMock:
    """A Motor-like client: ``client[name]`` yields ``mongo_db``."""
    client = MagicMock()
    client.__getitem__.return_value = mongo_db
    return client


@pytest.fixture
def http_client() -> AsyncMock:
    return AsyncMock(spec=httpx.AsyncClient)


@pytest.fixture
def make_response():
    """Factory for real ``httpx.Response`` objects bound to a request (needed by ``raise_for_status``)."""

    def _make(status_code: int, method: str = "GET", url: str = "http://test", **kwargs) -> httpx.Response:
        return httpx.Response(status_code, request=httpx.Request(method, url), **kwargs)

    return _make
