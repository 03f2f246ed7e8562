"""MongoDB datasource — Document-store backend over an async Motor client.

The native client is an ``AsyncIOMotorClient`` (or anything exposing the
same ``client[db][collection]`` surface). It is supplied by the caller, so
its lifetime and configuration stay outside this module.

Requires the ``motor`` optional dependency only for :meth:`MongoDataSource.from_url`::

    pip install syncstore[mongo]

Usage::

    ds = MongoDataSource(AsyncIOMotorClient("mongodb://localhost:27017"))
    await ds.get_connection("mongodb://localhost:27017/app", "users")
    await ds.insert([{"name": "Ada"}, {"name": "Grace"}])
    users = await ds.query({"name": "Ada"})
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

from syncstore.datasources.base.datasource import (
    Callback,
    Criterion,
    DataSource,
    DataSourceStyle,
    notify,
    resolve_criterion,
)
from syncstore.datasources.base.exceptions import BackendOperationError, ConnectionError

logger = logging.getLogger(__name__)


class MongoDataSource(DataSource):
    """Datasource for MongoDB collections.

    The database is taken from the path of the connection URL
    (``mongodb://host:27017/<database>``), falling back to
    ``default_database``. Connectivity is confirmed with a ``ping`` command
    before the datasource reports itself connected.

    Args:
        client: An async Motor client.
        default_database: Database used when the URL carries none.
        strict: Raise ``NotConnectedError`` on failed guards.
    """

    style = DataSourceStyle.DATABASE

    def __init__(self, client: Any = None, *, default_database: str = "test", strict: bool = False) -> None:
        super().__init__(client, strict=strict)
        self._default_database = default_database

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> MongoDataSource:
        """Create a datasource with a fresh Motor client for ``url``."""
        from motor.motor_asyncio import AsyncIOMotorClient

        return cls(AsyncIOMotorClient(url), **kwargs)

    @property
    def name(self) -> str:
        return "mongodb"

    # ── Connection ──────────────────────────────────────────────────────

    async def get_connection(self, url: str, collection: str | None = None) -> bool:
        """Select the database named in ``url`` and ping it.

        Returns:
            True once the server answered the ping; False if no client was passed.

        Raises:
            ConnectionError: If the server cannot be reached.
        """
        self.connected = False
        if self.client is None:
            logger.error("No client was passed.")
            return False

        database_name = self._database_name(url)
        try:
            db = self.client[database_name]
            await db.command("ping")
        except Exception as e:
            logger.error("MongoDB connection to database '%s' failed: %s", database_name, type(e).__name__)
            raise ConnectionError(f"Failed to connect to MongoDB: {e}") from e

        if collection:
            logger.debug("getConnection: collection: %s", collection)
            self.collection = db[collection]
        else:
            logger.debug("getConnection: no collection")
        self.db = db
        self.url = url
        self.connected = True
        self.style = DataSourceStyle.DATABASE
        logger.info("Connected to MongoDB database '%s'", database_name)
        return True

    async def close_connection(self) -> None:
        """Close the Motor client and release handles."""
        if self.db is None or not self.connected:
            return
        self.client.close()
        await super().close_connection()

    def set_collection(self, name: str | None) -> None:
        """Bind ``db[name]``; ignored before a database handle exists."""
        logger.debug("setCollection: %s", name)
        if not isinstance(name, str) or not name:
            logger.debug("No collection set")
            return
        if self.db is None:
            logger.debug("No database handle yet, collection '%s' not bound", name)
            return
        self.collection = self.db[name]

    # ── CRUD ────────────────────────────────────────────────────────────

    async def query(self, query: Criterion, callback: Callback | None = None) -> Any:
        if not self._guard("query"):
            return {}
        criterion = resolve_criterion(query)
        logger.debug("The query: %s", criterion)
        try:
            results = await self.collection.find(criterion or {}).to_list(length=None)
        except Exception as e:
            raise self._backend_error("query", e) from e
        results = list(results or [])
        logger.debug("Results: %d document(s)", len(results))
        await notify(callback, results)
        return results

    async def insert(self, data: Any, callback: Callback | None = None) -> Any:
        if not self._guard("insert"):
            return {}
        try:
            if isinstance(data, list):
                result = await self.collection.insert_many(data)
            else:
                result = await self.collection.insert_one(data)
        except Exception as e:
            raise self._backend_error("insert", e) from e
        logger.debug("Insert result: %r", result)
        if result is not None:
            await notify(callback, result)
        return result

    async def update(self, query: Criterion, data: Any, callback: Callback | None = None) -> Any:
        if not self._guard("update"):
            return data
        criterion = resolve_criterion(query)
        logger.debug("The query: %s", criterion)
        changes = {key: value for key, value in self._changes(data).items() if key != "_id"}
        try:
            result = await self.collection.update_many(criterion or {}, {"$set": changes})
        except Exception as e:
            raise self._backend_error("update", e) from e
        logger.debug("Update result: %r", result)
        await notify(callback, data)
        return data

    async def remove(self, query: Criterion, callback: Callback | None = None) -> Any:
        if not self._guard("remove"):
            return {}
        criterion = resolve_criterion(query)
        logger.debug("The query: %s", criterion)
        try:
            result = await self.collection.delete_many(criterion or {})
        except Exception as e:
            raise self._backend_error("remove", e) from e
        logger.debug("Remove result: %r", result)
        await notify(callback)
        return {}

    # ── Helpers ─────────────────────────────────────────────────────────

    def _database_name(self, url: str) -> str:
        path = urlparse(url).path.strip("/") if url else ""
        return path.split("/")[0] if path else self._default_database

    def _backend_error(self, operation: str, exc: Exception) -> BackendOperationError:
        logger.error("MongoDB %s failed: %s", operation, type(exc).__name__)
        return BackendOperationError(f"MongoDB {operation} failed: {exc}")
