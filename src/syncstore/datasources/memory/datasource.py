"""In-memory datasource — A list-backed store living in the current process.

Intended as a lightweight test double and for small, ephemeral data sets.
Connecting always succeeds and needs no native client.

Usage::

    ds = MemoryDataSource()
    await ds.get_connection("memory://", "users")
    await ds.insert({"id": 1, "name": "Ada"})
    records = await ds.query({"id": 1})
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from syncstore.datasources.base.datasource import (
    Callback,
    Criterion,
    DataSource,
    DataSourceStyle,
    notify,
    resolve_criterion,
)

logger = logging.getLogger(__name__)


class MemoryDataSource(DataSource):
    """Datasource backed by an ordered, in-process list.

    Records are kept in insertion order. Criteria are mappings matched by
    subset equality: a record matches when it holds every key of the
    criterion with an equal value. An empty or ``None`` criterion matches
    every record.
    """

    style = DataSourceStyle.ARRAY

    def __init__(self, client: Any = None, *, strict: bool = False) -> None:
        super().__init__(client, strict=strict)
        self.db: list[Any] | None = []

    @property
    def name(self) -> str:
        return "memory"

    async def get_connection(self, url: str, collection: str | None = None) -> bool:
        """Mark the store as connected. Always succeeds."""
        if self.db is None:
            self.db = []
        if collection:
            self.collection = collection
        self.url = url
        self.style = DataSourceStyle.ARRAY
        self.connected = True
        logger.debug("Memory datasource connected (collection: %s)", collection)
        return True

    @property
    def records(self) -> list[Any]:
        """The backing list (empty once the connection is closed)."""
        return self.db if self.db is not None else []

    async def insert(self, data: Any, callback: Callback | None = None) -> Any:
        if not self._guard("insert"):
            return {}
        if isinstance(data, list):
            self.db.extend(copy.deepcopy(data))
        else:
            self.db.append(copy.deepcopy(data))
        await notify(callback, data)
        return data

    async def update(self, query: Criterion, data: Any, callback: Callback | None = None) -> Any:
        if not self._guard("update"):
            return data
        changes = self._changes(data)
        criterion = resolve_criterion(query)
        updated = 0
        for record in self.db:
            if _matches(record, criterion) and isinstance(record, dict):
                record.update(copy.deepcopy(changes))
                updated += 1
        logger.debug("Memory update matched %d record(s)", updated)
        await notify(callback, data)
        return data

    async def remove(self, query: Criterion, callback: Callback | None = None) -> Any:
        if not self._guard("remove"):
            return {}
        criterion = resolve_criterion(query)
        before = len(self.db)
        self.db[:] = [record for record in self.db if not _matches(record, criterion)]
        logger.debug("Memory remove deleted %d record(s)", before - len(self.db))
        await notify(callback)
        return {}

    async def query(self, query: Criterion, callback: Callback | None = None) -> Any:
        if not self._guard("query"):
            return {}
        criterion = resolve_criterion(query)
        results = [copy.deepcopy(record) for record in self.db if _matches(record, criterion)]
        await notify(callback, results)
        return results


def _matches(record: Any, criterion: Any) -> bool:
    """Subset-equality match of ``record`` against ``criterion``."""
    if not criterion:
        return True
    if not isinstance(criterion, dict):
        return bool(record == criterion)
    if not isinstance(record, dict):
        return False
    return all(key in record and record[key] == value for key, value in criterion.items())
