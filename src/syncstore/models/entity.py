"""Entity and EntityCollection — Domain objects persisted through a datasource.

Both classes hold a reference to a shared :class:`DataSource` and a standing
criterion (``query``), and implement ``sync()`` by delegating each verb to
the datasource and reconciling the result into their own state:

  create  ->  datasource.insert(state)          then reset(state)
  update  ->  datasource.update(query, state)   state untouched
  delete  ->  datasource.remove(query)          then reset()
  read    ->  datasource.query(query)           then reset(result)

``success`` only fires once the backend confirmed the operation. Any
exception raised while syncing is passed to ``error`` when given; otherwise
it is logged and dropped. At most one of the two callbacks runs per call,
and both run outside the guarded block, so an exception raised by the
caller's own callback propagates to the caller. When the datasource's guard
rejects the call (not connected, no collection), neither callback runs.

The datasource is shared, not owned: several domain objects may hold the
same instance, and closing its connection affects all of them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from syncstore.datasources.base.datasource import Callback, Criterion, DataSource, notify, resolve_criterion
from syncstore.models.base import Collection, Model, SyncMethod
from syncstore.models.exceptions import NoDataError

logger = logging.getLogger(__name__)

Confirmations = list[tuple[Any, ...]]


class _DataSourceSync:
    """Shared verb dispatch for datasource-backed domain objects.

    Mixed in ahead of ``Model`` or ``Collection``, which provide
    ``to_json()`` and ``reset()``. Each verb appends the arguments for
    ``success`` to ``confirmed`` from inside the datasource callback.
    """

    datasource: DataSource | None = None
    query: Criterion = None

    async def sync(
        self,
        method: str | SyncMethod,
        *,
        query: Criterion = None,
        success: Callback | None = None,
        error: Callback | None = None,
    ) -> Any:
        """Synchronize with the datasource.

        Args:
            method: One of ``create``, ``read``, ``update``, ``delete``.
            query: Criterion overriding the standing ``query`` for this call.
            success: Called once the backend confirmed the operation.
            error: Called with the exception if the operation raised.

        Returns:
            The datasource's result, or ``{}`` when nothing was synchronized.

        Raises:
            ValueError: If ``method`` is not a known verb.
        """
        verb = SyncMethod.parse(method)
        logger.debug("sync %s", verb.value)
        if self.datasource is None:
            logger.warning("No datasource")
            return {}

        criterion = query if query is not None else self.query
        confirmed: Confirmations = []
        try:
            if verb is SyncMethod.CREATE:
                result = await self._create(confirmed)
            elif verb is SyncMethod.UPDATE:
                result = await self._update(criterion, confirmed)
            elif verb is SyncMethod.DELETE:
                result = await self._delete(criterion, confirmed)
            else:
                result = await self._read(criterion, confirmed)
        except Exception as e:
            if error is None:
                logger.error("Sync %s failed and no error callback was given: %s", verb.value, e)
            else:
                await notify(error, e)
            return {}

        if confirmed:
            await notify(success, *confirmed[0])
        return result

    def set_datasource(self, datasource: DataSource | None) -> None:
        self.datasource = datasource

    # ── Verbs ───────────────────────────────────────────────────────────

    async def _create(self, confirmed: Confirmations) -> Any:
        payload = self.to_json()

        async def on_inserted(_result: Any = None) -> None:
            self.reset(payload)
            confirmed.append(())

        return await self.datasource.insert(payload, on_inserted)

    async def _update(self, criterion: Criterion, confirmed: Confirmations) -> Any:
        payload = self.to_json()

        async def on_updated(_data: Any = None) -> None:
            confirmed.append(())

        return await self.datasource.update(criterion, payload, on_updated)

    async def _delete(self, criterion: Criterion, confirmed: Confirmations) -> Any:
        async def on_removed() -> None:
            self.reset()
            confirmed.append(())

        return await self.datasource.remove(criterion, on_removed)

    async def _read(self, criterion: Criterion, confirmed: Confirmations) -> Any:
        logger.debug("reading with query %r", criterion)

        async def on_results(data: Any) -> None:
            self._reconcile(data)
            logger.debug("returned: %r", data)
            confirmed.append((data,))

        return await self.datasource.query(criterion, on_results)

    def _reconcile(self, data: Any) -> None:
        self.reset(data)


class Entity(_DataSourceSync, Model):
    """A single record persisted through a datasource.

    Args:
        attributes: Initial attribute values.
        datasource: Shared datasource instance.
        collection: Collection name bound on the datasource at construction.
        url: Explicit URL; defaults to the datasource's URL.
        id: Identifier of the record (not stored as an attribute).
        query: Standing criterion, a value or a zero-argument callable.
    """

    collection: str = "collection"

    def __init__(
        self,
        attributes: Mapping[str, Any] | None = None,
        *,
        datasource: DataSource | None = None,
        collection: str | None = None,
        url: str | None = None,
        id: str = "",
        query: Criterion = None,
    ) -> None:
        super().__init__(attributes)
        if collection:
            self.collection = collection
        self.datasource = datasource
        self.url = url or (datasource.url if datasource is not None else "")
        self.id = id
        if query is not None:
            self.query = query
        if self.datasource is not None:
            self.datasource.set_collection(self.collection)

    def _reconcile(self, data: Any) -> None:
        if data is None:
            raise NoDataError("No data returned!")
        if isinstance(data, list):
            self.reset(data[0] if data else None)
        else:
            self.reset(data)


class EntityCollection(_DataSourceSync, Collection):
    """A list of records persisted through a datasource.

    ``create`` inserts every record at once (the datasource's bulk path).
    ``update`` writes each record over the stored record with the same
    ``id_attribute`` value; ``delete`` and ``read`` use the criterion.

    Args:
        models: Initial records.
        datasource: Shared datasource instance.
        name: Collection name bound on the datasource at construction.
        query: Standing criterion, a value or a zero-argument callable.
        url: Explicit URL; defaults to the datasource's URL.
    """

    name: str = "collection"
    id_attribute: str = "id"

    def __init__(
        self,
        models: Iterable[Mapping[str, Any]] | None = None,
        *,
        datasource: DataSource | None = None,
        name: str | None = None,
        query: Criterion = None,
        url: str | None = None,
    ) -> None:
        super().__init__(models)
        self.datasource = datasource
        if query is not None:
            self.query = query
        if name:
            self.name = name
        self.url = url or (datasource.url if datasource is not None else "")
        self.set_datasource_collection(self.name)

    def set_datasource_collection(self, name: str | None) -> None:
        """Rename this collection and bind it on the datasource."""
        if isinstance(name, str) and name and self.datasource is not None:
            logger.debug("Setting collection name: %s", name)
            self.name = name
            self.datasource.set_collection(name)

    async def _update(self, criterion: Criterion, confirmed: Confirmations) -> Any:
        """Write each record over the stored record sharing its ``id_attribute``.

        A mapping criterion is merged into every per-record criterion.
        ``success`` fires once every record update was confirmed.

        Raises:
            ValueError: If a record has no ``id_attribute`` value.
        """
        records = self.to_json()
        missing = [i for i, record in enumerate(records) if record.get(self.id_attribute) is None]
        if missing:
            raise ValueError(f"Cannot update records without '{self.id_attribute}' (positions {missing})")

        scope = resolve_criterion(criterion)
        scope = dict(scope) if isinstance(scope, Mapping) else {}
        done: Confirmations = []

        async def on_updated(_data: Any = None) -> None:
            done.append(())

        results = []
        for record in records:
            record_criterion = {**scope, self.id_attribute: record[self.id_attribute]}
            results.append(await self.datasource.update(record_criterion, record, on_updated))

        logger.debug("Collection update confirmed %d of %d record(s)", len(done), len(records))
        if len(done) == len(records):
            confirmed.append(())
        return results
