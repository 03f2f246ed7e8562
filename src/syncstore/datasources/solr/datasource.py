"""Apache Solr datasource — Search-index backend via Solr's JSON APIs.

Talks to Apache Solr (v8+) through an ``httpx.AsyncClient`` supplied by the
caller. Connectivity is checked with the collection's ``/admin/ping``
handler; the collection is an opaque label (the Solr core/collection name)
rather than a native handle.

Usage::

    ds = SolrDataSource(httpx.AsyncClient(timeout=30.0))
    await ds.get_connection("http://localhost:8983/solr", "documents")
    await ds.insert({"id": "doc-1", "title": "Solar nowcasting"})
    docs = await ds.query({"title": "Solar nowcasting"})
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

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

MATCH_ALL = "*:*"


class SolrDataSource(DataSource):
    """Datasource for an Apache Solr collection.

    Criteria may be:
      - ``None`` or empty: match every document (``*:*``)
      - a string: passed through as the Solr query
      - a mapping: each pair becomes an ``fq`` filter clause ``field:"value"``

    Writes are committed immediately (``commit=true``).

    Args:
        client: An ``httpx.AsyncClient``. Relative paths resolve against its
            ``base_url`` when the connection URL is empty.
        rows: Maximum number of documents returned by a query.
        strict: Raise ``NotConnectedError`` on failed guards.
    """

    style = DataSourceStyle.SEARCH

    def __init__(self, client: httpx.AsyncClient | None = None, *, rows: int = 1000, strict: bool = False) -> None:
        super().__init__(client, strict=strict)
        self._rows = rows

    @property
    def name(self) -> str:
        return "solr"

    # ── Connection ──────────────────────────────────────────────────────

    async def get_connection(self, url: str, collection: str | None = None) -> bool:
        """Ping the Solr collection.

        Without a collection the node itself is checked through
        ``/admin/info/system``; bind a collection later with ``set_collection``.

        Returns:
            True once the ping succeeded; False if no client was passed.

        Raises:
            ConnectionError: If Solr cannot be reached, the ping fails or its
                response is not JSON.
        """
        self.connected = False
        if self.client is None:
            logger.error("No client was passed.")
            return False

        base = url.rstrip("/") if url else ""
        ping_url = f"{base}/{collection}/admin/ping" if collection else f"{base}/admin/info/system"
        try:
            resp = await self.client.get(ping_url)
            resp.raise_for_status()
            ping = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Solr ping failed for collection '%s': %s", collection, e)
            raise ConnectionError(f"Failed to connect to Solr: {e}") from e

        logger.debug("collection: %s", collection)
        self.collection = collection or None
        self.db = ping
        self.url = base
        self.connected = True
        self.style = DataSourceStyle.SEARCH
        logger.info("Connected to Solr collection '%s' at %s", collection, base or "<client base_url>")
        return True

    # ── CRUD ────────────────────────────────────────────────────────────

    async def query(self, query: Criterion, callback: Callback | None = None) -> Any:
        if not self._guard("query"):
            return {}
        criterion = resolve_criterion(query)
        logger.debug("The query: %s", criterion)
        data = await self._post("query", "select", json=self._build_select(criterion))
        docs = list(data.get("response", {}).get("docs", []))
        logger.debug("Results: %d document(s)", len(docs))
        await notify(callback, docs)
        return docs

    async def insert(self, data: Any, callback: Callback | None = None) -> Any:
        if not self._guard("insert"):
            return {}
        docs = data if isinstance(data, list) else [data]
        result = await self._post("insert", "update", json=docs, params={"commit": "true"})
        logger.debug("Insert result: %s", result.get("responseHeader", {}))
        await notify(callback, result)
        return result

    async def update(self, query: Criterion, data: Any, callback: Callback | None = None) -> Any:
        """Apply ``data`` to every matching document with Solr atomic ``set`` updates.

        Matching ids are collected page by page before anything is written,
        so updates never shift the pages still to be read.
        """
        if not self._guard("update"):
            return data
        changes = {key: {"set": value} for key, value in self._changes(data).items() if key != "id"}
        criterion = resolve_criterion(query)
        ids = await self._matching_ids(criterion)
        if ids and changes:
            await self._post(
                "update",
                "update",
                json=[{"id": doc_id, **changes} for doc_id in ids],
                params={"commit": "true"},
            )
        logger.debug("Solr update matched %d document(s)", len(ids))
        await notify(callback, data)
        return data

    async def remove(self, query: Criterion, callback: Callback | None = None) -> Any:
        if not self._guard("remove"):
            return {}
        criterion = resolve_criterion(query)
        await self._post(
            "remove",
            "update",
            json={"delete": {"query": self._to_query_string(criterion)}},
            params={"commit": "true"},
        )
        await notify(callback)
        return {}

    # ── Helpers ─────────────────────────────────────────────────────────

    async def _post(
        self,
        operation: str,
        handler: str,
        *,
        json: Any,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self.client.post(f"{self.url}/{self.collection}/{handler}", json=json, params=params)
            resp.raise_for_status()
            return dict(resp.json())
        except (httpx.HTTPError, TypeError, ValueError) as e:
            logger.error("Solr %s failed: %s", operation, e)
            raise BackendOperationError(f"Solr {operation} failed: {e}") from e

    async def _matching_ids(self, criterion: Any) -> list[Any]:
        """Page through ``/select`` and return the id of every matching document."""
        select = self._build_select(criterion)
        select["fields"] = "id"
        select["sort"] = "id asc"
        ids: list[Any] = []
        offset = 0
        while True:
            select["offset"] = offset
            found = (await self._post("update", "select", json=select)).get("response", {})
            docs = found.get("docs", [])
            ids.extend(doc["id"] for doc in docs if "id" in doc)
            offset += len(docs)
            if not docs or offset >= found.get("numFound", 0):
                return ids

    def _build_select(self, criterion: Any) -> dict[str, Any]:
        """Build a JSON Request API body for ``/select``."""
        body: dict[str, Any] = {"query": MATCH_ALL, "limit": self._rows}
        if isinstance(criterion, dict):
            filters = self._filter_clauses(criterion)
            if filters:
                body["filter"] = filters
        elif criterion:
            body["query"] = str(criterion)
        return body

    @classmethod
    def _to_query_string(cls, criterion: Any) -> str:
        """Collapse a criterion into a single Solr query string."""
        if isinstance(criterion, dict):
            clauses = cls._filter_clauses(criterion)
            return " AND ".join(clauses) if clauses else MATCH_ALL
        return str(criterion) if criterion else MATCH_ALL

    @staticmethod
    def _filter_clauses(criterion: dict[str, Any]) -> list[str]:
        clauses: list[str] = []
        for field, value in criterion.items():
            escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
            clauses.append(f'{field}:"{escaped}"')
        return clauses
