"""Base datasource — Abstract interface for all storage backends.

Every storage backend must implement this interface to be usable by the
sync layer. A datasource is responsible for:
  1. Managing the connection lifecycle to its backend
  2. Binding a named logical collection
  3. Executing the four CRUD primitives (insert, update, remove, query)

All operations are coroutines. The default implementations are no-ops that
return the empty placeholder result, so a backend only overrides what it
actually supports.

Every CRUD operation is guarded: it runs only while ``connected`` is true and
a collection is bound. A failed guard is logged and the placeholder returned
without invoking the callback, unless the datasource was created with
``strict=True``, in which case ``NotConnectedError`` is raised instead.

Datasource instances are meant to be shared by many domain objects. Closing
the connection through one holder affects every other holder.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from syncstore.datasources.base.exceptions import BackendOperationError, NotConnectedError

logger = logging.getLogger(__name__)

Criterion = Any
"""A literal filter value, or a zero-argument callable returning one."""

Callback = Callable[..., Any]
"""Completion callback; may be a plain function or a coroutine function."""


class DataSourceStyle(str, Enum):
    """Storage style of a datasource."""

    ARRAY = "array"
    DATABASE = "database"
    SEARCH = "search"


def resolve_criterion(criterion: Criterion) -> Any:
    """Evaluate a lazy criterion.

    Callables are invoked on every call and their value is never cached.
    """
    if callable(criterion):
        return criterion()
    return criterion


async def notify(callback: Callback | None, *args: Any) -> None:
    """Invoke ``callback`` with ``args``, awaiting it when it returns an awaitable."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class DataSource(ABC):
    """Abstract base class for datasources.

    Attributes:
        connected: Whether a connection is currently established.
        style: Storage style of the backend.
        client: The native client handle, if any.
        url: URL of the backend (set on connection).
        db: Native database handle (or backing store).
        collection: The bound collection handle or label.
        strict: Raise ``NotConnectedError`` instead of logging on failed guards.
    """

    style: DataSourceStyle = DataSourceStyle.DATABASE

    def __init__(self, client: Any = None, *, strict: bool = False) -> None:
        self.connected = False
        self.client = client
        self.url = ""
        self.db: Any = None
        self.collection: Any = None
        self.strict = strict

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique datasource type name (e.g., 'memory', 'mongodb')."""

    # ── Connection ──────────────────────────────────────────────────────

    async def get_connection(self, url: str, collection: str | None = None) -> bool:
        """Connect to the backend.

        Args:
            url: Backend URL.
            collection: Optional collection name to bind once connected.

        Returns:
            True only if the connection was established.
        """
        return False

    async def close_connection(self) -> None:
        """Close the connection and release the ``db`` and ``collection`` handles.

        Does nothing unless currently connected.
        """
        if not self.connected:
            return
        self.connected = False
        self.db = None
        self.collection = None

    def get_collection(self) -> Any:
        """Return the bound collection."""
        return self.collection

    def set_collection(self, name: str | None) -> None:
        """Bind a collection by name.

        Ignored when ``name`` is not a non-empty string.
        """
        if not _is_collection_name(name):
            logger.debug("No collection set (invalid name: %r)", name)
            return
        logger.debug("Collection: %s", name)
        self.collection = name

    # ── CRUD ────────────────────────────────────────────────────────────

    async def insert(self, data: Any, callback: Callback | None = None) -> Any:
        """Insert one record, or many when ``data`` is a list."""
        return {}

    async def update(self, query: Criterion, data: Any, callback: Callback | None = None) -> Any:
        """Apply ``data`` to every record matching ``query``.

        Returns:
            The ``data`` that was applied.
        """
        return data

    async def remove(self, query: Criterion, callback: Callback | None = None) -> Any:
        """Delete every record matching ``query``."""
        return {}

    async def query(self, query: Criterion, callback: Callback | None = None) -> Any:
        """Return the records matching ``query``."""
        return {}

    # ── Helpers ─────────────────────────────────────────────────────────

    def _guard(self, operation: str) -> bool:
        """Check the connected + collection precondition for ``operation``."""
        if self.connected and self.collection is not None:
            return True
        if self.strict:
            raise NotConnectedError(f"{self.name} {operation}: no collection defined or not connected.")
        logger.error("%s %s: no collection defined or not connected.", self.name, operation)
        return False

    def _changes(self, data: Any) -> dict[str, Any]:
        """Return the field changes of an update payload.

        Raises:
            BackendOperationError: If ``data`` is not a mapping.
        """
        if not isinstance(data, Mapping):
            logger.error("%s update: expected a mapping of field changes, got %s", self.name, type(data).__name__)
            raise BackendOperationError(
                f"{self.name} update expects a mapping of field changes, got {type(data).__name__}"
            )
        return dict(data)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} style={self.style.value} connected={self.connected}>"


def _is_collection_name(name: Any) -> bool:
    return isinstance(name, str) and bool(name)
