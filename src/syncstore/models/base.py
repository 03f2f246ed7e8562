"""Domain-object base classes — attribute containers with a four-verb sync.

``Model`` holds a single record as a mapping of attributes; ``Collection``
holds an ordered list of records. Both expose the small surface the sync
layer relies on: ``to_json()`` to serialize state and ``reset()`` to replace
it wholesale with data returned by a backend.

Subclasses implement ``sync()``; ``fetch``/``save``/``update``/``destroy``
are shorthands for the ``read``/``create``/``update``/``delete`` verbs.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from typing import Any


class SyncMethod(str, Enum):
    """Verbs understood by ``sync()``."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, method: str | SyncMethod) -> SyncMethod:
        """Return the verb for ``method``.

        Raises:
            ValueError: If ``method`` is not a known verb.
        """
        try:
            return cls(method)
        except ValueError:
            raise ValueError(
                f"Unsupported sync method '{method}'. Expected one of: {[m.value for m in cls]}"
            ) from None


class Syncable(ABC):
    """Base providing the verb shorthands on top of ``sync()``."""

    @abstractmethod
    async def sync(self, method: str | SyncMethod, **options: Any) -> Any:
        """Run ``method`` against the backend."""

    async def fetch(self, **options: Any) -> Any:
        """Read state from the backend."""
        return await self.sync(SyncMethod.READ, **options)

    async def save(self, **options: Any) -> Any:
        """Create the current state in the backend."""
        return await self.sync(SyncMethod.CREATE, **options)

    async def update(self, **options: Any) -> Any:
        """Write the current state over matching backend records."""
        return await self.sync(SyncMethod.UPDATE, **options)

    async def destroy(self, **options: Any) -> Any:
        """Delete matching backend records."""
        return await self.sync(SyncMethod.DELETE, **options)


class Model(Syncable):
    """A single record held as a mapping of attributes."""

    def __init__(self, attributes: Mapping[str, Any] | None = None) -> None:
        self.attributes: dict[str, Any] = dict(attributes or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def set(self, attributes: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        """Merge ``attributes`` and keyword arguments into the current state."""
        self.attributes.update(attributes or {}, **kwargs)

    def reset(self, attributes: Mapping[str, Any] | None = None) -> None:
        """Replace the whole state with ``attributes`` (empty when None)."""
        self.attributes = dict(attributes or {})

    def to_json(self) -> dict[str, Any]:
        """Return a deep copy of the attributes."""
        return copy.deepcopy(self.attributes)

    def is_empty(self) -> bool:
        return not self.attributes

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.attributes!r}>"


class Collection(Syncable):
    """An ordered list of records."""

    def __init__(self, models: Iterable[Mapping[str, Any]] | None = None) -> None:
        self.models: list[dict[str, Any]] = [dict(m) for m in models or []]

    def add(self, model: Mapping[str, Any]) -> None:
        self.models.append(dict(model))

    def reset(self, models: Iterable[Mapping[str, Any]] | Mapping[str, Any] | None = None) -> None:
        """Replace all records. A single mapping becomes a one-record collection."""
        if not models:
            self.models = []
        elif isinstance(models, Mapping):
            self.models = [dict(models)]
        else:
            self.models = [dict(m) for m in models]

    def to_json(self) -> list[dict[str, Any]]:
        """Return a deep copy of the records."""
        return copy.deepcopy(self.models)

    def is_empty(self) -> bool:
        return not self.models

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.models)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} size={len(self.models)}>"
