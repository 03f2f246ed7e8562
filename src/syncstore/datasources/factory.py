"""DataSource factory — Maps datasource type tokens to adapter classes.

The factory is the central place to look up datasource classes by type and
build fresh, unconnected instances. Built-in types are registered on every
new factory; custom backends can be added with :meth:`DataSourceFactory.register`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from syncstore.datasources.base.datasource import DataSource
from syncstore.datasources.base.exceptions import ConfigurationError
from syncstore.datasources.memory.datasource import MemoryDataSource
from syncstore.datasources.mongo.datasource import MongoDataSource
from syncstore.datasources.solr.datasource import SolrDataSource

if TYPE_CHECKING:
    from syncstore.config.settings import DataSourceSettings

logger = logging.getLogger(__name__)


class DataSourceType(str, Enum):
    """Built-in datasource type tokens."""

    MEMORY = "memory"
    MONGODB = "mongodb"
    SOLR = "solr"


class DataSourceFactory:
    """Factory for datasource instances.

    Example:
        >>> factory = DataSourceFactory()
        >>> ds = factory.get_datasource(DataSourceType.MEMORY)
        >>> factory.get_datasource("unknown") is None
        True
    """

    Type = DataSourceType

    def __init__(self) -> None:
        self._classes: dict[str, type[DataSource]] = {
            DataSourceType.MEMORY.value: MemoryDataSource,
            DataSourceType.MONGODB.value: MongoDataSource,
            DataSourceType.SOLR.value: SolrDataSource,
        }

    def register(self, name: str, datasource_class: type[DataSource]) -> None:
        """Register a datasource class.

        Args:
            name: Type token for this datasource.
            datasource_class: The datasource class to register.
        """
        if name in self._classes:
            logger.warning("Overwriting existing datasource registration: %s", name)
        self._classes[name] = datasource_class
        logger.info("Registered datasource: %s", name)

    def get_datasource(self, type: str | DataSourceType, client: Any = None, **kwargs: Any) -> DataSource | None:
        """Create a new, unconnected datasource.

        Args:
            type: The datasource type token.
            client: Optional native client handed to the datasource.
            **kwargs: Extra keyword arguments for the datasource constructor.

        Returns:
            The datasource, or None when ``type`` is not registered.
        """
        token = type.value if isinstance(type, DataSourceType) else type
        datasource_class = self._classes.get(token)
        if datasource_class is None:
            logger.warning(
                "No datasource registered with type '%s'. Available datasources: %s",
                token,
                self.registered_types,
            )
            return None
        return datasource_class(client, **kwargs)

    def from_settings(self, settings: DataSourceSettings, client: Any = None) -> DataSource:
        """Build (but do not connect) the datasource described by ``settings``.

        When no client is given, one is created for the client-backed types:
        an ``httpx.AsyncClient`` for Solr, a Motor client for MongoDB.

        Raises:
            ConfigurationError: If the configured type is not registered.
        """
        if client is None:
            client = _default_client(settings)

        kwargs: dict[str, Any] = {"strict": settings.strict_guards}
        if settings.type == DataSourceType.MONGODB.value:
            kwargs["default_database"] = settings.default_database

        datasource = self.get_datasource(settings.type, client, **kwargs)
        if datasource is None:
            raise ConfigurationError(
                f"Unknown datasource type '{settings.type}'. Available datasources: {self.registered_types}"
            )
        return datasource

    @property
    def registered_types(self) -> list[str]:
        """List all registered datasource type tokens."""
        return list(self._classes.keys())


def _default_client(settings: DataSourceSettings) -> Any:
    if settings.type == DataSourceType.SOLR.value:
        import httpx

        return httpx.AsyncClient(timeout=httpx.Timeout(settings.timeout))
    if settings.type == DataSourceType.MONGODB.value and settings.url:
        from motor.motor_asyncio import AsyncIOMotorClient

        return AsyncIOMotorClient(settings.url)
    return None
