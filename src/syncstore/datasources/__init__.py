"""Datasource layer — Pluggable storage backends for the sync layer.

Built-in datasources:
  - memory: ordered in-process list (test double, ephemeral data)
  - mongodb: MongoDB via an async Motor client
  - solr: Apache Solr v8+ via httpx

Subclass ``DataSource`` and register it with ``DataSourceFactory`` to add
your own backend.
"""

from syncstore.datasources.factory import DataSourceFactory, DataSourceType

__all__ = ["DataSourceFactory", "DataSourceType"]
