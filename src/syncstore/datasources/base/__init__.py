"""Base datasource interface — Abstract classes for storage backends."""

from syncstore.datasources.base.datasource import DataSource, DataSourceStyle, resolve_criterion

__all__ = ["DataSource", "DataSourceStyle", "resolve_criterion"]
