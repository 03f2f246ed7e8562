"""DataSource-specific exceptions."""


class DataSourceError(Exception):
    """Base exception for datasource errors."""


class ConnectionError(DataSourceError):
    """Raised when the datasource cannot connect to its backend."""


class NotConnectedError(DataSourceError):
    """Raised by strict datasources when an operation runs without a connection or collection."""


class BackendOperationError(DataSourceError):
    """Raised when the native client reports a failed query, insert, update or remove."""


class ConfigurationError(DataSourceError):
    """Raised when datasource configuration is invalid."""
