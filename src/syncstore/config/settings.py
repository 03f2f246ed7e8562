"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (if specified)
  2. Environment variables (SYNCSTORE_ prefix)
  3. Default values
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class DataSourceSettings(BaseModel):
    """Default datasource configuration."""

    type: str = Field(default="memory", description="Datasource type: memory, mongodb, solr")
    url: str = Field(default="", description="Backend URL passed to get_connection")
    collection: str | None = Field(default=None, description="Collection bound on connection")
    default_database: str = Field(default="test", description="MongoDB database used when the URL has none")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds for HTTP-based backends")
    strict_guards: bool = Field(
        default=False,
        description="Raise NotConnectedError instead of logging when an operation runs unconnected",
    )

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, v: str) -> str:
        return v.strip().lower()


class ResourceSettings(BaseModel):
    """REST resource configuration."""

    host: str = Field(default="localhost", description="Host used when a resource URL is a bare path")
    secure: bool = Field(default=False, description="Use HTTPS by default")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root settings.

    Configuration is loaded from environment variables with the SYNCSTORE_ prefix.
    Nested settings use double underscores: SYNCSTORE_DATASOURCE__TYPE=mongodb

    Example:
        SYNCSTORE_DATASOURCE__TYPE=mongodb
        SYNCSTORE_DATASOURCE__URL=mongodb://localhost:27017/app
        SYNCSTORE_RESOURCE__SECURE=true
    """

    model_config = {
        "env_prefix": "SYNCSTORE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    app_name: str = Field(default="SyncStore", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    datasource: DataSourceSettings = Field(default_factory=DataSourceSettings)
    resource: ResourceSettings = Field(default_factory=ResourceSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file are passed as init arguments, so they win
        over environment variables for the keys they set.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
