"""Domain objects — Records and collections synchronized with a backend.

  - Entity / EntityCollection: persisted through a shared datasource
  - Resource / ResourceCollection: synchronized with a REST endpoint over httpx
"""

from syncstore.models.base import Collection, Model, SyncMethod
from syncstore.models.entity import Entity, EntityCollection
from syncstore.models.resource import Resource, ResourceCollection

__all__ = [
    "Collection",
    "Entity",
    "EntityCollection",
    "Model",
    "Resource",
    "ResourceCollection",
    "SyncMethod",
]
