"""Storage adapters for idempotency resources.

This package provides the data adapter contract consumed by the idempotency
middleware and its MongoDB implementation.

Available Adapters:
    - MongoStorageAdapter: MongoDB storage with TTL-index expiry
"""

from idempotent_mongo_adapter.storage.base import IdempotencyDataAdapter
from idempotent_mongo_adapter.storage.mongo import MongoStorageAdapter, new_adapter

__all__ = [
    "IdempotencyDataAdapter",
    "MongoStorageAdapter",
    "new_adapter",
]
