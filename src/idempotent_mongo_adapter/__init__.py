"""
MongoDB data adapter for idempotency middleware.

This package persists idempotency resources (key, original request and
eventual response) in MongoDB, with automatic expiry through a TTL index.
"""

from idempotent_mongo_adapter.config import AdapterOptions, MongoConnectionOptions
from idempotent_mongo_adapter.exceptions import (
    DatabaseConnectionError,
    DuplicateKeyError,
    IdempotencyError,
    InitializationError,
    NotInitializedError,
    ResourceNotFoundError,
    StorageError,
)
from idempotent_mongo_adapter.models import (
    IdempotencyRequest,
    IdempotencyResource,
    IdempotencyResponse,
    LifecycleState,
)
from idempotent_mongo_adapter.storage import (
    IdempotencyDataAdapter,
    MongoStorageAdapter,
    new_adapter,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AdapterOptions",
    "MongoConnectionOptions",
    "IdempotencyRequest",
    "IdempotencyResponse",
    "IdempotencyResource",
    "LifecycleState",
    "IdempotencyDataAdapter",
    "MongoStorageAdapter",
    "new_adapter",
    "IdempotencyError",
    "StorageError",
    "DatabaseConnectionError",
    "InitializationError",
    "NotInitializedError",
    "DuplicateKeyError",
    "ResourceNotFoundError",
]
