"""MongoDB storage adapter for idempotency resources.

This module provides the MongoStorageAdapter, an implementation of the
IdempotencyDataAdapter protocol that persists resources in a MongoDB
collection and relies on a TTL index for automatic expiry.

Collections:
    - ``{prefix}Store``: one document per idempotency key
    - ``{prefix}Schema``: reserved for future layout migrations

Indexes on the store collection:
    - ``searchByKey``: unique on ``idempotencyKey``
    - ``ttlKey``: on ``createdAt`` with ``expireAfterSeconds`` = TTL

Lifecycle:
    UNINITIALIZED -> INITIALIZING -> READY -> STOPPED. Every operation
    requires READY. A failed init() returns the adapter to UNINITIALIZED so
    it can be retried.

Concurrency:
    The adapter holds no locks. Concurrent duplicate creates are resolved by
    the unique index: exactly one insert wins and the others raise
    DuplicateKeyError. Expiry is performed by the MongoDB TTL monitor, not by
    application code.

Examples:
    Two-step setup::

        from idempotent_mongo_adapter.storage.mongo import MongoStorageAdapter

        adapter = MongoStorageAdapter(
            config={"uri": "mongodb://localhost:27017/shop"},
            ttl_seconds=3600,
        )
        await adapter.init()

        await adapter.create(resource)
        found = await adapter.find_by_idempotency_key(resource.idempotency_key)

        await adapter.stop()

    One call::

        adapter = await new_adapter(config={"uri": "mongodb://localhost:27017"})
"""

import time
from typing import Any

from pydantic import ValidationError
from pymongo import ASCENDING, IndexModel
from pymongo.errors import CollectionInvalid, PyMongoError
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError

from idempotent_mongo_adapter.config import AdapterOptions
from idempotent_mongo_adapter.connection import ConnectionProvider, build_connection_provider
from idempotent_mongo_adapter.exceptions import (
    DatabaseConnectionError,
    DuplicateKeyError,
    InitializationError,
    NotInitializedError,
    ResourceNotFoundError,
    StorageError,
)
from idempotent_mongo_adapter.models import IdempotencyResource, LifecycleState, StoredResource
from idempotent_mongo_adapter.observability.logging import get_logger
from idempotent_mongo_adapter.observability.metrics import (
    record_operation,
    record_operation_duration,
    set_adapter_ready,
)
from idempotent_mongo_adapter.storage.base import IdempotencyDataAdapter

logger = get_logger(__name__)

COLLECTION_STORE_SUFFIX = "Store"
COLLECTION_SCHEMA_SUFFIX = "Schema"

KEY_INDEX_NAME = "searchByKey"
TTL_INDEX_NAME = "ttlKey"


class MongoStorageAdapter(IdempotencyDataAdapter):
    """MongoDB implementation of the IdempotencyDataAdapter protocol.

    Attributes:
        _options: Validated adapter options.
        _provider: Connection provider resolving the database handle.
        _state: Current lifecycle state.
        _db: Database handle, set by init().
        _store: Store collection handle, set by init().
    """

    def __init__(
        self,
        options: AdapterOptions | None = None,
        *,
        connection_provider: ConnectionProvider | None = None,
        **kwargs: Any,
    ) -> None:
        """Keep the options; no I/O happens until init().

        Args:
            options: Adapter options. When omitted, keyword arguments are
                validated into AdapterOptions.
            connection_provider: Provider to use instead of the one built
                from the options.
            **kwargs: AdapterOptions fields, only when ``options`` is None.

        Raises:
            TypeError: If both ``options`` and keyword options are given.
            ValidationError: If the options are invalid.
        """
        if options is None:
            options = AdapterOptions(**kwargs)
        elif kwargs:
            raise TypeError("Pass either an AdapterOptions instance or keyword options, not both")

        self._options = options
        self._provider = connection_provider or build_connection_provider(options)
        self._state = LifecycleState.UNINITIALIZED
        self._db: Any = None
        self._store: Any = None

    @property
    def options(self) -> AdapterOptions:
        return self._options

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def connection_provider(self) -> ConnectionProvider:
        return self._provider

    def is_initialized(self) -> bool:
        """Return True if the adapter is READY for operations."""
        return self._state is LifecycleState.READY

    def get_store_collection_name(self) -> str:
        return f"{self._options.collection_prefix}{COLLECTION_STORE_SUFFIX}"

    def get_schema_collection_name(self) -> str:
        return f"{self._options.collection_prefix}{COLLECTION_SCHEMA_SUFFIX}"

    async def init(self) -> None:
        """Resolve the database and provision collections and indexes.

        Steps:
            1. Resolve a database handle through the connection provider
            2. Ensure the store collection exists
            3. Create the unique key index and the TTL index
            4. Ensure the schema collection exists
            5. Mark the adapter READY

        Calling init() on a READY adapter does nothing. A STOPPED adapter
        may be initialized again.

        Raises:
            DatabaseConnectionError: If the database handle cannot be
                resolved.
            InitializationError: If any provisioning step fails, or another
                init() is already in progress.

        On any failure, cancellation included, the adapter is reset to
        UNINITIALIZED and an owned connection is closed, so init() may be
        retried.
        """
        if self._state is LifecycleState.READY:
            return
        if self._state is LifecycleState.INITIALIZING:
            raise InitializationError("Adapter initialization is already in progress")

        self._state = LifecycleState.INITIALIZING
        logger.info(
            "adapter.init.started",
            collection=self.get_store_collection_name(),
            owns_connection=self._provider.owns_connection,
        )

        try:
            db = await self._provider.resolve()
            store = await self._get_or_create_collection(db, self.get_store_collection_name())
            await store.create_indexes(
                [
                    IndexModel([("idempotencyKey", ASCENDING)], name=KEY_INDEX_NAME, unique=True),
                    IndexModel(
                        [("createdAt", ASCENDING)],
                        name=TTL_INDEX_NAME,
                        expireAfterSeconds=self._options.ttl_seconds,
                    ),
                ]
            )
            await self._get_or_create_collection(db, self.get_schema_collection_name())
        except DatabaseConnectionError as e:
            await self._abort_init(e)
            raise
        except Exception as e:
            await self._abort_init(e)
            raise InitializationError(
                f"Failed to provision idempotency collections: {e}", cause=e
            ) from e
        except BaseException as e:
            # Cancellation (e.g. an init() timeout) still rolls back
            await self._abort_init(e)
            raise

        self._db = db
        self._store = store
        self._state = LifecycleState.READY
        set_adapter_ready(self.get_store_collection_name(), True)
        logger.info(
            "adapter.initialized",
            collection=self.get_store_collection_name(),
            ttl_seconds=self._options.ttl_seconds,
        )

    async def _abort_init(self, error: BaseException) -> None:
        self._db = None
        self._store = None
        self._state = LifecycleState.UNINITIALIZED
        set_adapter_ready(self.get_store_collection_name(), False)
        await self._provider.shutdown()
        logger.error(
            "adapter.init.failed",
            collection=self.get_store_collection_name(),
            error=str(error),
            error_type=type(error).__name__,
        )

    @staticmethod
    async def _get_or_create_collection(db: Any, name: str) -> Any:
        if name in await db.list_collection_names():
            return db[name]
        try:
            return await db.create_collection(name)
        except CollectionInvalid:
            # Created by a concurrent initializer
            return db[name]

    async def stop(self) -> bool:
        """Stop the adapter and close an owned connection.

        A delegated database is left open. The adapter is STOPPED even when
        closing the connection failed.

        Returns:
            The connection provider's shutdown result.
        """
        closed = await self._provider.shutdown()
        self._db = None
        self._store = None
        self._state = LifecycleState.STOPPED
        set_adapter_ready(self.get_store_collection_name(), False)
        logger.info(
            "adapter.stopped",
            owns_connection=self._provider.owns_connection,
            closed=closed,
        )
        return closed

    def _require_store(self) -> Any:
        if self._state is not LifecycleState.READY or self._store is None:
            raise NotInitializedError(
                f"Adapter has not been initialized (state={self._state.value})",
                state=self._state,
            )
        return self._store

    def _storage_error(self, operation: str, error: PyMongoError) -> StorageError:
        record_operation(operation, "error")
        logger.error(
            "resource.operation_failed",
            operation=operation,
            collection=self.get_store_collection_name(),
            error=str(error),
            error_type=type(error).__name__,
        )
        return StorageError(f"MongoDB {operation} failed: {error}", cause=error)

    async def find_by_idempotency_key(self, idempotency_key: str) -> IdempotencyResource | None:
        """Find the resource stored for an idempotency key.

        Args:
            idempotency_key: The key to look up; must not be empty.

        Returns:
            The resource (with ``response`` only if one was stored), or None
            if the key is unknown or has expired.

        Raises:
            NotInitializedError: If the adapter is not READY.
            ValueError: If the key is empty.
            StorageError: If the query fails or the stored document is
                malformed.
        """
        store = self._require_store()
        if not idempotency_key:
            raise ValueError("idempotency_key must not be empty")

        started = time.perf_counter()
        try:
            document = await store.find_one({"idempotencyKey": idempotency_key}, {"_id": 0})
        except PyMongoError as e:
            raise self._storage_error("find", e) from e
        finally:
            record_operation_duration("find", time.perf_counter() - started)

        if document is None:
            record_operation("find", "miss")
            return None

        try:
            stored = StoredResource.from_document(document)
        except ValidationError as e:
            record_operation("find", "error")
            raise StorageError(
                f"Stored resource for key {idempotency_key!r} is malformed: {e}", cause=e
            ) from e

        record_operation("find", "hit")
        return stored.to_resource()

    async def create(self, resource: IdempotencyResource | dict[str, Any]) -> None:
        """Persist a new resource with a fresh timestamp and schema version.

        Raises:
            NotInitializedError: If the adapter is not READY.
            DuplicateKeyError: If the key is already stored; the stored
                resource is left unchanged.
            StorageError: If the insert fails for another reason.
        """
        store = self._require_store()
        resource = _as_resource(resource)
        document = StoredResource.from_resource(resource).to_document()

        started = time.perf_counter()
        try:
            await store.insert_one(document)
        except MongoDuplicateKeyError as e:
            record_operation("create", "duplicate")
            logger.info(
                "resource.duplicate_key",
                key=resource.idempotency_key,
                collection=self.get_store_collection_name(),
            )
            raise DuplicateKeyError(
                f"Idempotency key {resource.idempotency_key!r} already exists",
                key=resource.idempotency_key,
            ) from e
        except PyMongoError as e:
            raise self._storage_error("create", e) from e
        finally:
            record_operation_duration("create", time.perf_counter() - started)

        record_operation("create", "ok")

    async def update(self, resource: IdempotencyResource | dict[str, Any]) -> None:
        """Replace the stored resource having the same key.

        This is a full replacement, not a patch. ``createdAt`` is refreshed,
        which restarts the TTL countdown.

        Raises:
            NotInitializedError: If the adapter is not READY.
            ResourceNotFoundError: If no resource is stored for the key.
            StorageError: If the replacement fails.
        """
        store = self._require_store()
        resource = _as_resource(resource)
        document = StoredResource.from_resource(resource).to_document()

        started = time.perf_counter()
        try:
            result = await store.replace_one(
                {"idempotencyKey": resource.idempotency_key}, document
            )
        except PyMongoError as e:
            raise self._storage_error("update", e) from e
        finally:
            record_operation_duration("update", time.perf_counter() - started)

        if result.matched_count == 0:
            record_operation("update", "not_found")
            logger.warning(
                "resource.not_found",
                key=resource.idempotency_key,
                collection=self.get_store_collection_name(),
            )
            raise ResourceNotFoundError(
                f"No resource stored for idempotency key {resource.idempotency_key!r}",
                key=resource.idempotency_key,
            )

        record_operation("update", "ok")

    async def delete(self, idempotency_key: str) -> None:
        """Remove the resource stored for a key. Unknown keys are ignored.

        Raises:
            NotInitializedError: If the adapter is not READY.
            StorageError: If the delete fails.
        """
        store = self._require_store()

        started = time.perf_counter()
        try:
            await store.delete_one({"idempotencyKey": idempotency_key})
        except PyMongoError as e:
            raise self._storage_error("delete", e) from e
        finally:
            record_operation_duration("delete", time.perf_counter() - started)

        record_operation("delete", "ok")


def _as_resource(resource: IdempotencyResource | dict[str, Any]) -> IdempotencyResource:
    if isinstance(resource, IdempotencyResource):
        return resource
    return IdempotencyResource.model_validate(resource)


async def new_adapter(
    options: AdapterOptions | None = None,
    *,
    connection_provider: ConnectionProvider | None = None,
    **kwargs: Any,
) -> MongoStorageAdapter:
    """Create a MongoStorageAdapter and wait for its initialization.

    Initialization errors are raised to the caller; the returned adapter is
    always READY.

    Examples:
        >>> adapter = await new_adapter(config={"uri": "mongodb://mongo:27017"}, ttl_seconds=30)
        >>> adapter.is_initialized()
        True
    """
    adapter = MongoStorageAdapter(options, connection_provider=connection_provider, **kwargs)
    await adapter.init()
    return adapter
