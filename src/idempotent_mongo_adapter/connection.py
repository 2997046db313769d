"""Connection providers resolving the database handle used by the adapter.

A provider either owns its connection (opens an ``AsyncMongoClient`` from
configuration and closes it on shutdown) or borrows one (awaits a delegate
supplied by the host application and never closes what it returns). The
borrowing variant lets the adapter share a client with the rest of an
application.

Ownership Rules:
    - OwningConnectionProvider opens at most one client, lazily, on the first
      resolve(), and reuses it until shutdown()
    - BorrowingConnectionProvider calls the delegate on every resolve() and
      caches nothing; the caller controls the handle's lifetime
    - shutdown() on a borrowing provider is a no-op

Examples:
    Owned connection::

        provider = OwningConnectionProvider(
            MongoConnectionOptions(uri="mongodb://localhost:27017/shop")
        )
        db = await provider.resolve()
        ...
        await provider.shutdown()

    Borrowed connection::

        client = AsyncMongoClient("mongodb://localhost:27017/shop")

        async def get_db():
            return client.get_default_database()

        provider = BorrowingConnectionProvider(get_db)
        db = await provider.resolve()
"""

from typing import Any, Protocol, runtime_checkable

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from idempotent_mongo_adapter.config import (
    AdapterOptions,
    DatabaseDelegate,
    MongoConnectionOptions,
)
from idempotent_mongo_adapter.exceptions import DatabaseConnectionError
from idempotent_mongo_adapter.observability.logging import get_logger

logger = get_logger(__name__)

# Used when neither the options nor the URI name a database
DEFAULT_DATABASE_NAME = "idempotency"


@runtime_checkable
class ConnectionProvider(Protocol):
    """Protocol for objects producing a ready-to-use database handle.

    Attributes:
        owns_connection: True if shutdown() closes a connection opened by
            this provider.
    """

    owns_connection: bool

    async def resolve(self) -> Any:
        """Return a database handle (an ``AsyncDatabase``).

        Raises:
            DatabaseConnectionError: If no handle can be produced.
        """
        ...

    async def shutdown(self) -> bool:
        """Release whatever this provider owns.

        Returns:
            True on success, False if closing an owned connection failed.
        """
        ...


class OwningConnectionProvider:
    """Provider that opens and closes its own MongoDB client.

    Attributes:
        _options: Connection parameters, None if none were supplied.
        _client: The opened client, None until the first resolve().
        _db: The database handle returned by resolve().
    """

    owns_connection = True

    def __init__(self, options: MongoConnectionOptions | None) -> None:
        self._options = options
        self._client: AsyncMongoClient[Any] | None = None
        self._db: Any = None

    @property
    def is_connected(self) -> bool:
        """True while an opened client is cached."""
        return self._client is not None

    async def resolve(self) -> Any:
        """Return the database, opening the client on first use.

        The client is verified with a ``ping`` before it is cached, so an
        unreachable endpoint fails here rather than on the first operation.

        Raises:
            DatabaseConnectionError: If no configuration was supplied, the
                URI is invalid, or the server cannot be reached.
        """
        if self._db is not None:
            return self._db

        if self._options is None:
            raise DatabaseConnectionError(
                "No connection configuration supplied and delegation is disabled"
            )

        try:
            client: AsyncMongoClient[Any] = AsyncMongoClient(
                self._options.uri, **self._options.settings
            )
        except (PyMongoError, TypeError, ValueError) as e:
            logger.error("connection.failed", error=str(e), error_type=type(e).__name__)
            raise DatabaseConnectionError(f"Invalid MongoDB configuration: {e}", cause=e) from e

        try:
            await client.admin.command("ping")
            if self._options.database_name:
                db = client[self._options.database_name]
            else:
                db = client.get_default_database(default=DEFAULT_DATABASE_NAME)
        except PyMongoError as e:
            logger.error("connection.failed", error=str(e), error_type=type(e).__name__)
            await client.close()
            raise DatabaseConnectionError(f"Unable to connect to MongoDB: {e}", cause=e) from e
        except BaseException:
            # Cancelled before the client was cached
            await client.close()
            raise

        self._client = client
        self._db = db
        logger.info("connection.opened", database=db.name)
        return db

    async def shutdown(self) -> bool:
        """Close the owned client, if one was opened.

        Returns:
            True if the client was closed, False if nothing was open or
            closing failed.
        """
        client = self._client
        self._client = None
        self._db = None
        if client is None:
            return False

        try:
            await client.close()
        except PyMongoError as e:
            logger.warning("connection.close_failed", error=str(e), error_type=type(e).__name__)
            return False

        logger.info("connection.closed")
        return True


class BorrowingConnectionProvider:
    """Provider that delegates handle resolution to the host application."""

    owns_connection = False

    def __init__(self, delegate: DatabaseDelegate) -> None:
        self._delegate = delegate

    async def resolve(self) -> Any:
        """Await the delegate and return its result verbatim.

        Raises:
            DatabaseConnectionError: If the delegate raises or returns None.
        """
        try:
            db = await self._delegate()
        except Exception as e:
            logger.error("connection.failed", error=str(e), error_type=type(e).__name__)
            raise DatabaseConnectionError(f"Database delegate failed: {e}", cause=e) from e

        if db is None:
            raise DatabaseConnectionError("Database delegate returned no database")

        logger.debug("connection.delegated")
        return db

    async def shutdown(self) -> bool:
        """Do nothing; the delegated handle belongs to the caller."""
        return True


def build_connection_provider(options: AdapterOptions) -> ConnectionProvider:
    """Build the provider matching the adapter options.

    Args:
        options: Adapter options.

    Returns:
        A BorrowingConnectionProvider when delegation is enabled, an
        OwningConnectionProvider built from ``options.config`` otherwise.
    """
    if options.use_delegation and options.delegate is not None:
        return BorrowingConnectionProvider(options.delegate)
    return OwningConnectionProvider(options.config)
