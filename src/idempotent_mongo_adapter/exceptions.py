"""Custom exceptions for the idempotency MongoDB adapter.

This module defines the exception hierarchy used by the adapter to signal
connection failures, provisioning failures, lifecycle misuse and key
constraint violations. Callers should check for these classes rather than
assume success; a ``None`` returned from ``find_by_idempotency_key`` is a
valid "no such key" result and never an error.

Examples:
    Handling a duplicate key on create::

        from idempotent_mongo_adapter.exceptions import DuplicateKeyError

        try:
            await adapter.create(resource)
        except DuplicateKeyError as e:
            logger.warning("resource.duplicate_key", key=e.key)
            return Response(status_code=409)

    Retrying a failed initialization::

        from idempotent_mongo_adapter.exceptions import InitializationError

        try:
            await adapter.init()
        except InitializationError:
            # The adapter is back to UNINITIALIZED and may be retried
            await asyncio.sleep(1)
            await adapter.init()
"""

from typing import Any


class IdempotencyError(Exception):
    """Base exception for all adapter errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class StorageError(IdempotencyError):
    """A MongoDB operation failed.

    Raised when the driver reports an error that is not a uniqueness
    violation (network failure, server selection timeout, authorization).
    The original driver exception is kept on ``cause``.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the storage error.

    Examples:
        Raising a storage error::

            try:
                await collection.find_one({"idempotencyKey": key})
            except PyMongoError as e:
                raise StorageError(
                    message=f"Failed to find resource: {e}",
                    cause=e,
                ) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the storage error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the storage error.
        """
        super().__init__(message)
        self.cause = cause


class DatabaseConnectionError(StorageError):
    """A database handle could not be resolved.

    Raised by connection providers when no configuration was supplied, the
    connection URI is invalid, the endpoint is unreachable, or a delegate
    failed to return a database.
    """


class InitializationError(IdempotencyError):
    """Provisioning the adapter's collections or indexes failed.

    After this error the adapter is back in the UNINITIALIZED state and
    ``init()`` may be called again.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class NotInitializedError(IdempotencyError):
    """An operation was attempted while the adapter is not READY.

    Attributes:
        message: Human-readable error description.
        state: The lifecycle state the adapter was in.
    """

    def __init__(self, message: str, state: Any = None) -> None:
        super().__init__(message)
        self.state = state


class DuplicateKeyError(IdempotencyError):
    """A resource with the same idempotency key already exists.

    The unique ``searchByKey`` index rejected the insert; the stored
    resource is unchanged.

    Attributes:
        message: Human-readable error description.
        key: The idempotency key that already exists.
    """

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class ResourceNotFoundError(IdempotencyError):
    """An update targeted an idempotency key that is not stored.

    Attributes:
        message: Human-readable error description.
        key: The idempotency key that was not found.
    """

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key
