"""Data adapter protocol consumed by the idempotency middleware.

The middleware stores and retrieves idempotency resources through an object
implementing this protocol and awaits every call from within request
handling. The middleware decides hits and misses and replays responses;
adapters only persist resources.

Examples:
    Implementing a custom data adapter::

        from idempotent_mongo_adapter.models import IdempotencyResource
        from idempotent_mongo_adapter.storage.base import IdempotencyDataAdapter

        class DictDataAdapter:
            def __init__(self) -> None:
                self._resources: dict[str, IdempotencyResource] = {}

            async def find_by_idempotency_key(self, idempotency_key):
                return self._resources.get(idempotency_key)

            async def create(self, resource):
                self._resources[resource.idempotency_key] = resource

            async def update(self, resource):
                self._resources[resource.idempotency_key] = resource

            async def delete(self, idempotency_key):
                self._resources.pop(idempotency_key, None)

        assert isinstance(DictDataAdapter(), IdempotencyDataAdapter)

    Using a data adapter from middleware code::

        resource = await adapter.find_by_idempotency_key(key)
        if resource is None:
            resource = IdempotencyResource(idempotency_key=key, request=req)
            await adapter.create(resource)
            response = await call_next(request)
            resource.response = to_idempotency_response(response)
            await adapter.update(resource)
        elif resource.is_completed():
            return replay(resource.response)

Requirements:
    All IdempotencyDataAdapter implementations MUST guarantee:

    1. **Unique keys**: create() must reject a key that is already stored
       with DuplicateKeyError and leave the stored resource unchanged.

    2. **Full replacement**: update() replaces the whole resource keyed by
       its idempotency key; it is not a partial patch.

    3. **Explicit miss**: find_by_idempotency_key() returns None for an
       unknown key instead of raising.

    4. **Lenient delete**: delete() of an unknown key is not an error.
"""

from typing import Protocol, runtime_checkable

from idempotent_mongo_adapter.models import IdempotencyResource


@runtime_checkable
class IdempotencyDataAdapter(Protocol):
    """Protocol defining the data adapter contract of the middleware.

    All methods are async and may be called concurrently from multiple
    request-handling tasks once the adapter is initialized.
    """

    async def find_by_idempotency_key(self, idempotency_key: str) -> IdempotencyResource | None:
        """Find the resource stored for an idempotency key.

        Args:
            idempotency_key: The key to look up.

        Returns:
            The resource if found, None otherwise.
        """
        ...

    async def create(self, resource: IdempotencyResource) -> None:
        """Persist a new resource.

        Raises:
            DuplicateKeyError: If the key is already stored.
        """
        ...

    async def update(self, resource: IdempotencyResource) -> None:
        """Replace the stored resource having the same key."""
        ...

    async def delete(self, idempotency_key: str) -> None:
        """Remove the resource stored for a key, if any."""
        ...
