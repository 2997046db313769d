"""Core type definitions for the idempotency MongoDB adapter.

This module provides the data structures exchanged with the idempotency
middleware (requests, responses and resources), the persisted document
layout, and the adapter lifecycle states.

Python attributes are snake_case while persisted documents use camelCase
field names (``idempotencyKey``, ``statusCode``, ``createdAt``...). Models
accept either spelling on input.

Examples:
    Creating an in-flight resource::

        from idempotent_mongo_adapter.models import (
            IdempotencyRequest,
            IdempotencyResource,
        )

        resource = IdempotencyResource(
            idempotency_key="payment-123",
            request=IdempotencyRequest(url="/payments", method="POST"),
        )
        assert resource.response is None

    Completing it::

        resource.response = IdempotencyResponse(status_code=201, body={"id": 1})

    Building the stored document::

        document = StoredResource.from_resource(resource).to_document()
        # {"idempotencyKey": "payment-123", "request": {...},
        #  "response": {"statusCode": 201, "body": {"id": 1}},
        #  "schemaVersion": "1.0.0", "createdAt": datetime(...)}
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Version tag written on every stored resource. Bump when the document
# layout changes so that readers can migrate old records.
SCHEMA_VERSION = "1.0.0"


class LifecycleState(str, Enum):
    """Lifecycle state of a storage adapter.

    Attributes:
        UNINITIALIZED: Constructed, or a previous init() failed.
        INITIALIZING: init() is resolving the database and provisioning.
        READY: Collections and indexes exist; operations are allowed.
        STOPPED: stop() was called; operations are rejected.
    """

    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZING = "INITIALIZING"
    READY = "READY"
    STOPPED = "STOPPED"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IdempotencyRequest(_CamelModel):
    """The original HTTP request, opaque to the adapter.

    Extra fields supplied by the middleware are kept as-is.

    Attributes:
        url: Request URL.
        method: HTTP method.
        body: Parsed request body, any BSON-encodable value.
        headers: Request headers.
        query: Query string parameters.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    url: str = Field(..., description="Request URL", examples=["/payments"])
    method: str = Field(..., description="HTTP method", examples=["POST", "GET"])
    body: Any = Field(default=None, description="Request body")
    headers: dict[str, Any] = Field(default_factory=dict, description="Request headers")
    query: dict[str, Any] = Field(default_factory=dict, description="Query parameters")


class IdempotencyResponse(_CamelModel):
    """The response produced once the guarded operation completed.

    Attributes:
        status_code: HTTP status code.
        body: Response body, any BSON-encodable value.
    """

    status_code: int = Field(
        ...,
        description="HTTP status code",
        ge=100,
        le=599,
        examples=[200, 201, 204],
    )
    body: Any = Field(default=None, description="Response body")


class IdempotencyResource(_CamelModel):
    """A key, its original request and the eventual response.

    A resource without ``response`` is in flight; one with a ``response``
    is completed. There is no other state field.

    Attributes:
        idempotency_key: Caller-supplied unique token.
        request: The original request.
        response: The produced response, ``None`` while in flight.
    """

    idempotency_key: str = Field(
        ...,
        description="Idempotency key provided by the client",
        min_length=1,
        examples=["payment-user123-20231215"],
    )
    request: IdempotencyRequest
    response: IdempotencyResponse | None = Field(
        default=None,
        description="Produced response (absent while in flight)",
    )

    def is_completed(self) -> bool:
        """Return True if a response has been stored for this resource."""
        return self.response is not None


class StoredResource(IdempotencyResource):
    """The persisted representation of an idempotency resource.

    Adds the schema version tag and the creation timestamp that drives the
    TTL index.

    Attributes:
        schema_version: Layout version of the stored document.
        created_at: When the resource was last created or replaced.
    """

    schema_version: str = Field(default=SCHEMA_VERSION, description="Document layout version")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Creation timestamp, drives TTL expiry",
    )

    @classmethod
    def from_resource(
        cls, resource: IdempotencyResource, created_at: datetime | None = None
    ) -> "StoredResource":
        """Wrap a resource with a fresh timestamp and the current schema version.

        Args:
            resource: The resource to persist.
            created_at: Timestamp to use, defaults to now (UTC).

        Returns:
            A new StoredResource.
        """
        return cls(
            idempotency_key=resource.idempotency_key,
            request=resource.request,
            response=resource.response,
            schema_version=SCHEMA_VERSION,
            created_at=created_at or datetime.now(UTC),
        )

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "StoredResource":
        """Build a StoredResource from a MongoDB document.

        The ``_id`` field and unknown top-level fields are ignored.
        """
        return cls.model_validate(document)

    def to_document(self) -> dict[str, Any]:
        """Return the MongoDB document for this resource.

        ``response`` is omitted entirely while the resource is in flight.
        """
        document = self.model_dump(by_alias=True)
        if self.response is None:
            document.pop("response", None)
        return document

    def to_resource(self) -> IdempotencyResource:
        """Strip storage metadata and return the middleware-facing resource."""
        return IdempotencyResource(
            idempotency_key=self.idempotency_key,
            request=self.request,
            response=self.response,
        )
